from pathlib import Path
import sys
import logging

# Make src modules discoverable
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import sim  # type: ignore
import objects as G  # type: ignore
from register import register_content  # type: ignore

import matplotlib.pyplot as plt


def setup_economy(seed: int) -> sim.Economy:
    """Spawn the actors defined under content/ (four actors, four goals)."""
    registry = register_content(sim.ALL_SOURCES)
    return sim.Economy.from_registry(registry, seed=seed)


def run_simulation(ticks: int = 60, seed: int = 42) -> None:
    """Run the barter economy with live graphing.

    Figure 1: cumulative count of each outcome kind across all actors.
    Figure 2: items held by each actor.
    """

    economy = setup_economy(seed)
    kinds = list(G.OutcomeKind)

    # ---------------------------------------------------------------------
    # Outcome plot setup (figure 1)
    # ---------------------------------------------------------------------
    plt.ion()  # Enable interactive mode so the GUI updates continuously

    fig_outcomes, ax_outcomes = plt.subplots()
    totals = {kind: 0 for kind in kinds}
    outcome_history = {kind: [] for kind in kinds}
    outcome_lines = {}
    for kind in kinds:
        (line,) = ax_outcomes.plot([], [], label=kind.value)
        outcome_lines[kind] = line
    ax_outcomes.set_xlabel("Tick")
    ax_outcomes.set_ylabel("Count")
    ax_outcomes.set_title("Cumulative Outcomes")
    ax_outcomes.legend()

    # ---------------------------------------------------------------------
    # Inventory plot setup (figure 2)
    # ---------------------------------------------------------------------
    fig_inventory, ax_inventory = plt.subplots()
    inventory_history = {name: [] for name in economy.actors}
    inventory_lines = {}
    for name in economy.actors:
        (line,) = ax_inventory.plot([], [], label=name)
        inventory_lines[name] = line
    ax_inventory.set_xlabel("Tick")
    ax_inventory.set_ylabel("Items held")
    ax_inventory.set_title("Inventory Size per Actor")
    ax_inventory.legend()

    # ---------------------------------------------------------------------
    # Main simulation loop
    # ---------------------------------------------------------------------
    for t in range(1, ticks + 1):
        outcomes = economy.tick()

        for outcome in outcomes:
            totals[outcome.kind] += 1
        for kind in kinds:
            outcome_history[kind].append(totals[kind])
            outcome_lines[kind].set_data(range(1, t + 1), outcome_history[kind])

        for name, actor in economy.actors.items():
            inventory_history[name].append(actor.inventory.total_amount())
            inventory_lines[name].set_data(range(1, t + 1), inventory_history[name])

        # Console log for quick inspection
        snapshot = ", ".join(f"{o.actor}: {o.kind.value}" for o in outcomes)
        print(f"Tick {t:>3}: {snapshot}")

        ax_outcomes.relim()
        ax_outcomes.autoscale_view()
        ax_inventory.relim()
        ax_inventory.autoscale_view()

        plt.pause(0.001)  # Allow the GUI event loop to process events

    # ---------------------------------------------------------------------
    # End of simulation: freeze figures so they stay visible
    # ---------------------------------------------------------------------
    plt.ioff()
    plt.show()


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    run_simulation()
