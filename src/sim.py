import json
import logging
import random
from collections import deque
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel

from register import register_content, MOD_PATHS, LOCAL_CONTENT
import objects as G
from objects import ActorState, OutcomeKind
from goals import GoalHierarchy, GoalRegistry
from preferences import PreferenceStructure

logger = logging.getLogger(__name__)

# Constants
SNAPSHOT_PATH = Path("actors_state.json")
ALL_SOURCES = [LOCAL_CONTENT] + MOD_PATHS

# -----------------------------------
# Negotiation
# -----------------------------------

class _Negotiation(BaseModel):
    """Progress of one trade attempt; lives only while the actor is bidding."""

    goal: str
    partner: Optional[str] = None
    partner_cursor: int = -1  # index of the last peer visited
    bid_cursor: int = 0       # offers already made to the current partner


def _value_key(rank: Optional[int], item: G._ItemInstance):
    # Cheapest first: items with no current use, then lowest valued goal.
    if rank is None:
        return (0, 0, item.instance_id)
    return (1, -rank, item.instance_id)

# -----------------------------------
# Actor
# -----------------------------------

class Actor:
    """
    One economic actor: value scale, tracked goals, preference heaps and an
    inventory. `tick` runs at most one step of the decision cycle:

        TryDirectUse -> TrySubstitute -> TryTrade (select partner) -> TryBid ...

    Trade negotiation spans several ticks; one bid per tick.
    """

    def __init__(self, name: str, hierarchy: GoalHierarchy, satisfactions: Dict[str, List[str]],
                 inventory_capacity: Optional[int] = None):
        self.name = name
        self.hierarchy = hierarchy
        self.preferences = PreferenceStructure(hierarchy, satisfactions)
        self.registry = GoalRegistry(hierarchy, self.preferences)
        self.inventory = G._Inventory(capacity=inventory_capacity)
        self.state = ActorState.SEARCHING
        self.negotiation: Optional[_Negotiation] = None
        self.engaged_by: Optional[str] = None
        self.last_outcome: Optional[G._TickOutcome] = None
        self.history: deque = deque(maxlen=G.HISTORY_LENGTH)

    @classmethod
    def from_definition(cls, name: str, definition: G.ActorDefinition,
                        goal_definitions: Dict[str, G.GoalDefinition],
                        item_types: Dict[str, G.ItemType], rng: random.Random) -> "Actor":
        for goal in definition.hierarchy:
            if goal not in goal_definitions:
                raise G.UnknownGoalType(goal)
        if item_types:
            for item_type in sorted(definition.item_types()):
                if item_type not in item_types:
                    raise G.UnknownItemType(item_type)

        satisfactions = {goal: list(types) for goal, types in definition.satisfactions.items()}
        for goal, choices in definition.satisfaction_choices.items():
            if choices:
                satisfactions.setdefault(goal, []).append(rng.choice(choices))

        actor = cls(name, GoalHierarchy(definition.hierarchy), satisfactions, definition.inventory_capacity)
        for goal in definition.hierarchy:
            goal_def = goal_definitions[goal]
            actor.registry.register(
                goal,
                goal_def.initial_units,
                recurrence=goal_def.recurrence,
                units_required=goal_def.units_required,
            )

        endowment = list(definition.inventory)
        if definition.endowments:
            endowment += rng.choice(definition.endowments)
        for item_type in endowment:
            if actor.add_item(item_type) is None:
                logger.warning("%s: inventory full, dropping starting %s", name, item_type)
        return actor

    # ── Valuation ──────────────────────────────────────────────────────────
    def best_use(self, item_type: str) -> str:
        return self.preferences.best_use(item_type, self.registry.is_live)

    def value_of(self, item_type: str) -> int:
        return self.preferences.value_of(item_type, self.registry.is_live)

    def _value_or_none(self, item_type: str) -> Optional[int]:
        try:
            return self.value_of(item_type)
        except G.NoSatisfiableGoal:
            return None

    def compare_item_values(self, item_a: str, item_b: str) -> int:
        """1 if `item_a` is valued above `item_b`, -1 if below, 0 if equal."""
        rank_a, rank_b = self._value_or_none(item_a), self._value_or_none(item_b)
        if rank_a is None or rank_b is None:
            return (rank_a is not None) - (rank_b is not None)
        return (rank_a < rank_b) - (rank_a > rank_b)

    def _cheapest_first(self, items: Iterable[G._ItemInstance]) -> List[G._ItemInstance]:
        return sorted(items, key=lambda i: _value_key(self._value_or_none(i.item_type), i))

    # ── Shell operations ───────────────────────────────────────────────────
    def add_item(self, item_type: str) -> Optional[G._ItemInstance]:
        item = G._ItemInstance(item_type=item_type)
        if not self.inventory.put(item):
            return None
        logger.info("%s receives %s#%d", self.name, item_type, item.instance_id)
        return item

    def register_goal(self, goal_type: str, units: int, recurrence: Optional[int] = None) -> G._GoalState:
        return self.registry.register(goal_type, units, recurrence=recurrence)

    def remove_goal(self, goal_type: str) -> bool:
        return self.registry.remove(goal_type)

    def rank_goal(self, goal_type: str, position: int) -> None:
        self.hierarchy.insert(goal_type, position)
        self.registry.rerank()

    def unrank_goal(self, goal_type: str) -> None:
        if goal_type in self.registry:
            raise G.EconomyError(f"{goal_type} is still registered; remove it first")
        self.hierarchy.remove(goal_type)
        self.registry.rerank()

    def snapshot(self) -> G._ActorSnapshot:
        preferences = []
        for item_type in self.preferences.item_types():
            try:
                best = self.best_use(item_type)
            except G.NoSatisfiableGoal:
                best = None
            preferences.append(G._PreferenceView(
                item_type=item_type,
                best_use=best,
                goals=self.preferences.goals_for(item_type),
            ))
        return G._ActorSnapshot(
            name=self.name,
            state=self.state,
            hierarchy=self.hierarchy.order(),
            current_goals=self.registry.current_goals(),
            registry=[s.model_copy() for s in self.registry.entries()],
            inventory=list(self.inventory.items),
            preferences=preferences,
            last_outcome=self.last_outcome,
        )

    # ── Peer contract (this actor as the trade recipient) ──────────────────
    def is_available(self) -> bool:
        return self.state == ActorState.SEARCHING

    def engage(self, initiator: str) -> None:
        self.state = ActorState.RECIPIENT
        self.engaged_by = initiator

    def release(self, initiator: str) -> None:
        if self.engaged_by == initiator:
            self.state = ActorState.SEARCHING
            self.engaged_by = None

    def quote(self, item_types: Iterable[str]) -> Optional[G._ItemInstance]:
        """Least valued held item among `item_types`, or None."""
        held = self._cheapest_first(self.inventory.of_types(item_types))
        return held[0] if held else None

    def consider(self, offered: G._ItemInstance, requested: G._ItemInstance) -> bool:
        """Accept if what we get is worth at least what we give up."""
        if self.inventory.find(requested.instance_id) is None:
            return False
        return self.compare_item_values(offered.item_type, requested.item_type) >= 0

    def exchange(self, offered: G._ItemInstance, requested_id: int) -> G._ItemInstance:
        given = self.inventory.swap(requested_id, offered)
        if given is None:
            raise ValueError(f"{self.name} no longer holds item {requested_id}")
        return given

    # ── Decision cycle ─────────────────────────────────────────────────────
    def tick(self, peers: Sequence["Actor"], now: int) -> G._TickOutcome:
        """One step of the decision cycle. Recurrence is advanced by the Economy clock."""
        if self.state == ActorState.RECIPIENT:
            return self._record(now, OutcomeKind.WAITING, partner=self.engaged_by)

        goal = self.registry.select_goal()
        if self.negotiation is not None and self.negotiation.goal != goal:
            logger.info("%s: goal changed mid-negotiation, abandoning %s", self.name, self.negotiation.goal)
            self._abandon(peers)
        if goal is None:
            return self._record(now, OutcomeKind.IDLE)
        logger.debug("%s selects %s as a goal", self.name, goal)

        if self.state == ActorState.BIDDING:
            return self._try_bid(goal, peers, now)

        outcome = self._try_direct_use(goal, now)
        if outcome is None:
            outcome = self._try_substitute(goal, now)
        if outcome is not None:
            return outcome
        if not self.inventory.items:
            return self._record(now, OutcomeKind.NO_DEAL, goal=goal, detail="nothing to offer")
        self.negotiation = _Negotiation(goal=goal)
        return self._try_trade(goal, peers, now)

    def _try_direct_use(self, goal: str, now: int) -> Optional[G._TickOutcome]:
        for item in self.inventory.of_types(self.preferences.capable(goal)):
            if self.best_use(item.item_type) == goal:
                self._use_item(item, goal)
                return self._record(now, OutcomeKind.DIRECT_USE, goal=goal,
                                    item_id=item.instance_id, item_type=item.item_type)
        return None

    def _try_substitute(self, goal: str, now: int) -> Optional[G._TickOutcome]:
        # Every capable item is reserved for something valued at least as much;
        # give up the least valued of those uses.
        candidates = [
            (self.value_of(item.item_type), item)
            for item in self.inventory.of_types(self.preferences.capable(goal))
        ]
        if not candidates:
            return None
        _, item = max(candidates, key=lambda c: (c[0], -c[1].instance_id))
        forgone = self.best_use(item.item_type)
        self._use_item(item, goal)
        return self._record(now, OutcomeKind.SUBSTITUTE, goal=goal, item_id=item.instance_id,
                            item_type=item.item_type, detail=f"forgoes {forgone}")

    def _try_trade(self, goal: str, peers: Sequence["Actor"], now: int) -> G._TickOutcome:
        negotiation = self.negotiation
        wanted = self.preferences.capable(goal)
        for index in range(negotiation.partner_cursor + 1, len(peers)):
            peer = peers[index]
            if peer is self:
                continue
            if not peer.is_available():
                logger.debug("%s: %s is occupied trading with another actor, skipping", self.name, peer.name)
                continue
            if peer.quote(wanted) is None:
                continue
            negotiation.partner = peer.name
            negotiation.partner_cursor = index
            negotiation.bid_cursor = 0
            peer.engage(self.name)
            self.state = ActorState.BIDDING
            return self._record(now, OutcomeKind.PARTNER_SELECTED, goal=goal, partner=peer.name)

        self.negotiation = None
        self.state = ActorState.SEARCHING
        return self._record(now, OutcomeKind.NO_DEAL, goal=goal, detail="all partners exhausted")

    def _try_bid(self, goal: str, peers: Sequence["Actor"], now: int) -> G._TickOutcome:
        negotiation = self.negotiation
        peer = self._partner(peers)
        requested = peer.quote(self.preferences.capable(goal)) if peer else None
        offers = self._cheapest_first(self.inventory.items)
        if requested is None or negotiation.bid_cursor >= len(offers):
            return self._next_partner(goal, peer, peers, now)

        offered = offers[negotiation.bid_cursor]
        offered_rank = self._value_or_none(offered.item_type)
        if offered_rank is not None and offered_rank < self.hierarchy.rank_of(goal):
            logger.debug("%s/%s: next bid %s is worth more than %s", self.name, peer.name, offered.item_type, goal)
            return self._next_partner(goal, peer, peers, now)

        negotiation.bid_cursor += 1
        logger.debug("%s/%s makes bid: will give %s for %s", self.name, peer.name,
                     offered.item_type, requested.item_type)
        fields = dict(goal=goal, partner=peer.name, item_id=offered.instance_id, item_type=offered.item_type,
                      received_item_id=requested.instance_id, received_item_type=requested.item_type)

        if self.compare_item_values(requested.item_type, offered.item_type) < 0:
            return self._record(now, OutcomeKind.BID_REJECTED, detail=self.name, **fields)
        if not peer.consider(offered, requested):
            return self._record(now, OutcomeKind.BID_REJECTED, detail=peer.name, **fields)

        received = peer.exchange(offered, requested.instance_id)
        self.inventory.swap(offered.instance_id, received)
        self._use_item(received, goal)
        peer.release(self.name)
        self.negotiation = None
        self.state = ActorState.SEARCHING
        return self._record(now, OutcomeKind.TRADE_SUCCESS, **fields)

    def _next_partner(self, goal: str, peer: Optional["Actor"], peers: Sequence["Actor"],
                      now: int) -> G._TickOutcome:
        if peer is not None:
            peer.release(self.name)
        self.state = ActorState.SEARCHING
        return self._try_trade(goal, peers, now)

    def _partner(self, peers: Sequence["Actor"]) -> Optional["Actor"]:
        negotiation = self.negotiation
        index = negotiation.partner_cursor
        if 0 <= index < len(peers) and peers[index].name == negotiation.partner:
            return peers[index]
        return next((p for p in peers if p.name == negotiation.partner), None)

    def _abandon(self, peers: Sequence["Actor"]) -> None:
        if self.negotiation is not None and self.negotiation.partner is not None:
            peer = self._partner(peers)
            if peer is not None:
                peer.release(self.name)
        self.negotiation = None
        self.state = ActorState.SEARCHING

    def _use_item(self, item: G._ItemInstance, goal: str) -> None:
        self.inventory.take(item.instance_id)
        self.registry.satisfy(goal)

    def _record(self, now: int, kind: OutcomeKind, **fields) -> G._TickOutcome:
        outcome = G._TickOutcome(tick=now, actor=self.name, kind=kind, **fields)
        self.last_outcome = outcome
        self.history.append(outcome)
        logger.info(outcome.describe())
        return outcome

# -----------------------------------
# Economy
# -----------------------------------

class Economy:
    """Owns the actors, the clock and a deterministic random source."""

    def __init__(self, seed: int = 0, item_types: Optional[Dict[str, G.ItemType]] = None,
                 goal_definitions: Optional[Dict[str, G.GoalDefinition]] = None):
        self.actors: Dict[str, Actor] = {}
        self.clock = G._SimulationClock()
        self.random = random.Random(seed)
        self.item_types: Dict[str, G.ItemType] = dict(item_types or {})
        self.goal_definitions: Dict[str, G.GoalDefinition] = dict(goal_definitions or {})

    @classmethod
    def from_registry(cls, registry: Dict[str, Dict[str, BaseModel]], seed: int = 0) -> "Economy":
        economy = cls(
            seed,
            item_types=registry.get("ItemType", {}),  # type: ignore
            goal_definitions=registry.get("GoalDefinition", {}),  # type: ignore
        )
        for definition in registry.get("ActorDefinition", {}).values():
            economy.spawn(definition)  # type: ignore
        return economy

    def spawn(self, definition: G.ActorDefinition) -> List[Actor]:
        spawned = []
        for n in range(definition.count):
            actor = Actor.from_definition(f"{definition.id}#{n}", definition, self.goal_definitions,
                                          self.item_types, self.random)
            self.add_actor(actor)
            spawned.append(actor)
        return spawned

    def add_actor(self, actor: Actor) -> Actor:
        if actor.name in self.actors:
            raise ValueError(f"actor {actor.name} already exists")
        self.actors[actor.name] = actor
        return actor

    def get_actor(self, name: str) -> Actor:
        try:
            return self.actors[name]
        except KeyError:
            raise G.UnknownActor(name) from None

    def peers_of(self, actor: Actor) -> List[Actor]:
        return [a for a in self.actors.values() if a is not actor]

    def give_item(self, actor_name: str, item_type: str) -> Optional[G._ItemInstance]:
        actor = self.get_actor(actor_name)
        if self.item_types and item_type not in self.item_types:
            raise G.UnknownItemType(item_type)
        return actor.add_item(item_type)

    def tick(self, actor_name: Optional[str] = None) -> List[G._TickOutcome]:
        """Advance the clock once; tick one named actor or every actor in order."""
        targets = [self.get_actor(actor_name)] if actor_name else list(self.actors.values())
        now = self.clock.advance()
        # recurrence follows the shared clock, ticked or not
        for actor in self.actors.values():
            actor.registry.tick_recurrence()
        return [actor.tick(self.peers_of(actor), now) for actor in targets]

    def run(self, ticks: int, actor_name: Optional[str] = None) -> List[G._TickOutcome]:
        outcomes: List[G._TickOutcome] = []
        for _ in range(ticks):
            outcomes.extend(self.tick(actor_name))
        return outcomes

# -----------------------------------
# Persistence
# -----------------------------------

def save_snapshots(economy: Economy, path: Path = SNAPSHOT_PATH) -> None:
    data = [actor.snapshot().model_dump(mode="json") for actor in economy.actors.values()]
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")

# -----------------------------------
# Main Simulation Loop
# -----------------------------------

def main(ticks: int = 10, seed: int = 0, actor: Optional[str] = None,
         content: Sequence[Path] = (), dump: Optional[Path] = None) -> Economy:
    """Run the simulation for a number of ticks using the given RNG seed."""

    registry = register_content(ALL_SOURCES + [Path(p) for p in content])
    economy = Economy.from_registry(registry, seed=seed)
    economy.run(ticks, actor)
    if dump is not None:
        save_snapshots(economy, Path(dump))
    return economy


def cli(argv: Optional[Sequence[str]] = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Run the goal-driven barter simulation")
    parser.add_argument("--ticks", type=int, default=10, help="Number of ticks to run")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed for deterministic runs")
    parser.add_argument("--actor", default=None, help="Only tick this actor")
    parser.add_argument("--content", action="append", default=[], help="Extra content folder (repeatable)")
    parser.add_argument("--dump", default=None, help="Write actor snapshots to this JSON file")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(message)s")
    main(ticks=args.ticks, seed=args.seed, actor=args.actor, content=args.content, dump=args.dump)

if __name__ == "__main__":
    cli()
