import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import sim  # type: ignore
import objects as G  # type: ignore
from goals import GoalHierarchy  # type: ignore
from agent_tools import (  # type: ignore
    Toolset, ActorQueryInput, ActorProperty, CompareItemsInput, TickInput,
    GiveItemInput, RegisterGoalInput, GoalActionInput, GoalAction, RankGoalInput,
)


def setup_toolset():
    economy = sim.Economy(seed=0, item_types={
        "bread": G.ItemType(id="bread"),
        "plank": G.ItemType(id="plank"),
    })
    actor = sim.Actor("A", GoalHierarchy(["food", "shelter"]), {"food": ["bread"], "shelter": ["plank"]})
    actor.register_goal("food", 1)
    economy.add_actor(actor)
    return Toolset(economy), economy, actor


def test_list_actors():
    tools, _, _ = setup_toolset()
    assert tools.list_actors() == "A:searching:food"


def test_actor_query_inventory_and_hierarchy():
    tools, economy, actor = setup_toolset()
    tools.give_item(GiveItemInput(actor="A", item_type="bread", quantity=2))
    items = json.loads(tools.actor_query(ActorQueryInput(actor="A", prop=ActorProperty.INVENTORY)))
    assert [i["item_type"] for i in items] == ["bread", "bread"]
    order = json.loads(tools.actor_query(ActorQueryInput(actor="A", prop=ActorProperty.GOAL_HIERARCHY)))
    assert order == ["food", "shelter"]


def test_errors_are_reported_as_text():
    tools, _, _ = setup_toolset()
    assert tools.actor_query(ActorQueryInput(actor="Z")) == "error: cannot find actor: Z"
    assert tools.give_item(GiveItemInput(actor="A", item_type="gold")) == "error: unknown item type: gold"
    assert tools.register_goal(RegisterGoalInput(actor="A", goal="fame")) == "error: unknown goal type: fame"


def test_compare_item_values_text():
    tools, _, _ = setup_toolset()
    tools.register_goal(RegisterGoalInput(actor="A", goal="shelter"))
    assert tools.compare_item_values(CompareItemsInput(actor="A", item_a="bread", item_b="plank")) \
        == "bread is valued more than plank"
    assert tools.compare_item_values(CompareItemsInput(actor="A", item_a="plank", item_b="bread")) \
        == "plank is valued less than bread"
    assert tools.compare_item_values(CompareItemsInput(actor="A", item_a="bread", item_b="bread")) \
        == "These items are valued the same!"


def test_tick_describes_outcomes():
    tools, _, actor = setup_toolset()
    tools.give_item(GiveItemInput(actor="A", item_type="bread"))
    text = tools.tick(TickInput(count=2))
    lines = text.splitlines()
    assert len(lines) == 2
    assert "uses bread#" in lines[0]
    assert lines[1] == "[2] A does not pursue any goals"


def test_goal_actions_and_ranking():
    tools, _, actor = setup_toolset()
    assert tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.SUSPEND)) == "suspend"
    assert tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.SUSPEND)) == "no_change"
    assert actor.registry.select_goal() is None
    tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.RESUME))
    assert tools.rank_goal(RankGoalInput(actor="A", goal="shelter", position=0)) == "shelter > food"
    assert tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.REMOVE)) == "remove"
    assert "food" not in actor.registry


def test_as_tools_invoke():
    tools, _, _ = setup_toolset()
    by_name = {t.name: t for t in tools.as_tools()}
    assert set(by_name) >= {"actor_query", "tick", "give_item", "compare_item_values"}
    assert by_name["give_item"].invoke({"actor": "A", "item_type": "bread"}) == "given"
    assert by_name["list_actors"].invoke({}) == "A:searching:food"


def test_unrank_needs_goal_removed_first():
    tools, _, actor = setup_toolset()
    refused = tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.UNRANK))
    assert refused.startswith("error: food is still registered")
    tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.REMOVE))
    assert tools.goal_action(GoalActionInput(actor="A", goal="food", action=GoalAction.UNRANK)) == "unrank"
    assert actor.hierarchy.order() == ["shelter"]


def test_compare_reports_unrecognized_items():
    tools, economy, _ = setup_toolset()
    economy.item_types["feather"] = G.ItemType(id="feather")
    assert tools.compare_item_values(CompareItemsInput(actor="A", item_a="feather", item_b="bread")) \
        == "A does not recognize one of these items"


def test_invariant_violation_is_not_reported_as_text():
    tools, _, actor = setup_toolset()
    actor.hierarchy.remove("food")  # registered goal left unranked
    with pytest.raises(G.InvariantViolation):
        tools.tick(TickInput())
