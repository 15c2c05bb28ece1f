import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))

import objects as G  # type: ignore
from goals import GoalHierarchy, GoalRegistry  # type: ignore
from preferences import PreferenceStructure  # type: ignore


def make_registry(order, satisfactions=None):
    hierarchy = GoalHierarchy(order)
    prefs = PreferenceStructure(hierarchy, satisfactions or {})
    return GoalRegistry(hierarchy, prefs)


def test_hierarchy_ranks_and_compare():
    h = GoalHierarchy(["food", "shelter", "leisure"])
    assert h.rank_of("food") == 0
    assert h.rank_of("leisure") == 2
    assert h.compare("food", "shelter") == -1
    assert h.compare("leisure", "shelter") == 1
    assert h.compare("food", "food") == 0


def test_hierarchy_unknown_goal_is_key_error():
    h = GoalHierarchy(["food"])
    with pytest.raises(G.UnknownGoalType):
        h.rank_of("fame")
    with pytest.raises(KeyError):
        h.rank_of("fame")


def test_hierarchy_insert_moves_existing_goal():
    h = GoalHierarchy(["food", "shelter", "leisure"])
    h.insert("leisure", 0)
    assert h.order() == ["leisure", "food", "shelter"]
    assert h.rank_of("shelter") == 2
    h.insert("rest", 99)
    assert h.order()[-1] == "rest"


def test_hierarchy_rejects_duplicate_append():
    h = GoalHierarchy(["food"])
    with pytest.raises(ValueError):
        h.append("food")


def test_register_requires_ranked_goal():
    reg = make_registry(["food"])
    with pytest.raises(G.UnknownGoalType):
        reg.register("fame", 1)
    assert "fame" not in reg


def test_register_rejects_non_positive_units():
    reg = make_registry(["food"])
    with pytest.raises(ValueError):
        reg.register("food", 0)


def test_register_merges_units():
    reg = make_registry(["food"])
    reg.register("food", 2)
    state = reg.register("food", 3, recurrence=5)
    assert state.remaining == 5
    assert state.units_required == 5
    assert state.recurrence == 5
    assert len(reg) == 1


def test_select_goal_follows_hierarchy():
    reg = make_registry(["food", "shelter", "leisure"])
    reg.register("leisure", 1)
    reg.register("shelter", 1)
    assert reg.select_goal() == "shelter"
    reg.register("food", 1)
    assert reg.select_goal() == "food"
    assert reg.current_goals() == ["food", "shelter", "leisure"]


def test_one_shot_goal_leaves_registry_when_satisfied():
    reg = make_registry(["food", "shelter"])
    reg.register("food", 2)
    reg.register("shelter", 1)
    reg.satisfy("food")
    assert reg.select_goal() == "food"
    reg.satisfy("food")
    assert "food" not in reg
    assert reg.select_goal() == "shelter"


def test_satisfy_unknown_goal_is_ignored():
    reg = make_registry(["food"])
    assert reg.satisfy("food") is None


def test_recurring_goal_comes_back_after_countdown():
    reg = make_registry(["eat"])
    reg.register("eat", 1, recurrence=3)
    reg.satisfy("eat")
    state = reg.lookup("eat")
    assert state.is_dormant
    assert reg.select_goal() is None

    assert reg.tick_recurrence() == []
    assert reg.tick_recurrence() == []
    assert reg.tick_recurrence() == ["eat"]
    assert state.remaining == 1
    assert reg.select_goal() == "eat"


def test_recurrence_resets_to_units_required():
    reg = make_registry(["eat"])
    reg.register("eat", 1, recurrence=1, units_required=2)
    reg.satisfy("eat")
    assert reg.tick_recurrence() == ["eat"]
    assert reg.lookup("eat").remaining == 2


def test_suspended_goal_is_live_but_not_selected():
    reg = make_registry(["food", "shelter"])
    reg.register("food", 1)
    reg.register("shelter", 1)
    assert reg.suspend("food")
    assert reg.is_live("food")
    assert not reg.is_active("food")
    assert reg.select_goal() == "shelter"
    assert reg.resume("food")
    assert reg.select_goal() == "food"


def test_goal_missing_from_hierarchy_is_fatal():
    reg = make_registry(["food", "shelter"])
    reg.register("food", 1)
    reg.hierarchy.remove("food")  # bypass the actor-level guard
    with pytest.raises(G.InvariantViolation):
        reg.select_goal()
