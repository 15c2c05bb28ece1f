# src/goals.py
"""
Goal Hierarchy (ordinal value scale) and Goal Registry (goals the actor is
currently tracking).

The registry keeps the preference structure and the current-goal list in step
with its entries:
  - register / reregister push the goal into every affected item heap (slow)
  - remove rebuilds every affected item heap from scratch (pathological)
  - satisfying a goal only edits the entry; heaps skip it lazily afterwards
"""
import logging
from typing import Dict, Iterable, List, Optional

from objects import InvariantViolation, UnknownGoalType, _GoalState
from preferences import GoalHeap, PreferenceStructure

logger = logging.getLogger(__name__)


class GoalHierarchy:
    """Ordered goal types; rank = position, lower rank = more valued."""

    def __init__(self, goals: Iterable[str] = ()):
        self._order: List[str] = []
        self._ranks: Dict[str, int] = {}
        for goal in goals:
            self.append(goal)

    def __contains__(self, goal_type: str) -> bool:
        return goal_type in self._ranks

    def __len__(self) -> int:
        return len(self._order)

    def order(self) -> List[str]:
        return list(self._order)

    def rank_of(self, goal_type: str) -> int:
        try:
            return self._ranks[goal_type]
        except KeyError:
            raise UnknownGoalType(goal_type) from None

    def compare(self, goal_a: str, goal_b: str) -> int:
        """-1 if `goal_a` is valued above `goal_b`, 1 if below, 0 if the same goal."""
        rank_a, rank_b = self.rank_of(goal_a), self.rank_of(goal_b)
        return (rank_a > rank_b) - (rank_a < rank_b)

    # Mutation is rare and O(n); callers rebuild rank-keyed structures afterwards.
    def append(self, goal_type: str) -> int:
        if goal_type in self._ranks:
            raise ValueError(f"{goal_type} is already ranked")
        self._ranks[goal_type] = len(self._order)
        self._order.append(goal_type)
        return self._ranks[goal_type]

    def insert(self, goal_type: str, position: int) -> None:
        if goal_type in self._ranks:
            self._order.remove(goal_type)
        position = max(0, min(position, len(self._order)))
        self._order.insert(position, goal_type)
        self._reindex()

    def remove(self, goal_type: str) -> None:
        if goal_type not in self._ranks:
            raise UnknownGoalType(goal_type)
        self._order.remove(goal_type)
        self._reindex()

    def _reindex(self) -> None:
        self._ranks = {goal: i for i, goal in enumerate(self._order)}


class GoalRegistry:
    def __init__(self, hierarchy: GoalHierarchy, preferences: PreferenceStructure):
        self.hierarchy = hierarchy
        self.preferences = preferences
        self._goals: Dict[str, _GoalState] = {}
        # Current Goal List: registered, unsatisfied, not suspended
        self._current = GoalHeap()

    def __contains__(self, goal_type: str) -> bool:
        return goal_type in self._goals

    def __len__(self) -> int:
        return len(self._goals)

    def _rank(self, goal_type: str) -> int:
        try:
            return self.hierarchy.rank_of(goal_type)
        except UnknownGoalType as err:
            raise InvariantViolation(f"registered goal {goal_type!r} is not ranked") from err

    # ── Queries ────────────────────────────────────────────────────────────
    def lookup(self, goal_type: str) -> Optional[_GoalState]:
        return self._goals.get(goal_type)

    def entries(self) -> List[_GoalState]:
        return sorted(self._goals.values(), key=lambda s: self._rank(s.goal_type))

    def is_live(self, goal_type: str) -> bool:
        """Still wants units; counts for item valuation."""
        state = self._goals.get(goal_type)
        return state is not None and state.remaining > 0

    def is_active(self, goal_type: str) -> bool:
        """Live and being pursued (member of the Current Goal List)."""
        state = self._goals.get(goal_type)
        return state is not None and state.remaining > 0 and not state.suspended

    def current_goals(self) -> List[str]:
        return [goal for goal in self.hierarchy.order() if self.is_active(goal)]

    def select_goal(self) -> Optional[str]:
        goal = self._current.peek(self.is_active)
        if goal is not None and goal not in self.hierarchy:
            raise InvariantViolation(f"current goal {goal!r} is not ranked")
        return goal

    # ── Mutation ───────────────────────────────────────────────────────────
    def register(
        self,
        goal_type: str,
        units: int,
        recurrence: Optional[int] = None,
        units_required: Optional[int] = None,
    ) -> _GoalState:
        """Insert a goal, or merge `units` into an existing entry."""
        if units <= 0:
            raise ValueError("units must be positive")
        rank = self.hierarchy.rank_of(goal_type)
        state = self._goals.get(goal_type)
        if state is None:
            state = _GoalState(
                goal_type=goal_type,
                units_required=max(units, units_required or units),
                remaining=units,
                recurrence=recurrence,
            )
            self._goals[goal_type] = state
            logger.info("registers goal %s (%d units)", goal_type, units)
        else:
            state.remaining += units
            state.units_required += units
            state.countdown = 0
            if recurrence is not None:
                state.recurrence = recurrence
            logger.info("merges %d units into goal %s", units, goal_type)
        self._activate(state, rank)
        return state

    def reregister(self, goal_type: str) -> bool:
        """Bring a dormant recurring goal back to full requirement."""
        state = self._goals.get(goal_type)
        if state is None or not state.is_recurring:
            return False
        state.remaining = state.units_required
        state.countdown = 0
        self._activate(state, self._rank(goal_type))
        logger.info("reintroduces goal %s", goal_type)
        return True

    def _activate(self, state: _GoalState, rank: int) -> None:
        touched = self.preferences.insert_goal(state.goal_type)
        logger.debug("goal %s inserted into %d preference heaps", state.goal_type, touched)
        if not state.suspended:
            self._current.push(state.goal_type, rank)

    def remove(self, goal_type: str) -> bool:
        state = self._goals.pop(goal_type, None)
        if state is None:
            return False
        self.preferences.remove_goal(goal_type, self.__contains__)
        self._current.rebuild(
            (self._rank(goal), goal) for goal in self._current.goals() if goal in self._goals
        )
        logger.info("removes goal %s", goal_type)
        return True

    def satisfy(self, goal_type: str, units: int = 1) -> Optional[_GoalState]:
        """Count `units` toward a goal. Unknown goals are ignored."""
        state = self._goals.get(goal_type)
        if state is None:
            return None
        state.remaining = max(0, state.remaining - units)
        if state.remaining == 0:
            if state.is_recurring:
                state.countdown = state.recurrence
                logger.info("goal %s satisfied, recurs in %d ticks", goal_type, state.countdown)
            else:
                self.remove(goal_type)
        return state

    def tick_recurrence(self) -> List[str]:
        """Advance dormant countdowns; returns goals that became active again."""
        recurred = []
        for goal_type, state in list(self._goals.items()):
            if not (state.is_recurring and state.is_dormant):
                continue
            state.countdown = max(0, state.countdown - 1)
            if state.countdown == 0 and self.reregister(goal_type):
                recurred.append(goal_type)
        return recurred

    def suspend(self, goal_type: str) -> bool:
        state = self._goals.get(goal_type)
        if state is None or state.suspended:
            return False
        state.suspended = True
        return True

    def resume(self, goal_type: str) -> bool:
        state = self._goals.get(goal_type)
        if state is None or not state.suspended:
            return False
        state.suspended = False
        self._current.push(goal_type, self._rank(goal_type))
        return True

    def rerank(self) -> None:
        """Rebuild rank-keyed structures after the hierarchy changed."""
        self._current.rebuild(
            (self._rank(goal), goal) for goal in self._current.goals() if goal in self._goals
        )
        self.preferences.rerank(self.__contains__)
