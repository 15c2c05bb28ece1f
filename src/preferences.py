# src/preferences.py
"""
Preference Structure: for every item type, the goals it can satisfy ordered by
the actor's hierarchy, so the item's best current use is always the root of a
heap.

Entries are keyed by item *type*; instances of one type are interchangeable for
valuation. Heap entries go stale when a goal is satisfied or removed from the
registry. They are never surfaced: `GoalHeap.peek` drops stale roots lazily,
and `remove_goal` rebuilds the affected heaps eagerly.
"""
import heapq
import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Set, Tuple

from objects import InvariantViolation, NoSatisfiableGoal, UnknownGoalType

if TYPE_CHECKING:
    from goals import GoalHierarchy

logger = logging.getLogger(__name__)

IsLive = Callable[[str], bool]


class GoalHeap:
    """Min-heap of (rank, goal_type); lowest rank = most valued = root."""

    def __init__(self):
        self._heap: List[Tuple[int, str]] = []
        self._members: Set[str] = set()

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, goal_type: str) -> bool:
        return goal_type in self._members

    def push(self, goal_type: str, rank: int) -> bool:
        """Insert a goal unless it is already physically present."""
        if goal_type in self._members:
            return False
        heapq.heappush(self._heap, (rank, goal_type))
        self._members.add(goal_type)
        return True

    def peek(self, is_live: IsLive) -> Optional[str]:
        """Most valued live goal. Dead roots are popped on the way."""
        while self._heap:
            _, goal_type = self._heap[0]
            if is_live(goal_type):
                return goal_type
            heapq.heappop(self._heap)
            self._members.discard(goal_type)
            logger.debug("skipping stale goal %s", goal_type)
        return None

    def rebuild(self, entries: Iterable[Tuple[int, str]]) -> None:
        self._heap = list(entries)
        heapq.heapify(self._heap)
        self._members = {goal for _, goal in self._heap}

    def goals(self) -> List[str]:
        """Physically present goals in rank order (stale ones included)."""
        return [goal for _, goal in sorted(self._heap)]


class PreferenceStructure:
    def __init__(self, hierarchy: "GoalHierarchy", satisfactions: Dict[str, List[str]]):
        self.hierarchy = hierarchy
        # goal -> item types that can satisfy it; static capability map
        self._satisfactions: Dict[str, List[str]] = {
            goal: list(dict.fromkeys(types)) for goal, types in satisfactions.items()
        }
        self._heaps: Dict[str, GoalHeap] = {}
        for types in self._satisfactions.values():
            for item_type in types:
                self._heaps.setdefault(item_type, GoalHeap())

    def _rank(self, goal_type: str) -> int:
        try:
            return self.hierarchy.rank_of(goal_type)
        except UnknownGoalType as err:
            raise InvariantViolation(
                f"goal {goal_type!r} is referenced by the preference structure but is not ranked"
            ) from err

    # ── Capability ─────────────────────────────────────────────────────────
    def capable(self, goal_type: str) -> List[str]:
        return list(self._satisfactions.get(goal_type, []))

    def can_satisfy(self, item_type: str, goal_type: str) -> bool:
        return item_type in self._satisfactions.get(goal_type, ())

    def item_types(self) -> List[str]:
        return list(self._heaps)

    def goals_for(self, item_type: str) -> List[str]:
        heap = self._heaps.get(item_type)
        return heap.goals() if heap else []

    # ── Maintenance ────────────────────────────────────────────────────────
    def insert_goal(self, goal_type: str) -> int:
        """Push a goal into every item heap able to satisfy it. Returns heaps touched."""
        rank = self._rank(goal_type)
        touched = 0
        for item_type in self._satisfactions.get(goal_type, ()):
            if self._heaps[item_type].push(goal_type, rank):
                touched += 1
        return touched

    def remove_goal(self, goal_type: str, is_registered: IsLive) -> int:
        """
        Rebuild every heap that references `goal_type`, dropping it together
        with any other entry whose goal has left the registry.
        """
        rebuilt = 0
        for item_type in self._satisfactions.get(goal_type, ()):
            heap = self._heaps[item_type]
            heap.rebuild(
                (self._rank(goal), goal)
                for goal in heap.goals()
                if goal != goal_type and is_registered(goal)
            )
            rebuilt += 1
        logger.debug("rebuilt %d preference heaps after removing %s", rebuilt, goal_type)
        return rebuilt

    def rerank(self, is_registered: IsLive) -> None:
        """Recompute every heap after the hierarchy changed order."""
        for heap in self._heaps.values():
            heap.rebuild(
                (self._rank(goal), goal) for goal in heap.goals() if is_registered(goal)
            )

    # ── Valuation ──────────────────────────────────────────────────────────
    def best_use(self, item_type: str, is_live: IsLive) -> str:
        heap = self._heaps.get(item_type)
        goal = heap.peek(is_live) if heap else None
        if goal is None:
            raise NoSatisfiableGoal(item_type)
        return goal

    def value_of(self, item_type: str, is_live: IsLive) -> int:
        """Rank of the item's best use; lower is more valuable."""
        return self._rank(self.best_use(item_type, is_live))
