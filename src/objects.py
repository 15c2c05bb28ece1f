from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, model_validator

HISTORY_LENGTH = 64
import itertools
_id_counter = itertools.count()

def get_instance_id():
    return next(_id_counter)

# ────────────────────────────────────────────────────────────────────────────
# Errors
# ────────────────────────────────────────────────────────────────────────────

class EconomyError(Exception):
    """Recoverable error; reported to the user as an outcome string."""

class UnknownGoalType(EconomyError, KeyError):
    def __init__(self, goal_type: str):
        super().__init__(goal_type)
        self.goal_type = goal_type

    def __str__(self) -> str:
        return f"unknown goal type: {self.goal_type}"

class UnknownItemType(EconomyError, KeyError):
    def __init__(self, item_type: str):
        super().__init__(item_type)
        self.item_type = item_type

    def __str__(self) -> str:
        return f"unknown item type: {self.item_type}"

class UnknownActor(EconomyError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"cannot find actor: {self.name}"

class NoSatisfiableGoal(EconomyError):
    """The item has no live goal left to satisfy."""

    def __init__(self, item_type: str):
        super().__init__(item_type)
        self.item_type = item_type

    def __str__(self) -> str:
        return f"{self.item_type} has no current use"

class InvariantViolation(RuntimeError):
    """A goal type is in use somewhere but missing from the hierarchy. Fatal."""

# ────────────────────────────────────────────────────────────────────────────
# Content definitions (loaded from content/<ModelName>/*.json)
# ────────────────────────────────────────────────────────────────────────────

class GoalDefinition(BaseModel):
    id: str
    display_name: str = ""
    units_required: PositiveInt = 1
    recurrence: Optional[PositiveInt] = None # Ticks before a satisfied goal surfaces again. One-shot if not defined.
    initial_progress: NonNegativeInt = 0 # Units already satisfied when an actor starts out

    @model_validator(mode="after")
    def _progress_below_required(self):
        if self.initial_progress >= self.units_required:
            raise ValueError("initial_progress must be below units_required")
        return self

    @property
    def initial_units(self) -> int:
        return self.units_required - self.initial_progress

class ItemType(BaseModel):
    id: str
    display_name: str = ""
    unit_name: str = "unit" # What do we call 1 item of this type? e.g. "loaf" for bread

class ActorDefinition(BaseModel):
    """Template for one or more actors sharing a value scale."""

    id: str
    count: PositiveInt = 1
    # Ordinal value scale, most valued goal first
    hierarchy: List[str]
    # Goal id -> item types able to satisfy it
    satisfactions: Dict[str, List[str]] = Field(default_factory=dict)
    # Goal id -> candidates; each spawned actor gets one of them added to `satisfactions`
    satisfaction_choices: Dict[str, List[str]] = Field(default_factory=dict)
    inventory: List[str] = Field(default_factory=list)
    # Alternative starting inventories; one is picked per spawned actor
    endowments: List[List[str]] = Field(default_factory=list)
    inventory_capacity: Optional[PositiveInt] = None

    @model_validator(mode="after")
    def _goals_are_ranked(self):
        if len(set(self.hierarchy)) != len(self.hierarchy):
            raise ValueError("hierarchy must not rank a goal twice")
        ranked = set(self.hierarchy)
        for goal in list(self.satisfactions) + list(self.satisfaction_choices):
            if goal not in ranked:
                raise ValueError(f"goal {goal!r} is not in the hierarchy")
        return self

    def item_types(self) -> set[str]:
        found = set(self.inventory)
        for group in (self.satisfactions, self.satisfaction_choices):
            for types in group.values():
                found.update(types)
        for endowment in self.endowments:
            found.update(endowment)
        return found

# ────────────────────────────────────────────────────────────────────────────
# Items & Inventory
# ────────────────────────────────────────────────────────────────────────────

class _ItemInstance(BaseModel):
    """One indivisible unit; exists until consumed."""
    model_config = ConfigDict(frozen=True)

    instance_id: int = Field(default_factory=get_instance_id)
    item_type: str

class _Inventory(BaseModel):
    capacity: Optional[PositiveInt] = None
    items: List[_ItemInstance] = Field(default_factory=list)

    def total_amount(self) -> int:
        return len(self.items)

    def can_put(self, count: int = 1) -> bool:
        if self.capacity is None:
            return True
        return self.total_amount() + count <= self.capacity

    def put(self, item: _ItemInstance) -> bool:
        if not self.can_put():
            return False
        self.items.append(item)
        return True

    def find(self, instance_id: int) -> Optional[_ItemInstance]:
        return next((i for i in self.items if i.instance_id == instance_id), None)

    def take(self, instance_id: int) -> Optional[_ItemInstance]:
        item = self.find(instance_id)
        if item is not None:
            self.items.remove(item)
        return item

    def swap(self, outgoing_id: int, incoming: _ItemInstance) -> Optional[_ItemInstance]:
        """One-for-one exchange; capacity is unaffected so it is not checked."""
        outgoing = self.take(outgoing_id)
        if outgoing is not None:
            self.items.append(incoming)
        return outgoing

    def of_types(self, item_types) -> List[_ItemInstance]:
        wanted = set(item_types)
        return [i for i in self.items if i.item_type in wanted]

    def counts(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for item in self.items:
            totals[item.item_type] = totals.get(item.item_type, 0) + 1
        return totals

# ────────────────────────────────────────────────────────────────────────────
# Goals
# ────────────────────────────────────────────────────────────────────────────

class _GoalState(BaseModel):
    """Registry entry. Rank is not stored here; it lives in the hierarchy."""

    goal_type: str
    units_required: PositiveInt      # value `remaining` resets to on recurrence
    remaining: NonNegativeInt
    recurrence: Optional[PositiveInt] = None
    countdown: NonNegativeInt = 0    # only runs while dormant
    suspended: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def is_dormant(self) -> bool:
        return self.remaining == 0

# ────────────────────────────────────────────────────────────────────────────
# Simulation clock & outcomes
# ────────────────────────────────────────────────────────────────────────────

class _SimulationClock(BaseModel):
    tick: NonNegativeInt = 0

    def advance(self) -> int:
        self.tick += 1
        return self.tick

class ActorState(str, Enum):
    SEARCHING = "searching"     # looking for a goal / an item for it
    BIDDING = "bidding"         # negotiating with a partner
    RECIPIENT = "recipient"     # engaged by another actor's negotiation

class OutcomeKind(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    DIRECT_USE = "direct_use"
    SUBSTITUTE = "substitute"
    PARTNER_SELECTED = "partner_selected"
    BID_REJECTED = "bid_rejected"
    TRADE_SUCCESS = "trade_success"
    NO_DEAL = "no_deal"

class _TickOutcome(BaseModel):
    tick: int
    actor: str
    kind: OutcomeKind
    goal: Optional[str] = None
    item_id: Optional[int] = None
    item_type: Optional[str] = None
    partner: Optional[str] = None
    received_item_id: Optional[int] = None
    received_item_type: Optional[str] = None
    detail: str = ""

    def describe(self) -> str:
        head = f"[{self.tick}] {self.actor}"
        if self.kind == OutcomeKind.IDLE:
            return f"{head} does not pursue any goals"
        if self.kind == OutcomeKind.WAITING:
            return f"{head} is waiting in a bid from {self.partner}"
        if self.kind == OutcomeKind.DIRECT_USE:
            return f"{head} uses {self.item_type}#{self.item_id} for {self.goal}"
        if self.kind == OutcomeKind.SUBSTITUTE:
            return f"{head} substitutes {self.item_type}#{self.item_id} for {self.goal} ({self.detail})"
        if self.kind == OutcomeKind.PARTNER_SELECTED:
            return f"{head} finds trade partner {self.partner} for {self.goal}"
        if self.kind == OutcomeKind.BID_REJECTED:
            return f"{head}/{self.partner}: bid {self.item_type} for {self.received_item_type} rejected by {self.detail}"
        if self.kind == OutcomeKind.TRADE_SUCCESS:
            return (
                f"{head}/{self.partner}: trade complete, gave {self.item_type}#{self.item_id} "
                f"for {self.received_item_type}#{self.received_item_id} used on {self.goal}"
            )
        return f"{head} finds no deal for {self.goal}" + (f": {self.detail}" if self.detail else "")

# ────────────────────────────────────────────────────────────────────────────
# Snapshots (read side of the control interface)
# ────────────────────────────────────────────────────────────────────────────

class _PreferenceView(BaseModel):
    item_type: str
    best_use: Optional[str]
    goals: List[str]

class _ActorSnapshot(BaseModel):
    name: str
    state: ActorState
    hierarchy: List[str]
    current_goals: List[str]
    registry: List[_GoalState]
    inventory: List[_ItemInstance]
    preferences: List[_PreferenceView]
    last_outcome: Optional[_TickOutcome] = None
