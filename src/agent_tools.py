from __future__ import annotations
import json
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional
from pydantic import BaseModel, Field, PositiveInt
from langchain_core.tools import StructuredTool
import objects as G
from sim import Economy


class ActorProperty(str, Enum):
    STATE = "state"
    GOAL_HIERARCHY = "goal-hierarchy"
    GOAL_REGISTRY = "goal-registry"
    CURRENT_GOALS = "current-goals"
    PREFERENCE_LIST = "preference-list"
    INVENTORY = "inventory"
    HISTORY = "history"


class GoalAction(str, Enum):
    REMOVE = "remove"
    SUSPEND = "suspend"
    RESUME = "resume"
    UNRANK = "unrank"


class ListActorsInput(BaseModel):
    pass


class ActorQueryInput(BaseModel):
    actor: str = Field(..., description="Actor name, e.g. Actor#0")
    prop: ActorProperty = ActorProperty.STATE


class CompareItemsInput(BaseModel):
    actor: str
    item_a: str = Field(..., description="Item type")
    item_b: str = Field(..., description="Item type")


class TickInput(BaseModel):
    actor: Optional[str] = Field(None, description="Only tick this actor; all actors if omitted")
    count: int = Field(1, ge=1, le=1000)


class GiveItemInput(BaseModel):
    actor: str
    item_type: str
    quantity: int = Field(1, ge=1, le=100)


class RegisterGoalInput(BaseModel):
    actor: str
    goal: str
    units: PositiveInt = 1
    recurrence: Optional[PositiveInt] = None


class GoalActionInput(BaseModel):
    actor: str
    goal: str
    action: GoalAction


class RankGoalInput(BaseModel):
    actor: str
    goal: str
    position: int = Field(..., ge=0, description="0 = most valued")


def _reported(method: Callable[..., str]) -> Callable[..., str]:
    """Recoverable economy errors become the tool's answer."""

    @wraps(method)
    def wrapper(self, data):
        try:
            return method(self, data)
        except G.EconomyError as e:
            return f"error: {e}"

    return wrapper


class Toolset:
    """Control surface over an Economy. Every tool takes one input model and returns a string."""

    def __init__(self, economy: Economy):
        self.economy = economy

    # ---- Query Tools ----
    def list_actors(self, data: Optional[ListActorsInput] = None) -> str:
        """List every actor with its state and current goal."""
        lines = []
        for actor in self.economy.actors.values():
            goal = actor.registry.select_goal()
            lines.append(f"{actor.name}:{actor.state.value}:{goal or '-'}")
        return "\n".join(lines)

    @_reported
    def actor_query(self, data: ActorQueryInput) -> str:
        """Return one part of an actor's state as JSON."""
        snapshot = self.economy.get_actor(data.actor).snapshot()
        if data.prop == ActorProperty.STATE:
            result = {"state": snapshot.state.value, "last_outcome": snapshot.last_outcome and snapshot.last_outcome.describe()}
        elif data.prop == ActorProperty.GOAL_HIERARCHY:
            result = snapshot.hierarchy
        elif data.prop == ActorProperty.GOAL_REGISTRY:
            result = [s.model_dump(mode="json") for s in snapshot.registry]
        elif data.prop == ActorProperty.CURRENT_GOALS:
            result = snapshot.current_goals
        elif data.prop == ActorProperty.PREFERENCE_LIST:
            result = [p.model_dump(mode="json") for p in snapshot.preferences]
        elif data.prop == ActorProperty.INVENTORY:
            result = [i.model_dump(mode="json") for i in snapshot.inventory]
        else:
            actor = self.economy.get_actor(data.actor)
            result = [o.describe() for o in actor.history]
        return json.dumps(result)

    @_reported
    def compare_item_values(self, data: CompareItemsInput) -> str:
        """Tell which of two item types the actor values more right now."""
        actor = self.economy.get_actor(data.actor)
        for item_type in (data.item_a, data.item_b):
            if self.economy.item_types and item_type not in self.economy.item_types:
                raise G.UnknownItemType(item_type)
        known = set(actor.preferences.item_types())
        if data.item_a not in known or data.item_b not in known:
            return f"{actor.name} does not recognize one of these items"
        result = actor.compare_item_values(data.item_a, data.item_b)
        if result == 0:
            return "These items are valued the same!"
        if result > 0:
            return f"{data.item_a} is valued more than {data.item_b}"
        return f"{data.item_a} is valued less than {data.item_b}"

    # ---- State-changing Action Tools ----
    @_reported
    def tick(self, data: TickInput) -> str:
        """Advance the simulation and describe what each actor did."""
        outcomes = self.economy.run(data.count, data.actor)
        return "\n".join(o.describe() for o in outcomes)

    @_reported
    def give_item(self, data: GiveItemInput) -> str:
        """Hand new items of one type to an actor."""
        given = 0
        for _ in range(data.quantity):
            if self.economy.give_item(data.actor, data.item_type) is None:
                break
            given += 1
        if given < data.quantity:
            return f"inventory_full ({given} given)"
        return "given"

    @_reported
    def register_goal(self, data: RegisterGoalInput) -> str:
        """Add units to a goal the actor has ranked."""
        state = self.economy.get_actor(data.actor).register_goal(data.goal, data.units, data.recurrence)
        return f"registered {state.goal_type}: {state.remaining}/{state.units_required} remaining"

    @_reported
    def goal_action(self, data: GoalActionInput) -> str:
        """Remove, suspend or resume a registered goal, or drop an unregistered one from the value scale."""
        actor = self.economy.get_actor(data.actor)
        if data.action == GoalAction.REMOVE:
            done = actor.remove_goal(data.goal)
        elif data.action == GoalAction.SUSPEND:
            done = actor.registry.suspend(data.goal)
        elif data.action == GoalAction.UNRANK:
            actor.unrank_goal(data.goal)
            done = True
        else:
            done = actor.registry.resume(data.goal)
        return data.action.value if done else "no_change"

    @_reported
    def rank_goal(self, data: RankGoalInput) -> str:
        """Place a goal at a position in the actor's value scale."""
        actor = self.economy.get_actor(data.actor)
        actor.rank_goal(data.goal, data.position)
        return " > ".join(actor.hierarchy.order())

    # ---- LangChain wiring ----
    def as_tools(self) -> List[StructuredTool]:
        entries = [
            ("list_actors", self.list_actors, ListActorsInput),
            ("actor_query", self.actor_query, ActorQueryInput),
            ("compare_item_values", self.compare_item_values, CompareItemsInput),
            ("tick", self.tick, TickInput),
            ("give_item", self.give_item, GiveItemInput),
            ("register_goal", self.register_goal, RegisterGoalInput),
            ("goal_action", self.goal_action, GoalActionInput),
            ("rank_goal", self.rank_goal, RankGoalInput),
        ]
        return [
            StructuredTool.from_function(
                func=_bind(method, schema),
                name=name,
                description=method.__doc__,
                args_schema=schema,
            )
            for name, method, schema in entries
        ]


def _bind(method: Callable[[BaseModel], str], schema: type) -> Callable[..., str]:
    def run(**kwargs) -> str:
        return method(schema(**kwargs))

    return run
