"""
Per-agent knowledge schemas — validates what each agent contributes.

Each agent's payload is a tagged member of ``AgentKnowledge``: the scheduling
agent sends ``SchedulingKnowledge``, the task agent ``TaskKnowledge``, the
orchestrator ``OrchestrationKnowledge``. Any other agent identifier is
accepted with ``GenericKnowledge``.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from coordination.config import AgentsConfig
from coordination.errors import KnowledgeValidationError


class StrictModel(BaseModel):
    """Rejects unknown keys, so a misshapen payload fails instead of zeroing out."""
    model_config = ConfigDict(extra="forbid")


class CalendarSnapshot(StrictModel):
    total_events: int = Field(default=0, ge=0)
    favorite_event_types: list[str] = []
    common_locations: list[str] = []
    last_activity: Optional[str] = None


class SchedulingHints(StrictModel):
    buffer_time_needed: Optional[int] = Field(default=None, ge=0)  # minutes
    time_preferences: dict[str, int] = {}
    optimal_scheduling: list[str] = []


class SchedulingKnowledge(StrictModel):
    kind: Literal["scheduling"] = "scheduling"
    calendar_snapshot: CalendarSnapshot = Field(default_factory=CalendarSnapshot)
    coordination_hints: SchedulingHints = Field(default_factory=SchedulingHints)


class ProductivitySnapshot(StrictModel):
    completion_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    favorite_categories: list[str] = []


class PersonalizedInsights(StrictModel):
    motivational_triggers: list[str] = []


class RecentPatterns(StrictModel):
    recent_task_types: list[str] = []


class TaskKnowledge(StrictModel):
    kind: Literal["task"] = "task"
    productivity_snapshot: ProductivitySnapshot = Field(default_factory=ProductivitySnapshot)
    personalized_insights: PersonalizedInsights = Field(default_factory=PersonalizedInsights)
    recent_patterns: RecentPatterns = Field(default_factory=RecentPatterns)


class OrchestrationKnowledge(StrictModel):
    kind: Literal["orchestration"] = "orchestration"
    interaction_patterns: list[str] = []


class GenericKnowledge(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["generic"] = "generic"


AgentKnowledge = Annotated[
    Union[SchedulingKnowledge, TaskKnowledge, OrchestrationKnowledge, GenericKnowledge],
    Field(discriminator="kind"),
]

_knowledge_adapter = TypeAdapter(AgentKnowledge)


def schema_for(agent_id: str, agents: AgentsConfig) -> type[BaseModel]:
    """The schema an agent's knowledge must satisfy."""
    if agent_id == agents.calendar_agent:
        return SchedulingKnowledge
    if agent_id == agents.task_agent:
        return TaskKnowledge
    if agent_id == agents.orchestrator_agent:
        return OrchestrationKnowledge
    return GenericKnowledge


def parse_knowledge(agent_id: str, payload, agents: AgentsConfig) -> BaseModel:
    """Validate an agent's payload at the coordinator boundary.

    Raises KnowledgeValidationError if the payload doesn't fit the agent's
    schema.
    """
    schema = schema_for(agent_id, agents)
    if isinstance(payload, schema):
        return payload
    if payload is None:
        payload = {}
    if isinstance(payload, BaseModel):
        raise KnowledgeValidationError(
            agent_id, f"expected {schema.__name__}, got {type(payload).__name__}"
        )
    if not isinstance(payload, dict):
        raise KnowledgeValidationError(
            agent_id, f"expected a mapping, got {type(payload).__name__}"
        )
    data = {k: v for k, v in payload.items() if k != "kind"}
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise KnowledgeValidationError(agent_id, str(e)) from e


def load_knowledge(stored: dict) -> BaseModel:
    """Rebuild a typed knowledge object from its stored dict form."""
    return _knowledge_adapter.validate_python(stored)
