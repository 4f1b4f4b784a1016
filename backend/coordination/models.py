"""
Coordination data models — knowledge records, rotated summaries,
conversation patterns, entity contexts and match candidates.

Shared dataclasses used across the coordination subsystem.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return utc_now().isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PatternType(str, Enum):
    CALENDAR_FOCUSED = "calendar_focused"
    TASK_FOCUSED = "task_focused"
    BALANCED = "balanced"


class BehaviorType(str, Enum):
    NEW_USER = "new_user"
    POWER_USER = "power_user"
    HELP_SEEKER = "help_seeker"
    REGULAR_USER = "regular_user"


class AccessLevel(str, Enum):
    FULL = "full"
    TASK_FOCUSED = "task-focused"
    SCHEDULE_FOCUSED = "schedule-focused"
    LIMITED = "limited"


class SchedulingExperience(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERIENCED = "experienced"


class InsightType(str, Enum):
    POWER_USER = "power-user"
    NEEDS_SUPPORT = "needs-support"
    NEEDS_BUFFER_TIME = "needs-buffer-time"


# ── Knowledge ──

@dataclass
class AgentContribution:
    knowledge: dict = field(default_factory=dict)
    last_updated: str = field(default_factory=_now_iso)
    access_level: str = AccessLevel.LIMITED.value

    def to_dict(self) -> dict:
        return {
            "knowledge": self.knowledge,
            "last_updated": self.last_updated,
            "access_level": self.access_level,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AgentContribution":
        return cls(
            knowledge=d.get("knowledge", {}),
            last_updated=d.get("last_updated", _now_iso()),
            access_level=d.get("access_level", AccessLevel.LIMITED.value),
        )


@dataclass
class ProductivityProfile:
    overall_completion_rate: float = 0.0
    task_preferences: list[str] = field(default_factory=list)
    motivational_triggers: list[str] = field(default_factory=list)
    optimal_interaction_times: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall_completion_rate": self.overall_completion_rate,
            "task_preferences": self.task_preferences,
            "motivational_triggers": self.motivational_triggers,
            "optimal_interaction_times": self.optimal_interaction_times,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ProductivityProfile":
        return cls(
            overall_completion_rate=d.get("overall_completion_rate", 0.0),
            task_preferences=d.get("task_preferences", []),
            motivational_triggers=d.get("motivational_triggers", []),
            optimal_interaction_times=d.get("optimal_interaction_times", []),
        )


@dataclass
class SchedulingProfile:
    total_events: int = 0
    favorite_event_types: list[str] = field(default_factory=list)
    buffer_time_preference: int = 15  # minutes
    scheduling_experience: str = SchedulingExperience.BEGINNER.value

    def to_dict(self) -> dict:
        return {
            "total_events": self.total_events,
            "favorite_event_types": self.favorite_event_types,
            "buffer_time_preference": self.buffer_time_preference,
            "scheduling_experience": self.scheduling_experience,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SchedulingProfile":
        return cls(
            total_events=d.get("total_events", 0),
            favorite_event_types=d.get("favorite_event_types", []),
            buffer_time_preference=d.get("buffer_time_preference", 15),
            scheduling_experience=d.get(
                "scheduling_experience", SchedulingExperience.BEGINNER.value
            ),
        )


@dataclass
class UnifiedProfile:
    productivity: ProductivityProfile = field(default_factory=ProductivityProfile)
    scheduling: SchedulingProfile = field(default_factory=SchedulingProfile)

    def to_dict(self) -> dict:
        return {
            "productivity": self.productivity.to_dict(),
            "scheduling": self.scheduling.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "UnifiedProfile":
        return cls(
            productivity=ProductivityProfile.from_dict(d.get("productivity", {})),
            scheduling=SchedulingProfile.from_dict(d.get("scheduling", {})),
        )


@dataclass
class CoordinationInsight:
    type: str
    description: str
    recommendations: list[str] = field(default_factory=list)  # advisory only

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CoordinationInsight":
        return cls(
            type=d["type"],
            description=d.get("description", ""),
            recommendations=d.get("recommendations", []),
        )


@dataclass
class RotatedSummary:
    user_id: str = ""
    participating_agents: list[str] = field(default_factory=list)
    unified_profile: UnifiedProfile = field(default_factory=UnifiedProfile)
    coordination_insights: list[CoordinationInsight] = field(default_factory=list)
    rotated_at: str = field(default_factory=_now_iso)

    def insight_types(self) -> list[str]:
        return [i.type for i in self.coordination_insights]

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "participating_agents": self.participating_agents,
            "unified_profile": self.unified_profile.to_dict(),
            "coordination_insights": [i.to_dict() for i in self.coordination_insights],
            "rotated_at": self.rotated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RotatedSummary":
        return cls(
            user_id=d.get("user_id", ""),
            participating_agents=d.get("participating_agents", []),
            unified_profile=UnifiedProfile.from_dict(d.get("unified_profile", {})),
            coordination_insights=[
                CoordinationInsight.from_dict(i)
                for i in d.get("coordination_insights", [])
            ],
            rotated_at=d.get("rotated_at", _now_iso()),
        )


@dataclass
class UserKnowledgeRecord:
    user_id: str
    last_updated: str = field(default_factory=_now_iso)
    agent_contributions: dict[str, AgentContribution] = field(default_factory=dict)
    rotated_summary: Optional[RotatedSummary] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "last_updated": self.last_updated,
            "agent_contributions": {
                agent_id: c.to_dict()
                for agent_id, c in self.agent_contributions.items()
            },
            "rotated_summary": (
                self.rotated_summary.to_dict() if self.rotated_summary else None
            ),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "UserKnowledgeRecord":
        summary = d.get("rotated_summary")
        return cls(
            user_id=d["user_id"],
            last_updated=d.get("last_updated", _now_iso()),
            agent_contributions={
                agent_id: AgentContribution.from_dict(c)
                for agent_id, c in d.get("agent_contributions", {}).items()
            },
            rotated_summary=RotatedSummary.from_dict(summary) if summary else None,
        )


@dataclass
class CoordinationHints:
    communication_style: str = "friendly"
    interaction_frequency: str = "normal"
    preferred_agent_for_type: dict[str, str] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "communication_style": self.communication_style,
            "interaction_frequency": self.interaction_frequency,
            "preferred_agent_for_type": dict(self.preferred_agent_for_type),
            "recommendations": list(self.recommendations),
        }


@dataclass
class RotatedKnowledgeView:
    """What one agent gets to see of everyone else's knowledge about a user."""
    user_id: str
    timestamp: str = field(default_factory=_now_iso)
    contributors: list[str] = field(default_factory=list)
    knowledge: dict[str, dict] = field(default_factory=dict)  # agent_id -> sanitized
    coordination_hints: CoordinationHints = field(default_factory=CoordinationHints)
    insights: list[CoordinationInsight] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.contributors

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "contributors": list(self.contributors),
            "knowledge": self.knowledge,
            "coordination_hints": self.coordination_hints.to_dict(),
            "insights": [i.to_dict() for i in self.insights],
        }


# ── Conversation ──

@dataclass
class ConversationPattern:
    pattern_type: str = PatternType.BALANCED.value
    calendar_frequency: int = 0
    task_frequency: int = 0
    agent_affinity: dict[str, int] = field(default_factory=dict)
    time_of_day_affinity: dict[str, int] = field(default_factory=dict)  # "HH:MM" -> count
    context_depth: float = 0.0  # 0-10

    def affinity(self, agent_id: str) -> int:
        return self.agent_affinity.get(agent_id, 0)

    def to_dict(self) -> dict:
        return {
            "pattern_type": self.pattern_type,
            "calendar_frequency": self.calendar_frequency,
            "task_frequency": self.task_frequency,
            "agent_affinity": dict(self.agent_affinity),
            "time_of_day_affinity": dict(self.time_of_day_affinity),
            "context_depth": self.context_depth,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ConversationPattern":
        return cls(
            pattern_type=d.get("pattern_type", PatternType.BALANCED.value),
            calendar_frequency=d.get("calendar_frequency", 0),
            task_frequency=d.get("task_frequency", 0),
            agent_affinity=d.get("agent_affinity", {}),
            time_of_day_affinity=d.get("time_of_day_affinity", {}),
            context_depth=d.get("context_depth", 0.0),
        )


# ── Entities ──

def split_start(start: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split an ISO start value into ("YYYY-MM-DD", "HH:MM").

    Date-only values yield no time. Wall-clock time is taken as written,
    without timezone conversion.
    """
    if not start:
        return None, None
    if len(start) <= 10:
        return start, None
    try:
        parsed = datetime.fromisoformat(start.replace("Z", "+00:00"))
    except ValueError:
        return start[:10], None
    return parsed.date().isoformat(), parsed.strftime("%H:%M")


def _provider_time(value) -> Optional[str]:
    """Accept either a plain ISO string or a {"dateTime"/"date": ...} mapping."""
    if isinstance(value, dict):
        return value.get("dateTime") or value.get("date")
    return value


@dataclass
class CandidateEntity:
    id: str
    title: str = ""
    start: Optional[str] = None
    end: Optional[str] = None
    location: Optional[str] = None

    @property
    def date(self) -> Optional[str]:
        return split_start(self.start)[0]

    @property
    def time(self) -> Optional[str]:
        return split_start(self.start)[1]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start,
            "end": self.end,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CandidateEntity":
        return cls(
            id=str(d.get("id", "")),
            title=d.get("title") or d.get("summary") or "",
            start=_provider_time(d.get("start")),
            end=_provider_time(d.get("end")),
            location=d.get("location"),
        )


@dataclass
class ActiveEntityContext:
    entity_id: str = ""
    cleaned_title: str = ""
    original_title: str = ""
    date: Optional[str] = None        # YYYY-MM-DD
    start_time: Optional[str] = None  # HH:MM
    end_time: Optional[str] = None
    entity_type: str = "general"
    location: Optional[str] = None
    source_text: str = ""
    conversation_pattern: Optional[ConversationPattern] = None
    behavior_type: str = BehaviorType.REGULAR_USER.value
    agents_involved: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=_now_iso)

    @property
    def context_depth(self) -> float:
        if self.conversation_pattern is None:
            return 0.0
        return self.conversation_pattern.context_depth

    def age_seconds(self, now: datetime) -> float:
        return (now - parse_timestamp(self.timestamp)).total_seconds()

    def is_expired(self, now: datetime, ttl_seconds: float) -> bool:
        """An unreadable timestamp counts as expired."""
        try:
            return self.age_seconds(now) >= ttl_seconds
        except (TypeError, ValueError):
            return True

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "cleaned_title": self.cleaned_title,
            "original_title": self.original_title,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "entity_type": self.entity_type,
            "location": self.location,
            "source_text": self.source_text,
            "conversation_pattern": (
                self.conversation_pattern.to_dict()
                if self.conversation_pattern else None
            ),
            "behavior_type": self.behavior_type,
            "agents_involved": self.agents_involved,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ActiveEntityContext":
        pattern = d.get("conversation_pattern")
        return cls(
            entity_id=d.get("entity_id", ""),
            cleaned_title=d.get("cleaned_title", ""),
            original_title=d.get("original_title", ""),
            date=d.get("date"),
            start_time=d.get("start_time"),
            end_time=d.get("end_time"),
            entity_type=d.get("entity_type", "general"),
            location=d.get("location"),
            source_text=d.get("source_text", ""),
            conversation_pattern=(
                ConversationPattern.from_dict(pattern) if pattern else None
            ),
            behavior_type=d.get("behavior_type", BehaviorType.REGULAR_USER.value),
            agents_involved=d.get("agents_involved", []),
            timestamp=d.get("timestamp", _now_iso()),
        )


# ── Resolution ──

@dataclass
class MatchCandidate:
    entity: CandidateEntity
    score: float = 0.0       # 0-1
    confidence: float = 0.0  # 0-1
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "entity": self.entity.to_dict(),
            "score": round(self.score, 4),
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
        }


@dataclass
class Resolution:
    match: Optional[MatchCandidate] = None  # set only when both thresholds clear
    best: Optional[MatchCandidate] = None   # top-ranked candidate, accepted or not
    reasoning: str = ""

    @property
    def accepted(self) -> bool:
        return self.match is not None


@dataclass
class UpdateDetails:
    action: str = "change"
    target: str = "details"
    value: Optional[str] = None

    def to_dict(self) -> dict:
        return {"action": self.action, "target": self.target, "value": self.value}


@dataclass
class UpdateValidation:
    is_valid: bool = True  # annotations never block the update
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


@dataclass
class UpdateOutcome:
    success: bool
    message: str
    matched: Optional[MatchCandidate] = None
    context: Optional[ActiveEntityContext] = None
    update_details: Optional[UpdateDetails] = None
    validation: Optional[UpdateValidation] = None
    confidence: float = 0.0
