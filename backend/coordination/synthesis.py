"""
KnowledgeSynthesizer — merges agent knowledge into a unified profile.

Productivity comes from the task agent's slice, scheduling from the
scheduling agent's slice, interaction times from the orchestrator. The
coordination insight rules:

  power-user         completion rate > 80 and experienced scheduler
  needs-support      completion rate < 50 and beginner scheduler
  needs-buffer-time  buffer preference > 15 minutes

Recommendations attached to insights are advisory strings, never actions.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from coordination.config import AgentsConfig, SynthesisConfig
from coordination.models import (
    CoordinationHints, CoordinationInsight, InsightType, ProductivityProfile,
    RotatedSummary, SchedulingExperience, SchedulingProfile, UnifiedProfile,
    UserKnowledgeRecord, utc_now,
)
from coordination.schemas import (
    OrchestrationKnowledge, SchedulingKnowledge, TaskKnowledge, load_knowledge,
)

logger = logging.getLogger(__name__)

MIN_CONTRIBUTORS = 2


class KnowledgeSynthesizer:
    """Builds RotatedSummary objects from a user's knowledge record."""

    def __init__(self, config: Optional[SynthesisConfig] = None,
                 agents: Optional[AgentsConfig] = None,
                 clock: Callable[[], datetime] = utc_now):
        self._config = config or SynthesisConfig()
        self._agents = agents or AgentsConfig()
        self._clock = clock

    def synthesize(self, record: UserKnowledgeRecord) -> Optional[RotatedSummary]:
        """Return a fresh summary, or None with fewer than two contributors."""
        agent_ids = list(record.agent_contributions)
        if len(agent_ids) < MIN_CONTRIBUTORS:
            return None

        productivity = self.extract_productivity(record)
        scheduling = self.extract_scheduling(record)

        return RotatedSummary(
            user_id=record.user_id,
            participating_agents=agent_ids,
            unified_profile=UnifiedProfile(
                productivity=productivity, scheduling=scheduling,
            ),
            coordination_insights=self.generate_insights(productivity, scheduling),
            rotated_at=self._clock().isoformat(),
        )

    # ── Extraction ──

    def _knowledge(self, record: UserKnowledgeRecord, agent_id: str, schema):
        contribution = record.agent_contributions.get(agent_id)
        if contribution is None:
            return None
        knowledge = load_knowledge(contribution.knowledge)
        return knowledge if isinstance(knowledge, schema) else None

    def extract_productivity(self, record: UserKnowledgeRecord) -> ProductivityProfile:
        profile = ProductivityProfile()

        task = self._knowledge(record, self._agents.task_agent, TaskKnowledge)
        if task:
            snapshot = task.productivity_snapshot
            profile.overall_completion_rate = snapshot.completion_rate
            profile.task_preferences = list(snapshot.favorite_categories) or ["general"]
            profile.motivational_triggers = list(
                task.personalized_insights.motivational_triggers
            )

        orchestration = self._knowledge(
            record, self._agents.orchestrator_agent, OrchestrationKnowledge
        )
        if orchestration:
            profile.optimal_interaction_times = list(orchestration.interaction_patterns)

        return profile

    def extract_scheduling(self, record: UserKnowledgeRecord) -> SchedulingProfile:
        profile = SchedulingProfile(buffer_time_preference=self._config.default_buffer_time)

        scheduling = self._knowledge(
            record, self._agents.calendar_agent, SchedulingKnowledge
        )
        if scheduling:
            snapshot = scheduling.calendar_snapshot
            profile.total_events = snapshot.total_events
            profile.favorite_event_types = list(snapshot.favorite_event_types)
            buffer = scheduling.coordination_hints.buffer_time_needed
            if buffer is not None:
                profile.buffer_time_preference = buffer
            profile.scheduling_experience = self.classify_experience(snapshot.total_events)

        return profile

    def classify_experience(self, total_events: int) -> str:
        if total_events > self._config.experienced_min_events:
            return SchedulingExperience.EXPERIENCED.value
        if total_events > self._config.intermediate_min_events:
            return SchedulingExperience.INTERMEDIATE.value
        return SchedulingExperience.BEGINNER.value

    # ── Insights ──

    def generate_insights(self, productivity: ProductivityProfile,
                          scheduling: SchedulingProfile) -> list[CoordinationInsight]:
        cfg = self._config
        insights = []
        rate = productivity.overall_completion_rate
        experience = scheduling.scheduling_experience

        if (rate > cfg.power_user_completion_rate
                and experience == SchedulingExperience.EXPERIENCED.value):
            insights.append(CoordinationInsight(
                type=InsightType.POWER_USER.value,
                description="User is highly productive and experienced with scheduling",
                recommendations=["minimal-guidance", "advanced-features",
                                 "efficiency-focused"],
            ))

        if (rate < cfg.needs_support_completion_rate
                and experience == SchedulingExperience.BEGINNER.value):
            insights.append(CoordinationInsight(
                type=InsightType.NEEDS_SUPPORT.value,
                description="User needs extra support and guidance",
                recommendations=["step-by-step", "frequent-reminders",
                                 "encouragement-focused"],
            ))

        if scheduling.buffer_time_preference > cfg.buffer_time_threshold:
            insights.append(CoordinationInsight(
                type=InsightType.NEEDS_BUFFER_TIME.value,
                description="User benefits from extra time between commitments",
                recommendations=["auto-buffer-time", "realistic-scheduling",
                                 "stress-reduction"],
            ))

        return insights

    # ── Hints ──

    def generate_hints(self, other_knowledge: dict) -> CoordinationHints:
        """Routing hints derived from the other agents' typed knowledge.

        ``other_knowledge`` maps agent_id -> schema instance.
        """
        hints = CoordinationHints()

        task = other_knowledge.get(self._agents.task_agent)
        if (isinstance(task, TaskKnowledge)
                and task.productivity_snapshot.completion_rate
                > self._config.preferred_task_completion_rate):
            hints.preferred_agent_for_type["tasks"] = self._agents.task_agent
            # High performers need less intervention
            hints.interaction_frequency = "minimal"

        scheduling = other_knowledge.get(self._agents.calendar_agent)
        if (isinstance(scheduling, SchedulingKnowledge)
                and scheduling.calendar_snapshot.total_events
                > self._config.preferred_scheduling_min_events):
            hints.preferred_agent_for_type["scheduling"] = self._agents.calendar_agent

        return hints
