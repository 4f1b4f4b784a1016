"""Tests for KnowledgeSynthesizer — profile extraction, insights and hints."""

import pytest

from coordination.models import AgentContribution, UserKnowledgeRecord
from coordination.schemas import SchedulingKnowledge, TaskKnowledge
from coordination.synthesis import KnowledgeSynthesizer


@pytest.fixture
def synthesizer(config, clock):
    return KnowledgeSynthesizer(config.synthesis, config.agents, clock=clock)


def _record(**knowledge):
    """Build a record from agent_id=payload pairs (underscores become dashes)."""
    return UserKnowledgeRecord(
        user_id="u1",
        agent_contributions={
            agent.replace("_", "-"): AgentContribution(knowledge=model.model_dump())
            for agent, model in knowledge.items()
        },
    )


def _scheduling(total_events=0, buffer=None):
    return SchedulingKnowledge.model_validate({
        "calendar_snapshot": {"total_events": total_events},
        "coordination_hints": {"buffer_time_needed": buffer},
    })


def _tasks(rate=0.0, categories=()):
    return TaskKnowledge.model_validate({
        "productivity_snapshot": {"completion_rate": rate,
                                  "favorite_categories": list(categories)},
        "personalized_insights": {"motivational_triggers": ["streaks"]},
    })


class TestSynthesize:
    def test_needs_two_contributors(self, synthesizer):
        assert synthesizer.synthesize(_record(scheduling_agent=_scheduling(25))) is None

    def test_power_user(self, synthesizer, clock):
        summary = synthesizer.synthesize(_record(
            scheduling_agent=_scheduling(25), task_agent=_tasks(85),
        ))
        assert summary.insight_types() == ["power-user"]
        assert summary.participating_agents == ["scheduling-agent", "task-agent"]
        assert summary.rotated_at == clock().isoformat()
        power = summary.coordination_insights[0]
        assert power.recommendations == ["minimal-guidance", "advanced-features",
                                         "efficiency-focused"]

    def test_needs_support(self, synthesizer):
        summary = synthesizer.synthesize(_record(
            scheduling_agent=_scheduling(3), task_agent=_tasks(40),
        ))
        assert summary.insight_types() == ["needs-support"]

    def test_needs_buffer_time(self, synthesizer):
        summary = synthesizer.synthesize(_record(
            scheduling_agent=_scheduling(10, buffer=30), task_agent=_tasks(60),
        ))
        assert summary.insight_types() == ["needs-buffer-time"]

    def test_buffer_at_threshold_is_not_flagged(self, synthesizer):
        summary = synthesizer.synthesize(_record(
            scheduling_agent=_scheduling(10, buffer=15), task_agent=_tasks(60),
        ))
        assert summary.insight_types() == []

    def test_unified_profile(self, synthesizer):
        summary = synthesizer.synthesize(_record(
            scheduling_agent=_scheduling(8, buffer=0), task_agent=_tasks(72, ["work"]),
        ))
        profile = summary.unified_profile
        assert profile.productivity.overall_completion_rate == 72
        assert profile.productivity.task_preferences == ["work"]
        assert profile.productivity.motivational_triggers == ["streaks"]
        assert profile.scheduling.total_events == 8
        assert profile.scheduling.buffer_time_preference == 0
        assert profile.scheduling.scheduling_experience == "intermediate"


class TestExtraction:
    def test_defaults_without_agents(self, synthesizer):
        record = UserKnowledgeRecord(user_id="u1")
        productivity = synthesizer.extract_productivity(record)
        scheduling = synthesizer.extract_scheduling(record)
        assert productivity.overall_completion_rate == 0.0
        assert productivity.task_preferences == []
        assert scheduling.buffer_time_preference == 15
        assert scheduling.scheduling_experience == "beginner"

    def test_task_preferences_default_to_general(self, synthesizer):
        profile = synthesizer.extract_productivity(_record(task_agent=_tasks(50)))
        assert profile.task_preferences == ["general"]

    def test_interaction_times_from_orchestrator(self, synthesizer):
        record = UserKnowledgeRecord(user_id="u1", agent_contributions={
            "orchestrator-agent": AgentContribution(knowledge={
                "kind": "orchestration", "interaction_patterns": ["mornings"],
            }),
        })
        profile = synthesizer.extract_productivity(record)
        assert profile.optimal_interaction_times == ["mornings"]

    @pytest.mark.parametrize("events,expected", [
        (0, "beginner"), (5, "beginner"), (6, "intermediate"),
        (20, "intermediate"), (21, "experienced"),
    ])
    def test_classify_experience(self, synthesizer, events, expected):
        assert synthesizer.classify_experience(events) == expected


class TestHints:
    def test_no_hints_for_modest_users(self, synthesizer):
        hints = synthesizer.generate_hints({
            "task-agent": _tasks(70), "scheduling-agent": _scheduling(10),
        })
        assert hints.preferred_agent_for_type == {}
        assert hints.interaction_frequency == "normal"

    def test_routes_to_strong_agents(self, synthesizer):
        hints = synthesizer.generate_hints({
            "task-agent": _tasks(71), "scheduling-agent": _scheduling(11),
        })
        assert hints.preferred_agent_for_type == {
            "tasks": "task-agent", "scheduling": "scheduling-agent",
        }
        assert hints.interaction_frequency == "minimal"
