"""Tests for EventReferenceResolver — scoring, acceptance and contextual updates."""

import asyncio

import pytest

from coordination.models import (
    ActiveEntityContext, CandidateEntity, ConversationPattern, UpdateDetails,
)

DOCTOR = CandidateEntity(id="doc", title="Doctor Appointment", start="2025-11-20T14:00")
TEAM = CandidateEntity(id="team", title="Team Meeting", start="2025-11-20T10:00")


def _context(clock, behavior="regular_user", pattern=None, **overrides):
    values = dict(
        entity_id="e-1",
        cleaned_title="Doctor Appointment",
        original_title="Doctor Appointment",
        date="2025-11-20",
        behavior_type=behavior,
        conversation_pattern=pattern if pattern is not None else ConversationPattern(),
        timestamp=clock().isoformat(),
    )
    values.update(overrides)
    return ActiveEntityContext(**values)


def _set_context(context_manager, user_id, context):
    asyncio.run(context_manager.store.set(user_id, context))


class TestResolveReference:
    def test_power_user_resolves_doctor_appointment(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(
            clock, behavior="power_user",
            pattern=ConversationPattern(context_depth=7),
        ))

        match = asyncio.run(resolver.resolve_reference("U", "move it to 3pm", [TEAM, DOCTOR]))

        assert match is not None
        assert match.entity.id == "doc"
        assert match.score == pytest.approx(0.57)
        assert match.confidence == pytest.approx(0.91)
        assert "exact title match" in match.reasoning
        assert "same date" in match.reasoning
        assert "precision" in match.reasoning

    def test_new_user_with_shallow_context_gets_none(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(
            clock, behavior="new_user",
            pattern=ConversationPattern(context_depth=1),
        ))

        match = asyncio.run(resolver.resolve_reference("U", "move it to 3pm", [TEAM, DOCTOR]))
        assert match is None

        resolution = asyncio.run(resolver.resolve("U", "move it to 3pm", [TEAM, DOCTOR]))
        assert not resolution.accepted
        assert resolution.best.entity.id == "doc"
        assert resolution.best.score == pytest.approx(0.42)
        assert resolution.best.confidence == pytest.approx(0.33)
        assert "confidence" in resolution.reasoning

    def test_no_context_never_guesses(self, resolver):
        assert asyncio.run(resolver.resolve_reference("U", "the meeting", [DOCTOR])) is None
        resolution = asyncio.run(resolver.resolve("U", "the meeting", [DOCTOR]))
        assert resolution.best is None

    def test_no_candidates(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(clock))
        assert asyncio.run(resolver.resolve_reference("U", "the meeting", [])) is None

    def test_high_confidence_does_not_rescue_low_score(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(
            clock, behavior="power_user", cleaned_title="Dentist",
            original_title="Dentist", date="2025-12-01",
            pattern=ConversationPattern(context_depth=2),
        ))
        resolution = asyncio.run(resolver.resolve("U", "that one", [TEAM]))
        assert resolution.best.confidence >= 0.4
        assert resolution.best.score < 0.3
        assert resolution.match is None

    def test_expired_context_is_ignored(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(clock, behavior="power_user"))
        clock.advance(3600)
        assert asyncio.run(resolver.resolve_reference("U", "the appointment", [DOCTOR])) is None

    def test_unreadable_stored_context_means_no_context(self, resolver, memory):
        asyncio.run(memory.store("U", {
            "type": "entity_context",
            "content": {"cleaned_title": "Doctor", "timestamp": 1732000000000},
        }))
        assert asyncio.run(resolver.resolve_reference("U", "the appointment", [DOCTOR])) is None
        outcome = asyncio.run(resolver.process_contextual_update(
            "U", "move the appointment", [DOCTOR],
        ))
        assert outcome.success is False

    def test_match_reanchors_context(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(clock, start_time="14:00"))

        asyncio.run(resolver.resolve_reference("U", "the appointment", [DOCTOR]))

        context = asyncio.run(context_manager.store.get("U"))
        assert context.entity_id == "doc"
        assert context.start_time == "14:00"

    def test_empty_user_id_rejected(self, resolver):
        with pytest.raises(ValueError):
            asyncio.run(resolver.resolve_reference("", "it", [DOCTOR]))


class TestScoring:
    def test_full_match_is_clamped(self, resolver, clock):
        context = _context(
            clock, behavior="power_user", start_time="14:00", location="Clinic",
            pattern=ConversationPattern(
                pattern_type="calendar_focused",
                agent_affinity={"scheduling-agent": 3},
                time_of_day_affinity={"14:00": 2},
                context_depth=8,
            ),
        )
        candidate = CandidateEntity(id="doc", title="Doctor Appointment",
                                    start="2025-11-20T14:00", location="Clinic")
        assert resolver.score(context, candidate, context.conversation_pattern) == 1.0

    def test_emoji_titles_still_match(self, resolver, clock):
        context = _context(clock)
        candidate = CandidateEntity(id="doc", title="📅 Doctor Appointment  ✅",
                                    start="2025-11-20T14:00")
        assert resolver.score(context, candidate) == pytest.approx(0.42)

    def test_help_seeker_penalty(self, resolver, clock):
        regular = resolver.score(_context(clock), DOCTOR)
        helper = resolver.score(_context(clock, behavior="help_seeker"), DOCTOR)
        assert regular - helper == pytest.approx(0.05)

    def test_preferred_time_bonus(self, resolver, clock):
        pattern = ConversationPattern(time_of_day_affinity={"14:00": 2})
        context = _context(clock, pattern=pattern)
        assert resolver.score(context, DOCTOR, pattern) == pytest.approx(0.52)
        assert resolver.score(context, TEAM, pattern) == pytest.approx(0.18)

    def test_scheduling_agent_affinity_bonus(self, resolver, clock):
        pattern = ConversationPattern(agent_affinity={"scheduling-agent": 2, "task-agent": 1})
        context = _context(clock, pattern=pattern)
        assert resolver.score(context, DOCTOR, pattern) == pytest.approx(0.52)
        assert "scheduling agent" in resolver.explain(context, DOCTOR, pattern)

    def test_score_never_negative(self, resolver, clock):
        context = _context(clock, behavior="help_seeker", cleaned_title="X",
                           original_title="X", date=None)
        assert resolver.score(context, TEAM) == 0.0

    def test_calendar_focus_raises_confidence(self, resolver, clock):
        pattern = ConversationPattern(pattern_type="calendar_focused", calendar_frequency=6)
        context = _context(clock, pattern=pattern)
        assert resolver.confidence(context, pattern) == pytest.approx(0.65)

        weak = ConversationPattern(pattern_type="calendar_focused", calendar_frequency=5)
        assert resolver.confidence(context, weak) == pytest.approx(0.5)

    def test_default_reasoning(self, resolver, clock):
        context = _context(clock, cleaned_title="Other", original_title="Other", date=None)
        assert resolver.explain(context, TEAM) == "contextual pattern matching"


class TestContextualUpdate:
    def test_without_context_asks_for_clarification(self, resolver):
        outcome = asyncio.run(resolver.process_contextual_update(
            "U", "change the time for the event to 3:00pm", [DOCTOR],
        ))
        assert outcome.success is False
        assert "Which event" in outcome.message

    def test_low_confidence_keeps_context_for_the_prompt(self, resolver, context_manager, clock):
        _set_context(context_manager, "U", _context(
            clock, behavior="new_user", pattern=ConversationPattern(context_depth=1),
        ))
        outcome = asyncio.run(resolver.process_contextual_update(
            "U", "move the appointment", [DOCTOR],
        ))
        assert outcome.success is False
        assert "Doctor Appointment" in outcome.message
        assert outcome.confidence == pytest.approx(0.33)

    def test_task_focused_time_change_is_annotated(self, resolver, context_manager, clock):
        pattern = ConversationPattern(pattern_type="task_focused", context_depth=5)
        _set_context(context_manager, "U", _context(clock, pattern=pattern))

        outcome = asyncio.run(resolver.process_contextual_update(
            "U", "change the time for the event to 3:00pm", [DOCTOR, TEAM],
        ))

        assert outcome.success is True
        assert outcome.matched.entity.id == "doc"
        assert outcome.update_details.target == "time"
        assert outcome.update_details.value == "15:00"
        assert outcome.validation.is_valid is True
        assert outcome.validation.warnings
        assert "task reminder" in outcome.validation.suggestions[0]

    def test_task_agent_affinity_suggests_delegation(self, resolver):
        pattern = ConversationPattern(agent_affinity={"task-agent": 3, "scheduling-agent": 1})
        validation = resolver.validate_update(UpdateDetails(), pattern)
        assert any("task delegation" in s for s in validation.suggestions)
        assert validation.is_valid

    def test_validation_without_pattern(self, resolver):
        validation = resolver.validate_update(UpdateDetails(target="time"), None)
        assert validation.warnings == []
        assert validation.suggestions == []


class TestExtractUpdateDetails:
    @pytest.mark.parametrize("message,action,target,value", [
        ("cancel the meeting", "cancel", "entity", None),
        ("please delete that appointment", "cancel", "entity", None),
        ("move it to tomorrow", "reschedule", "date", "tomorrow"),
        ("push the meeting to 4:30 pm", "reschedule", "time", "16:30"),
        ("move it to 3pm", "reschedule", "time", "15:00"),
        ("push standup to 9 am", "reschedule", "time", "09:00"),
        ("move it to 13pm", "reschedule", "time", None),
        ("remove the location", "remove", "location", None),
        ("delete the room from the meeting", "remove", "location", None),
        ("remove the title", "remove", "title", None),
        ("remove the 3pm meeting", "cancel", "entity", None),
        ("cancel the room booking", "cancel", "entity", None),
        ("change the location of the event", "change", "location", None),
        ("rename the event", "rename", "title", None),
        ("update the event", "change", "details", None),
    ])
    def test_details(self, resolver, message, action, target, value):
        details = resolver.extract_update_details(message)
        assert details.action == action
        assert details.target == target
        assert details.value == value


class TestInteractionAnalytics:
    def test_reports_pattern_behavior_and_context(self, resolver, context_manager,
                                                  memory, clock):
        for message in ["Schedule a meeting at 9:00am", "Is my calendar free?",
                        "Add the dentist appointment", "thanks", "ok"]:
            memory.add_message("U", "orchestrator-agent", message)
        _set_context(context_manager, "U", _context(clock))

        analytics = asyncio.run(resolver.get_user_interaction_analytics("U"))

        assert analytics["user_id"] == "U"
        assert analytics["conversation_pattern"]["pattern_type"] == "calendar_focused"
        assert analytics["conversation_pattern"]["time_of_day_affinity"] == {"09:00": 1}
        assert analytics["behavior_type"] == "regular_user"
        assert analytics["entity_context"]["cleaned_title"] == "Doctor Appointment"
        assert any("Low context depth" in r for r in analytics["recommendations"])

    def test_unknown_user(self, resolver):
        analytics = asyncio.run(resolver.get_user_interaction_analytics("nobody"))
        assert analytics["behavior_type"] == "new_user"
        assert analytics["entity_context"] is None
