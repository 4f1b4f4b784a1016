"""
EventReferenceResolver — maps "the event", "it", "that meeting" to one
concrete candidate.

Every candidate gets two independent numbers:

  score       how well it matches the active entity context, nudged by the
              user's conversation pattern and behavior type
  confidence  how much we trust any match for this user at all

The top-scoring candidate is accepted only when score >= 0.3 AND
confidence >= 0.4. Otherwise the caller gets None and should ask a
clarifying question.
"""

import logging
import re
from typing import Optional, Sequence

from coordination.config import AgentsConfig, ScoringConfig
from coordination.entity_context import EntityContextManager
from coordination.errors import require_id
from coordination.models import (
    ActiveEntityContext, BehaviorType, CandidateEntity, ConversationPattern,
    MatchCandidate, PatternType, Resolution, UpdateDetails, UpdateOutcome,
    UpdateValidation,
)
from coordination.patterns import extract_times, normalize_clock_time
from coordination.titles import base_match_score, titles_match

logger = logging.getLogger(__name__)

_CANCEL_RE = re.compile(r"\bcancel\b")
_REMOVE_RE = re.compile(r"\b(delete|remove)\b")
_FIELD_RE = re.compile(r"\b(time|location|room|venue|place|address|title|name)\b")
_RESCHEDULE_RE = re.compile(r"\b(reschedule|move|postpone|push|shift)\b")
_RENAME_RE = re.compile(r"\b(rename|retitle|call it)\b")
_TIME_TARGET_RE = re.compile(r"\b(time|earlier|later|\d{1,2}\s*(am|pm))\b")
_BARE_HOUR_RE = re.compile(r"\b(\d{1,2})\s*(am|pm)\b")
_DATE_TARGET_RE = re.compile(
    r"\b(date|day|today|tomorrow|next week|monday|tuesday|wednesday|thursday|"
    r"friday|saturday|sunday|\d{4}-\d{2}-\d{2})\b"
)
_LOCATION_TARGET_RE = re.compile(r"\b(location|room|venue|place|address)\b")
_TITLE_TARGET_RE = re.compile(r"\b(title|name)\b")


def _bare_hour(text: str) -> Optional[str]:
    """A bare hour like "3pm" as "15:00"; None when absent or impossible."""
    m = _BARE_HOUR_RE.search(text)
    return normalize_clock_time(int(m.group(1)), 0, m.group(2)) if m else None


class EventReferenceResolver:
    """Scores candidates against the user's active entity context."""

    def __init__(self, contexts: EntityContextManager,
                 scoring: Optional[ScoringConfig] = None,
                 agents: Optional[AgentsConfig] = None):
        self.contexts = contexts
        self._cfg = scoring or ScoringConfig()
        self._agents = agents or AgentsConfig()

    # ── Resolution ──

    async def resolve_reference(self, user_id: str, reference: str,
                                candidates: Sequence[CandidateEntity]) -> Optional[MatchCandidate]:
        """The accepted match, or None when the caller should ask for clarification."""
        resolution = await self.resolve(user_id, reference, candidates)
        return resolution.match

    async def resolve(self, user_id: str, reference: str,
                      candidates: Sequence[CandidateEntity]) -> Resolution:
        require_id(user_id, "user_id")
        if not candidates:
            return Resolution(reasoning="no candidates to match against")

        context = await self.contexts.store.get(user_id)
        if context is None:
            logger.info("[Resolver] No active entity context for user %s; not guessing "
                        "at %r", user_id, reference)
            return Resolution(reasoning="no active entity context for user")

        pattern = context.conversation_pattern
        confidence = self.confidence(context, pattern)
        ranked = sorted(
            (MatchCandidate(
                entity=c,
                score=self.score(context, c, pattern),
                confidence=confidence,
                reasoning=self.explain(context, c, pattern),
            ) for c in candidates),
            key=lambda m: m.score,
            reverse=True,
        )
        best = ranked[0]

        if self.accepts(best):
            logger.info("[Resolver] Resolved %r for user %s to %r (score=%.2f, "
                        "confidence=%.2f: %s)", reference, user_id, best.entity.title,
                        best.score, best.confidence, best.reasoning)
            await self.contexts.remember_match(user_id, context, best.entity)
            return Resolution(match=best, best=best, reasoning=best.reasoning)

        diagnostic = (
            f"best candidate {best.entity.title!r} scored {best.score:.2f} with "
            f"confidence {best.confidence:.2f}; needs score >= {self._cfg.min_score} "
            f"and confidence >= {self._cfg.min_confidence} ({best.reasoning})"
        )
        logger.info("[Resolver] Low-confidence match for user %s on %r: %s",
                    user_id, reference, diagnostic)
        return Resolution(best=best, reasoning=diagnostic)

    def accepts(self, candidate: MatchCandidate) -> bool:
        return (candidate.score >= self._cfg.min_score
                and candidate.confidence >= self._cfg.min_confidence)

    # ── Heuristics ──

    def score(self, context: ActiveEntityContext, candidate: CandidateEntity,
              pattern: Optional[ConversationPattern] = None) -> float:
        cfg = self._cfg
        score = base_match_score(context, candidate, cfg) * cfg.base_weight

        if pattern is not None:
            if pattern.pattern_type == PatternType.CALENDAR_FOCUSED.value:
                score += cfg.calendar_focus_bonus
            if self._prefers_calendar_agent(pattern):
                score += cfg.agent_affinity_bonus
            if candidate.time and pattern.time_of_day_affinity.get(candidate.time):
                score += cfg.preferred_time_bonus

        if context.context_depth > cfg.context_depth_threshold:
            score += cfg.context_depth_bonus

        if context.behavior_type == BehaviorType.POWER_USER.value:
            score += cfg.power_user_bonus
        elif context.behavior_type == BehaviorType.HELP_SEEKER.value:
            score -= cfg.help_seeker_penalty

        return max(0.0, min(score, 1.0))

    def confidence(self, context: ActiveEntityContext,
                   pattern: Optional[ConversationPattern] = None) -> float:
        cfg = self._cfg
        confidence = cfg.confidence_base
        confidence += (context.context_depth / 10) * cfg.confidence_depth_weight

        if context.behavior_type == BehaviorType.POWER_USER.value:
            confidence += cfg.confidence_power_user_bonus
        if context.behavior_type == BehaviorType.NEW_USER.value:
            confidence -= cfg.confidence_new_user_penalty

        if (pattern is not None
                and pattern.pattern_type == PatternType.CALENDAR_FOCUSED.value
                and pattern.calendar_frequency > cfg.calendar_focus_min_frequency):
            confidence += cfg.confidence_calendar_focus_bonus

        return max(0.0, min(confidence, 1.0))

    def explain(self, context: ActiveEntityContext, candidate: CandidateEntity,
                pattern: Optional[ConversationPattern] = None) -> str:
        reasons = []
        if titles_match(context.cleaned_title or context.original_title, candidate.title):
            reasons.append("exact title match")
        if context.date and context.date == candidate.date:
            reasons.append("same date")
        if context.start_time and context.start_time == candidate.time:
            reasons.append("same start time")
        if pattern is not None:
            if pattern.pattern_type == PatternType.CALENDAR_FOCUSED.value:
                reasons.append("user has calendar-focused interaction pattern")
            if self._prefers_calendar_agent(pattern):
                reasons.append("user talks to the scheduling agent more than the task agent")
            if candidate.time and pattern.time_of_day_affinity.get(candidate.time):
                reasons.append(f"{candidate.time} is a time the user often mentions")
        if context.behavior_type == BehaviorType.POWER_USER.value:
            reasons.append("user shows precision in event references")
        elif context.behavior_type == BehaviorType.NEW_USER.value:
            reasons.append("new user, lower confidence")
        return ", ".join(reasons) if reasons else "contextual pattern matching"

    def _prefers_calendar_agent(self, pattern: ConversationPattern) -> bool:
        return (pattern.affinity(self._agents.calendar_agent)
                > pattern.affinity(self._agents.task_agent))

    # ── Contextual updates ──

    async def process_contextual_update(self, user_id: str, message: str,
                                        candidates: Sequence[CandidateEntity]) -> UpdateOutcome:
        """Resolve the entity an update message refers to and annotate the update.

        Validation only adds warnings and suggestions; it never blocks.
        """
        context = await self.contexts.store.get(user_id)
        if context is None:
            return UpdateOutcome(
                success=False,
                message="I don't have enough context about your recent events. "
                        "Which event would you like to update?",
            )

        resolution = await self.resolve(user_id, message, candidates)
        if resolution.match is None:
            return UpdateOutcome(
                success=False,
                message=(
                    f"I found your recent {context.entity_type} \"{context.cleaned_title}\" "
                    "but couldn't confidently match it to your current events. "
                    "Could you be more specific?"
                ),
                context=context,
                confidence=resolution.best.confidence if resolution.best else 0.0,
            )

        match = resolution.match
        details = self.extract_update_details(message)
        validation = self.validate_update(details, context.conversation_pattern)
        return UpdateOutcome(
            success=True,
            message=(
                f"Found your event \"{match.entity.title}\" with "
                f"{round(match.confidence * 100)}% confidence ({match.reasoning}). "
                f"Applying {details.action} to {details.target}."
            ),
            matched=match,
            context=context,
            update_details=details,
            validation=validation,
            confidence=match.confidence,
        )

    def extract_update_details(self, message: str) -> UpdateDetails:
        text = (message or "").lower()
        details = UpdateDetails()

        # "remove the location" clears a field; "remove the meeting" cancels it
        removing = bool(_REMOVE_RE.search(text))
        if _CANCEL_RE.search(text) or (removing and not _FIELD_RE.search(text)):
            return UpdateDetails(action="cancel", target="entity")
        if removing:
            details.action = "remove"
        elif _RESCHEDULE_RE.search(text):
            details.action = "reschedule"
        elif _RENAME_RE.search(text):
            details.action = "rename"

        times = extract_times(text)
        date_hit = _DATE_TARGET_RE.search(text)
        if times or _TIME_TARGET_RE.search(text):
            details.target = "time"
            details.value = times[0] if times else _bare_hour(text)
        elif date_hit:
            details.target = "date"
            details.value = date_hit.group(1)
        elif _LOCATION_TARGET_RE.search(text):
            details.target = "location"
        elif details.action == "rename" or _TITLE_TARGET_RE.search(text):
            details.target = "title"
        return details

    def validate_update(self, details: UpdateDetails,
                        pattern: Optional[ConversationPattern]) -> UpdateValidation:
        validation = UpdateValidation()
        if pattern is None:
            return validation

        if (details.target == "time"
                and pattern.pattern_type == PatternType.TASK_FOCUSED.value):
            validation.warnings.append(
                "User typically focuses on tasks, not time management"
            )
            validation.suggestions.append(
                "Consider if this should be a task reminder instead"
            )

        if (details.action == "change"
                and pattern.affinity(self._agents.task_agent)
                > pattern.affinity(self._agents.calendar_agent)):
            validation.suggestions.append(
                "User often uses the task agent - consider task delegation"
            )
        return validation

    # ── Analytics ──

    async def get_user_interaction_analytics(self, user_id: str) -> Optional[dict]:
        """Pattern, behavior, context and recommendations for one user."""
        try:
            history, memories = await self.contexts.load_signals(user_id, limit=50)
            pattern = self.contexts.analyzer.analyze(history, memories)
            context = await self.contexts.store.get(user_id)
            return {
                "user_id": user_id,
                "conversation_pattern": pattern.to_dict(),
                "behavior_type": self.contexts.classifier.classify(history, memories),
                "entity_context": context.to_dict() if context else None,
                "recommendations": self.contexts.analyzer.recommendations(pattern),
            }
        except Exception as e:
            logger.error("[Resolver] Interaction analytics failed for user %s: %s",
                         user_id, e)
            return None
