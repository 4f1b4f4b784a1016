"""
ConversationPatternAnalyzer — derives a ConversationPattern from recent
conversation and long-term memory.

Long-term memory hits count double. Counters are not normalized by
memory-set size; only context_depth is clamped.
"""

import logging
import re
from typing import Iterable, Optional

from coordination.config import AgentsConfig, PatternConfig
from coordination.models import ConversationPattern, PatternType

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)?\b")


def normalize_clock_time(hour: int, minute: int,
                         meridiem: Optional[str] = None) -> Optional[str]:
    """Return "HH:MM" in 24h form, or None for impossible times."""
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def extract_times(text: str) -> list[str]:
    """All clock times mentioned in ``text``, normalized to 24h "HH:MM"."""
    times = []
    for m in _TIME_RE.finditer(text.lower()):
        normalized = normalize_clock_time(int(m.group(1)), int(m.group(2)), m.group(3))
        if normalized:
            times.append(normalized)
    return times


def memory_summary(memory) -> str:
    """Long-term memories arrive as {"summary": ...} dicts or bare strings."""
    if isinstance(memory, dict):
        return str(memory.get("summary") or "")
    return str(memory or "")


class ConversationPatternAnalyzer:
    """Counts calendar/task vocabulary, agent mentions and clock times."""

    def __init__(self, config: Optional[PatternConfig] = None,
                 agents: Optional[AgentsConfig] = None):
        self._config = config or PatternConfig()
        self._agents = agents or AgentsConfig()

    @property
    def max_history(self) -> int:
        return self._config.max_history

    def analyze(self, short_term: Iterable[str], long_term: Iterable,
                current_message: str = "") -> ConversationPattern:
        cfg = self._config
        history = list(short_term)[-cfg.max_history:] if cfg.max_history else []
        memories = list(long_term)
        pattern = ConversationPattern()

        utterances = history + ([current_message] if current_message else [])
        for text in utterances:
            lowered = text.lower()
            if self._mentions(lowered, cfg.calendar_keywords):
                pattern.calendar_frequency += cfg.short_term_weight
            if self._mentions(lowered, cfg.task_keywords):
                pattern.task_frequency += cfg.short_term_weight

            for agent_id, aliases in self._agents.aliases.items():
                if self._mentions(lowered, aliases):
                    pattern.agent_affinity[agent_id] = pattern.agent_affinity.get(agent_id, 0) + 1

            for clock_time in extract_times(lowered):
                pattern.time_of_day_affinity[clock_time] = (
                    pattern.time_of_day_affinity.get(clock_time, 0) + 1
                )

        for memory in memories:
            summary = memory_summary(memory).lower()
            if self._mentions(summary, cfg.calendar_keywords):
                pattern.calendar_frequency += cfg.long_term_weight
            if self._mentions(summary, cfg.task_keywords):
                pattern.task_frequency += cfg.long_term_weight

        pattern.pattern_type = self.classify(pattern.calendar_frequency,
                                             pattern.task_frequency)
        pattern.context_depth = self.context_depth(len(history), len(memories))
        return pattern

    def classify(self, calendar_frequency: int, task_frequency: int) -> str:
        ratio = self._config.dominance_ratio
        if calendar_frequency > task_frequency * ratio:
            return PatternType.CALENDAR_FOCUSED.value
        if task_frequency > calendar_frequency * ratio:
            return PatternType.TASK_FOCUSED.value
        return PatternType.BALANCED.value

    def context_depth(self, short_term_count: int, long_term_count: int) -> float:
        cfg = self._config
        depth = (short_term_count * cfg.short_term_depth_weight
                 + long_term_count * cfg.long_term_depth_weight)
        return min(depth, cfg.max_context_depth)

    def recommendations(self, pattern: ConversationPattern) -> list[str]:
        """Advisory notes for agents talking to this user."""
        notes = []
        if (pattern.pattern_type == PatternType.CALENDAR_FOCUSED.value
                and pattern.calendar_frequency < 3):
            notes.append("User shows calendar focus but low frequency - "
                         "consider proactive calendar suggestions")
        task_affinity = pattern.affinity(self._agents.task_agent)
        if task_affinity > pattern.affinity(self._agents.calendar_agent) * 2:
            notes.append("Strong task preference - consider task-based "
                         "alternatives to calendar events")
        if pattern.context_depth < 3:
            notes.append("Low context depth - provide more explicit "
                         "confirmation and context")
        return notes

    @staticmethod
    def _mentions(text: str, vocabulary: Iterable[str]) -> bool:
        return any(word in text for word in vocabulary)
