"""
Title normalization and base matching between an entity context and a
candidate entity.
"""

import re
from typing import Optional

from coordination.config import ScoringConfig
from coordination.models import ActiveEntityContext, CandidateEntity

# Emoticons, pictographs, transport, supplemental pictographs, misc symbols,
# dingbats, plus the joiners and variation selectors that glue emoji together.
_SYMBOLS_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"
    "\U0001F300-\U0001F5FF"
    "\U0001F680-\U0001F6FF"
    "\U0001F900-\U0001F9FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\u200D\uFE0E\uFE0F"
    "]"
)
_WHITESPACE_RE = re.compile(r"\s+")

_REFERENCE_PATTERNS = [
    re.compile(r"\b(the|that|it|this)\s+(event|meeting|appointment|call|lunch|break)\b"),
    re.compile(r"\bchange\b.*\b(event|meeting|appointment)\b"),
    re.compile(r"\bupdate\b.*\b(event|meeting|appointment)\b"),
    re.compile(r"\bmodify\b.*\b(event|meeting|appointment)\b"),
]


def normalize_title(title: Optional[str]) -> str:
    """Strip decorative symbols and collapse whitespace. Idempotent."""
    if not title:
        return ""
    stripped = _SYMBOLS_RE.sub("", title)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def titles_match(a: Optional[str], b: Optional[str]) -> bool:
    left, right = normalize_title(a), normalize_title(b)
    return bool(left) and left.casefold() == right.casefold()


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().casefold() == b.strip().casefold()


def base_match_score(context: ActiveEntityContext, candidate: CandidateEntity,
                     config: Optional[ScoringConfig] = None) -> float:
    """Fraction (0-1) of title/date/time/location that agree.

    A field missing on either side contributes nothing; it is never a penalty.
    """
    cfg = config or ScoringConfig()
    score = 0.0
    if titles_match(context.cleaned_title or context.original_title, candidate.title):
        score += cfg.title_weight
    if _same(context.date, candidate.date):
        score += cfg.date_weight
    if _same(context.start_time, candidate.time):
        score += cfg.time_weight
    if _same(context.location, candidate.location):
        score += cfg.location_weight
    return min(score, 1.0)


def is_entity_reference(message: str) -> bool:
    """Whether a message points back at a previously mentioned entity."""
    lowered = (message or "").lower()
    return any(p.search(lowered) for p in _REFERENCE_PATTERNS)
