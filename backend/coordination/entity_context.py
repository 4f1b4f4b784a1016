"""
Active entity context — the entity each user most recently created or
referred to, which anchors later references like "move it to 3pm".

Contexts live in an in-process cache backed by the durable memory store.
Both are bounded by a TTL (1 hour by default); an expired entry reads as
absent whether or not it has been deleted.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Union

from coordination.behavior import BehaviorClassifier
from coordination.config import EntityContextConfig
from coordination.errors import require_id
from coordination.memory_client import MemoryStore
from coordination.models import (
    ActiveEntityContext, CandidateEntity, ConversationPattern, parse_timestamp,
    split_start, utc_now,
)
from coordination.patterns import ConversationPatternAnalyzer
from coordination.stores import InMemoryStore, KeyValueStore
from coordination.titles import normalize_title

logger = logging.getLogger(__name__)


class ActiveEntityContextStore:
    """One live ActiveEntityContext per user, cache first, durable second."""

    def __init__(self, memory: MemoryStore,
                 cache: Optional[KeyValueStore] = None,
                 config: Optional[EntityContextConfig] = None,
                 clock: Callable[[], datetime] = utc_now):
        self._memory = memory
        self._cache = cache if cache is not None else InMemoryStore()
        self._config = config or EntityContextConfig()
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._config.ttl_seconds

    async def get(self, user_id: str) -> Optional[ActiveEntityContext]:
        """Live context for the user, or None if absent or stale."""
        now = self._clock()
        cached = self._cache.get(user_id)
        if cached:
            context = ActiveEntityContext.from_dict(cached)
            if not context.is_expired(now, self.ttl_seconds):
                return context
            self._cache.delete(user_id)

        context = await self._load_durable(user_id)
        if context is None or context.is_expired(now, self.ttl_seconds):
            return None

        self._cache.set(user_id, context.to_dict())
        return context

    async def _load_durable(self, user_id: str) -> Optional[ActiveEntityContext]:
        try:
            records = await self._memory.query_by_type(user_id, self._config.memory_type)
        except Exception as e:
            logger.error("[EntityContext] Durable lookup failed for user %s: %s", user_id, e)
            return None

        contexts = []
        for record in records or []:
            content = record.get("content") if isinstance(record, dict) else None
            if not isinstance(content, dict):
                continue
            try:
                context = ActiveEntityContext.from_dict(content)
                contexts.append((parse_timestamp(context.timestamp), context))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("[EntityContext] Skipping unreadable context for %s: %s",
                               user_id, e)
        if not contexts:
            return None
        return max(contexts, key=lambda pair: pair[0])[1]

    async def set(self, user_id: str, context: ActiveEntityContext) -> None:
        """Overwrite the user's context. Durable write failures are logged only."""
        self._cache.set(user_id, context.to_dict())
        record = {
            "type": self._config.memory_type,
            "summary": f"Entity: {context.cleaned_title} on {context.date}",
            "content": context.to_dict(),
            "tags": [
                "entity", "context", context.entity_type,
                context.conversation_pattern.pattern_type
                if context.conversation_pattern else "unknown",
                context.behavior_type,
            ],
            "metadata": {
                "agents_involved": context.agents_involved,
                "created_at": context.timestamp,
            },
        }
        try:
            await self._memory.store(user_id, record)
        except Exception as e:
            logger.error("[EntityContext] Durable write failed for user %s: %s", user_id, e)

    def clear(self, user_id: str) -> None:
        """Drop the cached context. Durable copies age out through the TTL."""
        self._cache.delete(user_id)


class EntityContextManager:
    """Records entity contexts together with the conversational signals behind them."""

    def __init__(self, store: ActiveEntityContextStore, memory: MemoryStore,
                 analyzer: Optional[ConversationPatternAnalyzer] = None,
                 classifier: Optional[BehaviorClassifier] = None,
                 config: Optional[EntityContextConfig] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._memory = memory
        self.analyzer = analyzer or ConversationPatternAnalyzer()
        self.classifier = classifier or BehaviorClassifier()
        self._config = config or EntityContextConfig()
        self._clock = clock

    async def load_signals(self, user_id: str,
                           limit: Optional[int] = None) -> tuple[list[str], list]:
        """Recent conversation and long-term memories; empty on upstream failure."""
        limit = limit if limit is not None else self.analyzer.max_history
        try:
            history = await self._memory.get_recent_conversation(
                user_id, self._config.conversation_agent, limit,
            )
        except Exception as e:
            logger.error("[EntityContext] Conversation lookup failed for user %s: %s",
                         user_id, e)
            history = []
        try:
            memories = await self._memory.get_long_term_memories(user_id)
        except Exception as e:
            logger.error("[EntityContext] Long-term memory lookup failed for user %s: %s",
                         user_id, e)
            memories = []
        return list(history or []), list(memories or [])

    async def analyze(self, user_id: str,
                      current_message: str = "") -> tuple[ConversationPattern, str]:
        history, memories = await self.load_signals(user_id)
        pattern = self.analyzer.analyze(history, memories, current_message)
        behavior = self.classifier.classify(history, memories)
        return pattern, behavior

    async def record_entity(self, user_id: str,
                            entity: Union[CandidateEntity, dict],
                            source_text: str = "",
                            agent_id: Optional[str] = None) -> ActiveEntityContext:
        """Make ``entity`` the user's active context, snapshotting current signals."""
        require_id(user_id, "user_id")
        pattern, behavior = await self.analyze(user_id, source_text)
        context = self._build_context(entity, source_text, pattern, behavior, agent_id)
        await self.store.set(user_id, context)
        logger.info("[EntityContext] Context updated for user %s: title=%r, pattern=%s, "
                    "behavior=%s", user_id, context.cleaned_title,
                    pattern.pattern_type, behavior)
        return context

    async def remember_match(self, user_id: str, previous: ActiveEntityContext,
                             candidate: CandidateEntity) -> ActiveEntityContext:
        """Re-anchor on a successfully resolved candidate, keeping prior signals."""
        context = self._build_context(
            candidate, previous.source_text, previous.conversation_pattern,
            previous.behavior_type, None,
        )
        context.entity_type = previous.entity_type
        context.agents_involved = list(previous.agents_involved)
        await self.store.set(user_id, context)
        return context

    def _build_context(self, entity, source_text: str,
                       pattern: Optional[ConversationPattern], behavior: str,
                       agent_id: Optional[str]) -> ActiveEntityContext:
        if isinstance(entity, CandidateEntity):
            entity_id, title, location = entity.id, entity.title, entity.location
            date, start_time = entity.date, entity.time
            end_time = split_start(entity.end)[1]
            entity_type = "general"
        else:
            candidate = CandidateEntity.from_dict(entity)
            entity_id, title, location = candidate.id, candidate.title, candidate.location
            date = entity.get("date") or candidate.date
            start_time = entity.get("start_time") or candidate.time
            end_time = entity.get("end_time") or split_start(candidate.end)[1]
            entity_type = entity.get("type") or entity.get("event_type") or "general"

        return ActiveEntityContext(
            entity_id=entity_id,
            cleaned_title=normalize_title(title),
            original_title=title,
            date=date,
            start_time=start_time,
            end_time=end_time,
            entity_type=entity_type,
            location=location,
            source_text=source_text,
            conversation_pattern=pattern,
            behavior_type=behavior,
            agents_involved=[agent_id] if agent_id else [],
            timestamp=self._clock().isoformat(),
        )
