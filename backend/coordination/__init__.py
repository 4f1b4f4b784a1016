"""
CoordinationSystem — coordinator for the knowledge-coordination subsystem.

Wires together KnowledgeStore, RotationScheduler, KnowledgeSynthesizer,
ConversationPatternAnalyzer, BehaviorClassifier, the active entity context
store and EventReferenceResolver.

Agents talk to it in-process: register()/update()/get_rotated_knowledge()
for shared knowledge, record_entity()/resolve_reference() for references.
With calendar or task providers attached, resolve_from_provider() pulls the
candidates itself.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from coordination.config import CoordinationConfig, get_config
from coordination.memory_client import HttpMemoryStore, InMemoryMemoryStore, MemoryStore
from coordination.models import (
    ActiveEntityContext, CandidateEntity, MatchCandidate, RotatedKnowledgeView,
    UpdateOutcome, utc_now,
)
from coordination.providers import CalendarProvider, TaskProvider, load_candidates
from coordination.stores import InMemoryStore, SqliteStore

logger = logging.getLogger(__name__)


class CoordinationSystem:
    """Top-level coordinator for agent knowledge and reference resolution."""

    def __init__(self, config: Optional[CoordinationConfig] = None,
                 memory: Optional[MemoryStore] = None,
                 clock: Callable[[], datetime] = utc_now,
                 calendar: Optional[CalendarProvider] = None,
                 tasks: Optional[TaskProvider] = None):
        self._config = config or get_config()
        cfg = self._config

        if memory is None:
            memory = (HttpMemoryStore(cfg.memory) if cfg.memory.endpoint
                      else InMemoryMemoryStore())
        self.memory = memory
        self.calendar = calendar
        self.tasks = tasks

        # Per-user state: SQLite when configured, otherwise process memory
        if cfg.storage.sqlite_path:
            path = Path(cfg.storage.sqlite_path)
            records = SqliteStore(path, "knowledge_records")
            rotations = SqliteStore(path, "rotations")
            contexts = SqliteStore(path, "entity_contexts")
        else:
            records, rotations, contexts = InMemoryStore(), InMemoryStore(), InMemoryStore()

        # Knowledge sharing
        from coordination.rotation import RotationScheduler
        from coordination.synthesis import KnowledgeSynthesizer
        from coordination.knowledge import KnowledgeStore
        self.knowledge = KnowledgeStore(
            config=cfg,
            records=records,
            scheduler=RotationScheduler(
                interval_seconds=cfg.rotation.interval_seconds,
                store=rotations, clock=clock,
            ),
            synthesizer=KnowledgeSynthesizer(cfg.synthesis, cfg.agents, clock=clock),
            clock=clock,
        )

        # Conversational signals
        from coordination.patterns import ConversationPatternAnalyzer
        from coordination.behavior import BehaviorClassifier
        analyzer = ConversationPatternAnalyzer(cfg.patterns, cfg.agents)
        classifier = BehaviorClassifier(cfg.behavior)

        # Entity context + resolution
        from coordination.entity_context import ActiveEntityContextStore, EntityContextManager
        from coordination.resolver import EventReferenceResolver
        self.entity_contexts = EntityContextManager(
            store=ActiveEntityContextStore(
                memory, cache=contexts, config=cfg.entity_context, clock=clock,
            ),
            memory=memory,
            analyzer=analyzer,
            classifier=classifier,
            config=cfg.entity_context,
            clock=clock,
        )
        self.resolver = EventReferenceResolver(
            self.entity_contexts, scoring=cfg.scoring, agents=cfg.agents,
        )

        logger.info(
            "[Coordination] System initialized (memory=%s, storage=%s, rotation=%ds, "
            "context_ttl=%ds)",
            type(memory).__name__,
            "sqlite" if cfg.storage.sqlite_path else "memory",
            cfg.rotation.interval_seconds,
            cfg.entity_context.ttl_seconds,
        )

    # ── Knowledge ──

    def register(self, agent_id: str, user_id: str, knowledge=None):
        return self.knowledge.register(agent_id, user_id, knowledge)

    def update(self, agent_id: str, user_id: str, knowledge):
        return self.knowledge.update(agent_id, user_id, knowledge)

    def get_rotated_knowledge(self, requester_id: str, user_id: str) -> RotatedKnowledgeView:
        return self.knowledge.get_rotated_knowledge(requester_id, user_id)

    def cleanup_expired(self) -> list[str]:
        return self.knowledge.cleanup_expired()

    # ── References ──

    async def record_entity(self, user_id: str, entity, source_text: str = "",
                            agent_id: Optional[str] = None) -> ActiveEntityContext:
        return await self.entity_contexts.record_entity(user_id, entity, source_text, agent_id)

    async def resolve_reference(self, user_id: str, reference: str,
                                candidates: Sequence[CandidateEntity]) -> Optional[MatchCandidate]:
        return await self.resolver.resolve_reference(user_id, reference, candidates)

    async def process_contextual_update(self, user_id: str, message: str,
                                        candidates: Sequence[CandidateEntity]) -> UpdateOutcome:
        return await self.resolver.process_contextual_update(user_id, message, candidates)

    async def load_candidates(self, user_id: str,
                              window: Optional[dict] = None) -> list[CandidateEntity]:
        """Calendar entities, then tasks. A failing provider contributes nothing."""
        candidates = []
        for provider in (self.calendar, self.tasks):
            if provider is not None:
                candidates.extend(await load_candidates(provider, user_id, window))
        return candidates

    async def resolve_from_provider(self, user_id: str, reference: str,
                                    window: Optional[dict] = None) -> Optional[MatchCandidate]:
        """Resolve a reference against the configured providers' entities."""
        candidates = await self.load_candidates(user_id, window)
        return await self.resolver.resolve_reference(user_id, reference, candidates)

    def get_status(self) -> dict:
        """Return coordination subsystem status."""
        return {
            "knowledge": self.knowledge.get_health_status(),
            "memory": type(self.memory).__name__,
            "providers": [type(p).__name__ for p in (self.calendar, self.tasks)
                          if p is not None],
            "rotation_interval_seconds": self._config.rotation.interval_seconds,
            "knowledge_ttl_seconds": self._config.rotation.knowledge_ttl_seconds,
            "entity_context_ttl_seconds": self._config.entity_context.ttl_seconds,
        }
