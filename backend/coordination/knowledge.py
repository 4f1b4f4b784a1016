"""
KnowledgeStore — per-user record of what each agent knows, plus the
rotated cross-agent view handed back to agents.

Agents push knowledge with register()/update(); reads go through
get_rotated_knowledge(), which lazily rotates the synthesized summary and
returns each other contributor's knowledge sanitized for the requester.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from coordination.config import CoordinationConfig, get_config
from coordination.errors import require_id
from coordination.models import (
    AgentContribution, CoordinationHints, RotatedKnowledgeView,
    UserKnowledgeRecord, parse_timestamp, utc_now,
)
from coordination.rotation import RotationScheduler
from coordination.schemas import (
    SchedulingKnowledge, TaskKnowledge, load_knowledge, parse_knowledge,
)
from coordination.stores import InMemoryStore, KeyValueStore
from coordination.synthesis import KnowledgeSynthesizer

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """Aggregates each agent's latest knowledge snapshot per user."""

    def __init__(self, config: Optional[CoordinationConfig] = None,
                 records: Optional[KeyValueStore] = None,
                 scheduler: Optional[RotationScheduler] = None,
                 synthesizer: Optional[KnowledgeSynthesizer] = None,
                 clock: Callable[[], datetime] = utc_now):
        self._config = config or get_config()
        self._agents = self._config.agents
        self._records = records if records is not None else InMemoryStore()
        self._clock = clock
        self.scheduler = scheduler or RotationScheduler(
            interval_seconds=self._config.rotation.interval_seconds, clock=clock,
        )
        self.synthesizer = synthesizer or KnowledgeSynthesizer(
            self._config.synthesis, self._agents, clock=clock,
        )

    # ── Records ──

    def get_record(self, user_id: str) -> Optional[UserKnowledgeRecord]:
        raw = self._records.get(user_id)
        return UserKnowledgeRecord.from_dict(raw) if raw else None

    def _save_record(self, record: UserKnowledgeRecord) -> None:
        self._records.set(record.user_id, record.to_dict())

    def user_ids(self) -> list[str]:
        return self._records.keys()

    def access_level_for(self, agent_id: str) -> str:
        """Known agents get their domain level; anything else is 'limited'."""
        return self._agents.access_levels().get(
            agent_id, self._agents.default_access_level
        )

    # ── Writes ──

    def register(self, agent_id: str, user_id: str,
                 knowledge=None) -> UserKnowledgeRecord:
        """Upsert an agent's knowledge slice, creating the user record if needed.

        Does not rotate; rotation happens lazily on read.
        """
        record = self._upsert(agent_id, user_id, knowledge)
        logger.info("[Knowledge] Registered %s knowledge for user %s", agent_id, user_id)
        return record

    def update(self, agent_id: str, user_id: str, knowledge) -> UserKnowledgeRecord:
        """Same as register(), but warns when the user has no record yet."""
        require_id(user_id, "user_id")
        if self._records.get(user_id) is None:
            logger.warning("[Knowledge] No knowledge record for user %s — creating one "
                           "from %s update", user_id, agent_id)
        record = self._upsert(agent_id, user_id, knowledge)
        logger.info("[Knowledge] Updated %s knowledge for user %s", agent_id, user_id)
        return record

    def _upsert(self, agent_id: str, user_id: str, knowledge) -> UserKnowledgeRecord:
        require_id(agent_id, "agent_id")
        require_id(user_id, "user_id")
        validated = parse_knowledge(agent_id, knowledge, self._agents)

        now = self._clock().isoformat()
        record = self.get_record(user_id) or UserKnowledgeRecord(user_id=user_id)
        record.agent_contributions[agent_id] = AgentContribution(
            knowledge=validated.model_dump(),
            last_updated=now,
            access_level=self.access_level_for(agent_id),
        )
        record.last_updated = now
        self._save_record(record)
        return record

    # ── Rotation ──

    def check_and_rotate(self, user_id: str) -> bool:
        """Resynthesize the user's summary if the rotation interval has elapsed.

        Returns True if a new summary was produced. The rotation stamp is only
        set when synthesis actually ran.
        """
        record = self.get_record(user_id)
        if record is None or not self.scheduler.is_due(user_id):
            return False

        summary = self.synthesizer.synthesize(record)
        if summary is None:
            return False

        record.rotated_summary = summary
        self._save_record(record)
        self.scheduler.mark_rotated(user_id)
        logger.info("[Knowledge] Rotated knowledge for user %s (%d agents, insights=%s)",
                    user_id, len(summary.participating_agents), summary.insight_types())
        return True

    # ── Reads ──

    def get_rotated_knowledge(self, requester_id: str,
                              user_id: str) -> RotatedKnowledgeView:
        """Everything the other agents know about a user, sanitized for the requester."""
        require_id(requester_id, "requester_id")
        require_id(user_id, "user_id")

        if self._records.get(user_id) is None:
            logger.debug("[Knowledge] No knowledge found for user %s", user_id)
            return self.empty_view(user_id)

        self.check_and_rotate(user_id)
        record = self.get_record(user_id)

        contributors = [a for a in record.agent_contributions if a != requester_id]
        typed = {
            agent_id: load_knowledge(record.agent_contributions[agent_id].knowledge)
            for agent_id in contributors
        }

        view = RotatedKnowledgeView(
            user_id=user_id,
            timestamp=self._clock().isoformat(),
            contributors=contributors,
            knowledge={
                agent_id: self.sanitize_for_agent(knowledge, requester_id)
                for agent_id, knowledge in typed.items()
            },
            coordination_hints=self.synthesizer.generate_hints(typed),
            insights=(
                list(record.rotated_summary.coordination_insights)
                if record.rotated_summary else []
            ),
        )
        logger.debug("[Knowledge] Provided rotated knowledge to %s for user %s",
                     requester_id, user_id)
        return view

    def sanitize_for_agent(self, knowledge, requester_id: str) -> dict:
        """Keep only the fields relevant to the requester's domain.

        Only the task and scheduling agents have a whitelist; any other
        requester gets an empty pattern map.
        """
        sanitized = {"patterns": {}}

        if (requester_id == self._agents.task_agent
                and isinstance(knowledge, SchedulingKnowledge)):
            buffer = knowledge.coordination_hints.buffer_time_needed
            sanitized["patterns"]["scheduling"] = {
                "total_events": knowledge.calendar_snapshot.total_events,
                "buffer_preference": (
                    buffer if buffer is not None
                    else self._config.synthesis.default_buffer_time
                ),
            }

        if (requester_id == self._agents.calendar_agent
                and isinstance(knowledge, TaskKnowledge)):
            sanitized["patterns"]["productivity"] = {
                "completion_rate": knowledge.productivity_snapshot.completion_rate,
                "task_types": list(knowledge.recent_patterns.recent_task_types),
            }

        return sanitized

    def empty_view(self, user_id: str) -> RotatedKnowledgeView:
        """Structurally complete view for users nobody has registered yet."""
        return RotatedKnowledgeView(
            user_id=user_id,
            timestamp=self._clock().isoformat(),
            coordination_hints=CoordinationHints(
                recommendations=["start-building-profile"],
            ),
        )

    def get_comprehensive_knowledge(self, user_id: str) -> dict:
        """Orchestrator's view plus the raw record, for coordination decisions."""
        rotated = self.get_rotated_knowledge(self._agents.orchestrator_agent, user_id)
        record = self.get_record(user_id)
        return {
            "user_id": user_id,
            "rotated": rotated.to_dict(),
            "raw": record.to_dict() if record else {},
            "timestamp": self._clock().isoformat(),
        }

    # ── Agent integration ──

    def register_agent(self, agent_id: str, user_id: str, source) -> bool:
        """Pull knowledge from an agent object and register it.

        ``source`` exposes ``get_knowledge_for_agents(user_id) -> dict``.
        Failures are logged and reported as False.
        """
        try:
            getter = getattr(source, "get_knowledge_for_agents", None)
            knowledge = getter(user_id) if callable(getter) else {}
            self.register(agent_id, user_id, knowledge)
            return True
        except Exception as e:
            logger.error("[Knowledge] Failed to register %s for user %s: %s",
                         agent_id, user_id, e)
            return False

    # ── Lifecycle ──

    def cleanup_expired(self, max_age_seconds: Optional[float] = None) -> list[str]:
        """Delete records not updated within the TTL. Returns removed user ids."""
        ttl = (max_age_seconds if max_age_seconds is not None
               else self._config.rotation.knowledge_ttl_seconds)
        now = self._clock()
        removed = []

        for user_id in self._records.keys():
            record = self.get_record(user_id)
            if record is None:
                continue
            age = (now - parse_timestamp(record.last_updated)).total_seconds()
            if age > ttl:
                self._records.delete(user_id)
                self.scheduler.forget(user_id)
                removed.append(user_id)
                logger.info("[Knowledge] Cleaned up expired knowledge for user %s", user_id)

        return removed

    def get_health_status(self) -> dict:
        agents = set()
        for user_id in self._records.keys():
            record = self.get_record(user_id)
            if record:
                agents.update(record.agent_contributions)

        stale = self.scheduler.stale_users()
        return {
            "total_users": len(self._records.keys()),
            "active_agents": len(agents),
            "rotation_schedule": len(self.scheduler.scheduled_users()),
            "stale_rotations": stale,
            "needs_cleanup": bool(stale),
            "checked_at": self._clock().isoformat(),
        }
