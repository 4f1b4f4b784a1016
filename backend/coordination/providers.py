"""
Calendar and task provider interfaces.

Providers are external collaborators. Adapters report upstream failures as
``ProviderError``. ``load_candidates`` is the boundary: whatever a provider
raises, the resolver just sees no candidates.
"""

import logging
from typing import Optional, Protocol

from coordination.errors import ProviderError
from coordination.models import CandidateEntity

logger = logging.getLogger(__name__)


class EntityProvider(Protocol):
    async def list(self, user_id: str, window: Optional[dict] = None) -> list[dict]: ...

    async def create(self, user_id: str, entity: dict) -> dict: ...

    async def update(self, user_id: str, entity: dict) -> dict: ...

    async def delete(self, user_id: str, entity: dict) -> None: ...


class CalendarProvider(EntityProvider, Protocol):
    """Calendar backend. Entities carry at least id, title, start, end, location."""


class TaskProvider(EntityProvider, Protocol):
    """Task backend. Same entity shape; start is the due time."""


async def load_candidates(provider: EntityProvider, user_id: str,
                          window: Optional[dict] = None) -> list[CandidateEntity]:
    """List a provider's entities as match candidates; [] on any failure."""
    try:
        entities = await provider.list(user_id, window)
    except ProviderError as e:
        logger.warning("[Providers] %s unavailable for user %s: %s",
                       type(provider).__name__, user_id, e)
        return []
    except Exception as e:
        logger.error("[Providers] %s.list failed for user %s: %s",
                     type(provider).__name__, user_id, e)
        return []

    candidates = []
    for entity in entities or []:
        if not isinstance(entity, dict) or not entity.get("id"):
            logger.debug("[Providers] Skipping malformed entity: %r", entity)
            continue
        candidates.append(CandidateEntity.from_dict(entity))
    return candidates
