"""
RotationScheduler — throttles recomputation of rotated knowledge summaries.

Due-ness is evaluated lazily when someone reads; there is no background
timer. A delayed read only makes the summary staler.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from coordination.models import parse_timestamp, utc_now
from coordination.stores import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)


class RotationScheduler:
    """Tracks the last rotation time per user."""

    def __init__(self, interval_seconds: float = 300,
                 store: Optional[KeyValueStore] = None,
                 clock: Callable[[], datetime] = utc_now):
        self._interval = interval_seconds
        self._store = store if store is not None else InMemoryStore()
        self._clock = clock

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def last_rotation(self, user_id: str) -> Optional[datetime]:
        stamp = self._store.get(user_id)
        return parse_timestamp(stamp) if stamp else None

    def is_due(self, user_id: str) -> bool:
        """True if the user has never rotated or the interval has elapsed."""
        last = self.last_rotation(user_id)
        if last is None:
            return True
        return (self._clock() - last).total_seconds() > self._interval

    def mark_rotated(self, user_id: str) -> None:
        self._store.set(user_id, self._clock().isoformat())

    def forget(self, user_id: str) -> None:
        self._store.delete(user_id)

    def scheduled_users(self) -> list[str]:
        return self._store.keys()

    def stale_users(self, factor: float = 2.0) -> list[str]:
        """Users whose last rotation is older than ``factor`` intervals."""
        now = self._clock()
        stale = []
        for user_id in self._store.keys():
            last = self.last_rotation(user_id)
            if last and (now - last).total_seconds() > self._interval * factor:
                stale.append(user_id)
        return stale
