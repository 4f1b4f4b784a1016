"""
Key/value stores backing per-user coordination state.

Components never hold process-global maps; they take a ``KeyValueStore``.
``InMemoryStore`` is the default (and what tests use); ``SqliteStore`` keeps
state across restarts. Values must be JSON-serializable.
"""

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryStore:
    """Dict-backed store. No locking: callers run on a single event loop."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


class SqliteStore:
    """SQLite-backed store. Each namespace gets its own table of JSON blobs."""

    def __init__(self, path: Path, namespace: str):
        if not namespace.isidentifier():
            raise ValueError(f"Namespace must be an identifier: {namespace!r}")
        self._path = Path(path)
        self._table = f"kv_{namespace}"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} ("
                "key TEXT PRIMARY KEY, value TEXT NOT NULL, "
                "updated_at REAL NOT NULL)"
            )
            conn.commit()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._path))
        conn.execute("PRAGMA busy_timeout = 5000")
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str) -> Optional[Any]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT value FROM {self._table} WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.error("[Store] Corrupt value for %s in %s: %s", key, self._table, e)
            return None

    def set(self, key: str, value: Any) -> None:
        with self._connection() as conn:
            conn.execute(
                f"INSERT INTO {self._table} (key, value, updated_at) "
                "VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, json.dumps(value), time.time()),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> list[str]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT key FROM {self._table}").fetchall()
        return [r[0] for r in rows]
