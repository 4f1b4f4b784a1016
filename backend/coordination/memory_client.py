"""
Memory store clients — the durable long-term memory the coordinator reads
from but does not own.

``MemoryStore`` is the interface. ``InMemoryMemoryStore`` backs tests and
single-process deployments; ``HttpMemoryStore`` talks to a remote memory
service over HTTP. Both may return empty results; callers must cope.
"""

import logging
from typing import Optional, Protocol

import httpx

from coordination.config import MemoryServiceConfig
from coordination.errors import MemoryStoreError

logger = logging.getLogger(__name__)


class MemoryStore(Protocol):
    async def store(self, user_id: str, record: dict) -> None: ...

    async def query_by_type(self, user_id: str, record_type: str) -> list[dict]: ...

    async def get_recent_conversation(self, user_id: str, agent_id: str,
                                      limit: int) -> list[str]: ...

    async def get_long_term_memories(self, user_id: str) -> list[dict]: ...


class InMemoryMemoryStore:
    """Process-local memory store."""

    def __init__(self):
        self._records: dict[str, list[dict]] = {}
        self._conversations: dict[tuple[str, str], list[str]] = {}
        self._long_term: dict[str, list[dict]] = {}

    async def store(self, user_id: str, record: dict) -> None:
        self._records.setdefault(user_id, []).append(record)

    async def query_by_type(self, user_id: str, record_type: str) -> list[dict]:
        return [r for r in self._records.get(user_id, []) if r.get("type") == record_type]

    async def get_recent_conversation(self, user_id: str, agent_id: str,
                                      limit: int) -> list[str]:
        messages = self._conversations.get((user_id, agent_id), [])
        return list(messages[-limit:]) if limit > 0 else []

    async def get_long_term_memories(self, user_id: str) -> list[dict]:
        return list(self._long_term.get(user_id, []))

    # ── Seeding ──

    def add_message(self, user_id: str, agent_id: str, message: str) -> None:
        self._conversations.setdefault((user_id, agent_id), []).append(message)

    def add_long_term_memory(self, user_id: str, summary: str, **extra) -> None:
        self._long_term.setdefault(user_id, []).append({"summary": summary, **extra})


class HttpMemoryStore:
    """Memory service client over HTTP.

    Endpoints (relative to ``endpoint``):
      POST /users/{user_id}/memories
      GET  /users/{user_id}/memories?type=...
      GET  /users/{user_id}/conversations/{agent_id}?limit=...
      GET  /users/{user_id}/long-term
    """

    def __init__(self, config: MemoryServiceConfig,
                 client: Optional[httpx.AsyncClient] = None):
        if not config.endpoint:
            raise ValueError("Memory service endpoint not configured")
        self._base = config.endpoint.rstrip("/")
        self._timeout = config.timeout_seconds
        self._headers = {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        self._client = client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self._base}{path}"
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, headers=self._headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, url, headers=self._headers, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            raise MemoryStoreError(
                f"Memory service returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise MemoryStoreError(f"Cannot reach memory service at {self._base}: {e}") from e

    async def store(self, user_id: str, record: dict) -> None:
        await self._request("POST", f"/users/{user_id}/memories", json=record)

    async def query_by_type(self, user_id: str, record_type: str) -> list[dict]:
        resp = await self._request("GET", f"/users/{user_id}/memories",
                                   params={"type": record_type})
        return self._items(resp)

    async def get_recent_conversation(self, user_id: str, agent_id: str,
                                      limit: int) -> list[str]:
        resp = await self._request("GET", f"/users/{user_id}/conversations/{agent_id}",
                                   params={"limit": limit})
        items = self._items(resp)
        return [i["content"] if isinstance(i, dict) else str(i) for i in items]

    async def get_long_term_memories(self, user_id: str) -> list[dict]:
        resp = await self._request("GET", f"/users/{user_id}/long-term")
        return [i for i in self._items(resp) if isinstance(i, dict)]

    @staticmethod
    def _items(resp: httpx.Response) -> list:
        try:
            data = resp.json()
        except ValueError as e:
            raise MemoryStoreError(f"Memory service returned invalid JSON: {e}") from e
        if isinstance(data, dict):
            data = data.get("items", [])
        return data if isinstance(data, list) else []
