"""Tests for provider candidate loading."""

import asyncio
import logging

from coordination.errors import ProviderError
from coordination.providers import load_candidates


class FakeCalendar:
    def __init__(self, entities=None, error=None):
        self.entities = entities or []
        self.error = error
        self.windows = []

    async def list(self, user_id, window=None):
        self.windows.append(window)
        if self.error:
            raise self.error
        return self.entities

    async def create(self, user_id, entity):
        return entity

    async def update(self, user_id, entity):
        return entity

    async def delete(self, user_id, entity):
        return None


class TestLoadCandidates:
    def test_converts_entities(self):
        provider = FakeCalendar([
            {"id": "e1", "summary": "Standup", "start": {"dateTime": "2025-11-20T09:30:00Z"}},
            {"id": "e2", "title": "Lunch", "start": "2025-11-20T12:00", "location": "Cafe"},
        ])
        window = {"start": "2025-11-20", "end": "2025-11-21"}

        candidates = asyncio.run(load_candidates(provider, "u1", window))

        assert [c.id for c in candidates] == ["e1", "e2"]
        assert candidates[0].title == "Standup"
        assert candidates[0].time == "09:30"
        assert candidates[1].location == "Cafe"
        assert provider.windows == [window]

    def test_skips_malformed(self):
        provider = FakeCalendar([{"title": "no id"}, "garbage", None, {"id": "ok"}])
        candidates = asyncio.run(load_candidates(provider, "u1"))
        assert [c.id for c in candidates] == ["ok"]

    def test_provider_failure_gives_no_candidates(self):
        provider = FakeCalendar(error=ProviderError("calendar API down"))
        assert asyncio.run(load_candidates(provider, "u1")) == []

    def test_unexpected_failure_gives_no_candidates(self):
        provider = FakeCalendar(error=TimeoutError())
        assert asyncio.run(load_candidates(provider, "u1")) == []

    def test_provider_error_logged_as_warning(self, caplog):
        provider = FakeCalendar(error=ProviderError("calendar API down"))
        with caplog.at_level(logging.WARNING, logger="coordination.providers"):
            asyncio.run(load_candidates(provider, "u1"))
        assert [r.levelname for r in caplog.records] == ["WARNING"]
        assert "calendar API down" in caplog.text

    def test_unexpected_failure_logged_as_error(self, caplog):
        provider = FakeCalendar(error=RuntimeError("boom"))
        with caplog.at_level(logging.WARNING, logger="coordination.providers"):
            asyncio.run(load_candidates(provider, "u1"))
        assert [r.levelname for r in caplog.records] == ["ERROR"]
