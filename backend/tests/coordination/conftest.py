"""
Shared fixtures for coordination tests.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add backend to path
BACKEND_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(BACKEND_DIR))

os.environ["COORDINATION_CONFIG_PATH"] = str(BACKEND_DIR.parent / "coordination.yaml.example")

from coordination.behavior import BehaviorClassifier  # noqa: E402
from coordination.config import CoordinationConfig  # noqa: E402
from coordination.entity_context import (  # noqa: E402
    ActiveEntityContextStore, EntityContextManager,
)
from coordination.knowledge import KnowledgeStore  # noqa: E402
from coordination.memory_client import InMemoryMemoryStore  # noqa: E402
from coordination.patterns import ConversationPatternAnalyzer  # noqa: E402
from coordination.resolver import EventReferenceResolver  # noqa: E402


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 11, 20, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Default config, independent of any YAML on disk."""
    return CoordinationConfig()


@pytest.fixture
def memory():
    return InMemoryMemoryStore()


@pytest.fixture
def knowledge_store(config, clock):
    return KnowledgeStore(config=config, clock=clock)


@pytest.fixture
def context_manager(config, memory, clock):
    store = ActiveEntityContextStore(memory, config=config.entity_context, clock=clock)
    return EntityContextManager(
        store=store,
        memory=memory,
        analyzer=ConversationPatternAnalyzer(config.patterns, config.agents),
        classifier=BehaviorClassifier(config.behavior),
        config=config.entity_context,
        clock=clock,
    )


@pytest.fixture
def resolver(context_manager, config):
    return EventReferenceResolver(context_manager, scoring=config.scoring, agents=config.agents)
