"""
Coordination config — loads coordination.yaml and provides validated settings.

Every threshold and weight used by rotation, synthesis, pattern analysis,
behavior classification and reference scoring lives here as a named value.

Usage:
    from coordination.config import get_config
    config = get_config()
    print(config.scoring.min_score)
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# ── Config Path Resolution ──
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "coordination.yaml"


# ── Dataclasses ──

@dataclass
class AgentsConfig:
    calendar_agent: str = "scheduling-agent"
    task_agent: str = "task-agent"
    orchestrator_agent: str = "orchestrator-agent"
    default_access_level: str = "limited"
    # Lowercase substrings counted as a mention of the agent in conversation
    aliases: dict[str, list[str]] = field(default_factory=lambda: {
        "scheduling-agent": ["scheduling-agent", "scheduling agent", "scheduler"],
        "task-agent": ["task-agent", "task agent"],
        "orchestrator-agent": ["orchestrator-agent", "orchestrator"],
    })

    def access_levels(self) -> dict[str, str]:
        return {
            self.orchestrator_agent: "full",
            self.task_agent: "task-focused",
            self.calendar_agent: "schedule-focused",
        }


@dataclass
class RotationConfig:
    interval_seconds: int = 300
    knowledge_ttl_seconds: int = 1800


@dataclass
class SynthesisConfig:
    experienced_min_events: int = 20      # strictly greater than
    intermediate_min_events: int = 5      # strictly greater than
    power_user_completion_rate: float = 80.0
    needs_support_completion_rate: float = 50.0
    buffer_time_threshold: int = 15       # minutes
    default_buffer_time: int = 15         # minutes
    preferred_task_completion_rate: float = 70.0
    preferred_scheduling_min_events: int = 10


@dataclass
class PatternConfig:
    max_history: int = 15
    calendar_keywords: list[str] = field(default_factory=lambda: [
        "calendar", "meeting", "event", "appointment",
    ])
    task_keywords: list[str] = field(default_factory=lambda: [
        "task", "todo", "reminder",
    ])
    short_term_weight: int = 1
    long_term_weight: int = 2
    dominance_ratio: float = 1.5
    short_term_depth_weight: float = 0.3
    long_term_depth_weight: float = 0.7
    max_context_depth: float = 10.0


@dataclass
class BehaviorConfig:
    new_user_max_short_term: int = 5      # strictly less than
    new_user_max_long_term: int = 3       # strictly less than
    power_user_min_short_term: int = 20   # strictly greater than
    power_user_min_long_term: int = 10    # strictly greater than


@dataclass
class ScoringConfig:
    # Base match
    base_weight: float = 0.6
    title_weight: float = 0.4
    date_weight: float = 0.3
    time_weight: float = 0.2
    location_weight: float = 0.1
    # Score adjustments
    calendar_focus_bonus: float = 0.1
    agent_affinity_bonus: float = 0.1
    preferred_time_bonus: float = 0.1
    context_depth_threshold: float = 5.0
    context_depth_bonus: float = 0.05
    power_user_bonus: float = 0.1
    help_seeker_penalty: float = 0.05
    # Confidence
    confidence_base: float = 0.5
    confidence_depth_weight: float = 0.3
    confidence_power_user_bonus: float = 0.2
    confidence_new_user_penalty: float = 0.2
    confidence_calendar_focus_bonus: float = 0.15
    calendar_focus_min_frequency: int = 5
    # Acceptance
    min_score: float = 0.3
    min_confidence: float = 0.4


@dataclass
class EntityContextConfig:
    ttl_seconds: int = 3600
    memory_type: str = "entity_context"
    conversation_agent: str = "orchestrator-agent"


@dataclass
class MemoryServiceConfig:
    endpoint: str = ""
    api_key: str = ""  # loaded from COORDINATION_MEMORY_API_KEY env var
    timeout_seconds: float = 10.0


@dataclass
class StorageConfig:
    sqlite_path: str = ""  # empty keeps everything in process memory


@dataclass
class CoordinationConfig:
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    rotation: RotationConfig = field(default_factory=RotationConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    patterns: PatternConfig = field(default_factory=PatternConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    entity_context: EntityContextConfig = field(default_factory=EntityContextConfig)
    memory: MemoryServiceConfig = field(default_factory=MemoryServiceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


# ── Parsing ──

def _parse_dict(data: dict, cls, **overrides):
    """Create a dataclass instance from a dict, ignoring unknown keys."""
    field_names = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in data.items() if k in field_names}
    filtered.update(overrides)
    return cls(**filtered)


_SECTIONS = {
    "agents": AgentsConfig,
    "rotation": RotationConfig,
    "synthesis": SynthesisConfig,
    "patterns": PatternConfig,
    "behavior": BehaviorConfig,
    "scoring": ScoringConfig,
    "entity_context": EntityContextConfig,
    "storage": StorageConfig,
}


def load_config_from_dict(raw: dict) -> CoordinationConfig:
    """Parse a raw YAML dict into a CoordinationConfig dataclass."""
    config = CoordinationConfig()

    for section, cls in _SECTIONS.items():
        if section in raw and isinstance(raw[section], dict):
            setattr(config, section, _parse_dict(raw[section], cls))

    # Alias map merges with the defaults so a partial override keeps the rest
    agents_raw = raw.get("agents")
    if isinstance(agents_raw, dict) and isinstance(agents_raw.get("aliases"), dict):
        merged = AgentsConfig().aliases
        merged.update(agents_raw["aliases"])
        config.agents.aliases = merged

    # Memory service
    mem_raw = raw.get("memory", {})
    if isinstance(mem_raw, dict):
        config.memory = _parse_dict(
            mem_raw, MemoryServiceConfig,
            api_key=os.environ.get("COORDINATION_MEMORY_API_KEY",
                                   mem_raw.get("api_key", "")),
        )

    return config


def _resolve_path() -> Path:
    env_path = os.environ.get("COORDINATION_CONFIG_PATH")
    return Path(env_path) if env_path else _DEFAULT_CONFIG_PATH


def _load_config() -> CoordinationConfig:
    """Load config from YAML file. Falls back to defaults if missing."""
    config_path = _resolve_path()

    if not config_path.exists():
        logger.info("No coordination.yaml found at %s — using defaults", config_path)
        return CoordinationConfig()

    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(raw, dict):
            logger.warning("coordination.yaml is not a valid YAML mapping — using defaults")
            return CoordinationConfig()
        config = load_config_from_dict(raw)
        logger.info("Coordination config loaded: calendar=%s, task=%s, orchestrator=%s",
                    config.agents.calendar_agent, config.agents.task_agent,
                    config.agents.orchestrator_agent)
        return config
    except Exception as e:
        logger.error("Failed to load coordination.yaml: %s — using defaults", e)
        return CoordinationConfig()


# ── Singleton ──

_config: Optional[CoordinationConfig] = None


def get_config() -> CoordinationConfig:
    """Return the config singleton. Loads on first call."""
    global _config
    if _config is None:
        _config = _load_config()
    return _config


def reload_config() -> CoordinationConfig:
    """Force reload of the config from disk."""
    global _config
    _config = _load_config()
    return _config
