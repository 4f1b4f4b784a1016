"""
Coordination errors.

Expected runtime conditions (no knowledge, no context, low-confidence match)
are expressed as empty results, never exceptions. Exceptions here are for
programmer errors and for adapters reporting upstream failures to the
boundary that degrades them.
"""


class CoordinationError(Exception):
    """Base class for coordination errors."""


class InvalidArgumentError(CoordinationError, ValueError):
    """A caller passed an argument that can never be valid (e.g. empty user id)."""


class KnowledgeValidationError(InvalidArgumentError):
    """An agent's knowledge payload does not fit that agent's schema."""

    def __init__(self, agent_id: str, detail: str):
        self.agent_id = agent_id
        self.detail = detail
        super().__init__(f"Invalid knowledge from {agent_id}: {detail}")


class UpstreamError(CoordinationError):
    """An external collaborator (memory store, calendar/task provider) failed."""


class MemoryStoreError(UpstreamError):
    """The durable memory store could not be reached or returned an error."""


class ProviderError(UpstreamError):
    """A calendar or task provider call failed."""


def require_id(value, name: str) -> str:
    """Reject empty or non-string identifiers."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{name} must be a non-empty string, got {value!r}")
    return value
