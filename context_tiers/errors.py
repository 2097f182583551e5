"""Error taxonomy for context management and summarization."""

from __future__ import annotations


class ContextTiersError(Exception):
    """Base class for all context-tiers errors."""


class ConfigurationError(ContextTiersError):
    """Missing API key or invalid backend settings. Never retried."""


class SummarizationBackendError(ContextTiersError):
    """A summarization backend failed in a way that retrying will not fix."""


class TransientBackendError(SummarizationBackendError):
    """Timeout, rate limit, 5xx or connection failure. Retried with backoff.

    Attributes:
        reason: One of ``timeout``, ``rate_limited``, ``server_error`` or
            ``connection_error``.

    """

    def __init__(self, message: str, reason: str = "server_error") -> None:
        self.reason = reason
        super().__init__(message)


class DegradedOutputError(SummarizationBackendError):
    """The backend answered, but the output is unusable.

    Treated as a fallback trigger, not retried against the same backend.

    Attributes:
        reason: One of ``empty_response``, ``too_short``, ``refusal_detected``,
            ``safety_filtered`` or ``expanded_output``.

    """

    def __init__(self, message: str, reason: str) -> None:
        self.reason = reason
        super().__init__(message)


class PersistenceError(ContextTiersError):
    """Telemetry could not be written to or read from durable storage."""
