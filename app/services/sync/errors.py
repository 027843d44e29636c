"""Exception hierarchy for the match sync layer.

Upstream errors carry a machine-readable `error_type` that the orchestrator
copies into the `_metadata.errorType` of degraded responses.
"""
from typing import Optional


class MatchSyncError(Exception):
    """Base class for all match sync errors."""

    error_type = "sync_error"


class UpstreamError(MatchSyncError):
    """The upstream prediction/odds provider could not be used."""

    error_type = "api_error"

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class UpstreamTimeout(UpstreamError):
    """An attempt exceeded its per-attempt deadline."""

    error_type = "api_timeout"


class UpstreamHttpError(UpstreamError):
    """The provider answered with a non-2xx status."""

    error_type = "api_http_error"

    def __init__(self, message: str, status_code: int, attempts: int = 1):
        super().__init__(message, attempts=attempts)
        self.status_code = status_code


class UpstreamTransportError(UpstreamError):
    """Network-level failure (DNS, connection reset, unreadable body)."""

    error_type = "api_transport_error"


class UpstreamNotConfigured(UpstreamError):
    """No upstream base URL is configured; never retried."""

    error_type = "upstream_not_configured"


class MissingIdentifier(MatchSyncError):
    """A payload could not be resolved to a match id."""

    error_type = "missing_identifier"


class PersistenceError(MatchSyncError):
    """A read or write against the match store failed."""

    error_type = "persistence_error"

    def __init__(self, message: str, operation: str = "unknown", cause: Optional[Exception] = None):
        super().__init__(message)
        self.operation = operation
        self.cause = cause

