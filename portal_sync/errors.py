"""
Error taxonomy for portal_sync.

Every error raised by this package derives from PortalSyncError and states
whether retrying the failed read could succeed. The retrying fetcher relies on
that flag; mutations are never retried regardless of it.

- BackendError: the backend answered with a non-2xx status
- NotFoundError: the requested record does not exist
- ContentValidationError: a payload failed client-side validation
- NoActiveSubunitError: a write was attempted before any subunit was loaded
- ContextDisposedError: the aggregation context was used after dispose()
"""

from typing import Any, Dict, Optional

# Client errors that still make sense to retry
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class PortalSyncError(Exception):
    """Base class for portal_sync errors."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendError(PortalSyncError):
    """Raised when the backend fails or returns an error response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        if self.status_code >= 500:
            return True
        return self.status_code in RETRYABLE_CLIENT_STATUSES

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


class NotFoundError(BackendError):
    """Raised when a record does not exist."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, details=details)


class ContentValidationError(PortalSyncError):
    """Raised when a mutation payload is missing required fields or is malformed."""

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        missing: Optional[Dict[str, bool]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.missing = missing or {}


class NoActiveSubunitError(PortalSyncError):
    """Raised when an operation needs a loaded subunit and none is loaded."""


class ContextDisposedError(PortalSyncError):
    """Raised when a disposed context or orchestrator is asked to load or write."""
