# Portal Sync
"""Content aggregation and synchronization layer for the organizational portal."""

from .config import Settings, settings
from .errors import (
    BackendError,
    ContentValidationError,
    ContextDisposedError,
    NoActiveSubunitError,
    NotFoundError,
    PortalSyncError,
)
from .log import configure_logging
from .models import AggregatedSnapshot, ContentKind, ContextState, SubunitScope
from .services import (
    AggregationContext,
    BackendClient,
    CacheStore,
    FetchOrchestrator,
    MutationGateway,
    PortalBackend,
    RetryingFetcher,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "Settings",
    "settings",
    "configure_logging",
    # Errors
    "BackendError",
    "ContentValidationError",
    "ContextDisposedError",
    "NoActiveSubunitError",
    "NotFoundError",
    "PortalSyncError",
    # Models
    "AggregatedSnapshot",
    "ContentKind",
    "ContextState",
    "SubunitScope",
    # Services
    "AggregationContext",
    "BackendClient",
    "CacheStore",
    "FetchOrchestrator",
    "MutationGateway",
    "PortalBackend",
    "RetryingFetcher",
]
