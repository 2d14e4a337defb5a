# Portal Sync Services
"""Service layer for portal_sync."""

from .aggregation_context import AggregationContext
from .backend import PortalBackend
from .backend_client import BackendClient, backend_client
from .cache_store import MISS, CacheEntry, CacheStore
from .content_repository import ContentRepository
from .fetch_orchestrator import FetchOrchestrator, FetchSession, LoadOutcome
from .mutation_gateway import MutationGateway, validate_create, validate_update
from .reference_data import (
    ReferenceDataLoader,
    ReferenceResource,
    build_automatic_groups,
    filter_users,
)
from .retrying_fetcher import FetchResult, RetryingFetcher, is_retryable, next_delay
from .team_roster import TeamRoster
from .visibility import DraftVisibilityController

__all__ = [
    "AggregationContext",
    "PortalBackend",
    "BackendClient",
    "backend_client",
    "MISS",
    "CacheEntry",
    "CacheStore",
    "ContentRepository",
    "FetchOrchestrator",
    "FetchSession",
    "LoadOutcome",
    "MutationGateway",
    "validate_create",
    "validate_update",
    "ReferenceDataLoader",
    "ReferenceResource",
    "build_automatic_groups",
    "filter_users",
    "FetchResult",
    "RetryingFetcher",
    "is_retryable",
    "next_delay",
    "TeamRoster",
    "DraftVisibilityController",
]
