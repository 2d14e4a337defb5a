# Cache Store
"""In-memory time-to-live cache for slow-changing reference data."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from portal_sync.config import settings

logger = logging.getLogger("portal_sync.services.cache_store")


class _Miss:
    """Sentinel returned by CacheStore.get when no fresh entry exists."""

    _instance: Optional["_Miss"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the moment it was fetched."""
    data: Any
    fetched_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return (now - self.fetched_at) < ttl


class CacheStore:
    """
    Whole-entry TTL cache keyed by logical resource name.

    Entries are never updated in place: ``set`` replaces the entry for a key
    and an expired entry simply reads as ``MISS`` until it is replaced.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime (default: settings.reference_cache_ttl)
            clock: Monotonic time source in seconds
        """
        self.ttl = ttl_seconds if ttl_seconds is not None else settings.reference_cache_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any:
        """Return the cached value, or MISS when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        if not entry.is_fresh(self._clock(), self.ttl):
            logger.debug(f"Cache entry expired: {key}")
            return MISS
        return entry.data

    def set(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(data=value, fetched_at=self._clock())
        self._entries[key] = entry
        return entry

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Raw entry for a key regardless of freshness."""
        return self._entries.get(key)

    def invalidate(self, key: str) -> bool:
        """Drop the entry for a key. Returns True if one existed."""
        return self._entries.pop(key, None) is not None

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not MISS

    def __len__(self) -> int:
        return len(self._entries)
