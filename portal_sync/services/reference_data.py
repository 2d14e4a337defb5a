# Reference Data
"""Cache-backed loaders for users, work locations, positions and groups."""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from portal_sync.models.content import SubunitScope
from portal_sync.models.reference import Group, UserProfile, WorkLocation

from .cache_store import MISS, CacheStore
from .retrying_fetcher import RetryingFetcher

logger = logging.getLogger("portal_sync.services.reference_data")


class ReferenceResource(str, Enum):
    """Auxiliary resources loaded next to the content collections."""
    USERS = "users"
    WORK_LOCATIONS = "work_locations"
    POSITIONS = "positions"
    GROUPS = "groups"


class ReferenceDataLoader:
    """
    Loads one reference resource through the shared cache.

    A fresh cache entry short-circuits the backend. Failures are logged and
    the previously loaded value is kept; they never surface as errors of the
    aggregation context.
    """

    def __init__(
        self,
        resource: ReferenceResource,
        list_rows: Callable[..., Awaitable[List[Dict[str, Any]]]],
        model: Type[BaseModel],
        cache: CacheStore,
        fetcher: RetryingFetcher,
        scope: Optional[SubunitScope] = None,
    ):
        """
        Args:
            resource: Resource name, also the cache key for global resources
            list_rows: Backend call; takes the subunit id when ``scope`` is set
            model: Pydantic model each row is validated into
            cache: Cache shared by every loader of the context
            fetcher: Retry policy for the backend call
            scope: Set for subunit-scoped resources (groups)
        """
        self.resource = resource
        self.list_rows = list_rows
        self.model = model
        self.cache = cache
        self.fetcher = fetcher
        self.scope = scope
        self._value: List[BaseModel] = []
        self._error: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self.resource.value

    @property
    def subunit_scoped(self) -> bool:
        return self.scope is not None

    @property
    def value(self) -> List[BaseModel]:
        return list(self._value)

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def cache_key(self, subunit_id: Optional[str] = None) -> str:
        if self.scope is None:
            return self.resource.value
        return f"{self.resource.value}:{self.scope.value}:{subunit_id}"

    async def load(self, subunit_id: Optional[str] = None, session=None) -> List[BaseModel]:
        """
        Load the resource, preferring a fresh cache entry.

        Args:
            subunit_id: Owning subunit, used only by scoped resources
            session: FetchSession guarding the commit

        Returns:
            The loaded value, or the previously held one on failure
        """
        key = self.cache_key(subunit_id)
        cached = self.cache.get(key)
        if cached is not MISS:
            logger.debug(f"Cache hit: {key}")
            self._commit(cached, session)
            return list(cached)

        async def operation():
            if self.subunit_scoped:
                return await self.list_rows(self.scope, subunit_id)
            return await self.list_rows()

        result = await self.fetcher.execute(operation, description=f"list {key}")

        if not result.ok:
            if session is None or session.is_current:
                self._error = result.error
            logger.warning(f"Failed to load {key}, keeping previous value: {result.error}")
            return self.value

        try:
            value = [self.model.model_validate(row) for row in result.value or []]
        except ValueError as e:
            if session is None or session.is_current:
                self._error = e
            logger.warning(f"Malformed {key} rows, keeping previous value: {e}")
            return self.value

        self.cache.set(key, value)
        self._commit(value, session)
        return list(value)

    def _commit(self, value: List[BaseModel], session):
        if session is not None and not session.is_current:
            logger.debug(f"Discarding stale {self.name} for superseded session")
            return
        self._value = list(value)
        self._error = None

    def invalidate(self, subunit_id: Optional[str] = None) -> bool:
        return self.cache.invalidate(self.cache_key(subunit_id))

    def reset(self):
        self._value = []
        self._error = None


def build_automatic_groups(
    users: List[UserProfile],
    locations: List[WorkLocation],
) -> List[Group]:
    """One automatic group per work location that has at least one user."""
    groups = []
    for location in locations:
        members = [user.id for user in users if user.work_location_id == location.id]
        if not members:
            continue
        groups.append(
            Group(
                id=f"location-{location.id}",
                name=location.name,
                description=f"All users at {location.name}",
                user_ids=members,
                is_automatic=True,
            )
        )
    return groups


def filter_users(
    users: List[UserProfile],
    search_term: str = "",
    location_id: str = "all",
) -> List[UserProfile]:
    """Case-insensitive name/email search combined with a work location filter."""
    term = (search_term or "").strip().lower()
    matches = []
    for user in users:
        if term and term not in (user.full_name or "").lower() and term not in (user.email or "").lower():
            continue
        if location_id != "all" and user.work_location_id != location_id:
            continue
        matches.append(user)
    return matches
