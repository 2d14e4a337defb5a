# Content Repository
"""Per-kind collection holder: fetches, orders and counts one content kind."""

import logging
from typing import Generic, List, Optional, TypeVar

from portal_sync.models.content import (
    ContentCollection,
    ContentItem,
    ContentKind,
    SubunitScope,
    parse_items,
)

from .backend import PortalBackend
from .retrying_fetcher import RetryingFetcher

logger = logging.getLogger("portal_sync.services.content_repository")

T = TypeVar("T", bound=ContentItem)


class ContentRepository(Generic[T]):
    """
    Holds the latest full collection of one content kind for one subunit.

    The collection is only written by ``commit``; ``refresh`` commits when the
    caller's session is still current. Visibility toggles read the committed
    collection and never trigger a fetch.
    """

    def __init__(
        self,
        backend: PortalBackend,
        scope: SubunitScope,
        kind: ContentKind,
        fetcher: Optional[RetryingFetcher] = None,
    ):
        self.backend = backend
        self.scope = scope
        self.kind = kind
        self.fetcher = fetcher or RetryingFetcher()
        self._collection: ContentCollection = ContentCollection.empty(kind)
        self._error: Optional[BaseException] = None

    @property
    def collection(self) -> ContentCollection:
        return self._collection

    @property
    def items(self) -> List[T]:
        return list(self._collection.items)

    @property
    def published(self) -> List[T]:
        return self._collection.published

    @property
    def draft_count(self) -> int:
        return self._collection.draft_count

    @property
    def subunit_id(self) -> Optional[str]:
        return self._collection.subunit_id or None

    @property
    def error(self) -> Optional[BaseException]:
        """Error of the last failed refresh, cleared by the next success."""
        return self._error

    def view(self, show_drafts: bool) -> List[T]:
        return self._collection.view(show_drafts)

    async def fetch(self, subunit_id: str) -> ContentCollection:
        """
        Fetch and build a collection without committing it.

        Raises:
            The last error from the fetcher when every attempt failed
        """
        result = await self.fetcher.execute(
            lambda: self.backend.list_content(self.scope, self.kind, subunit_id),
            description=f"list {self.kind.value} for {self.scope.value} {subunit_id}",
        )
        rows = result.unwrap()
        return ContentCollection.build(self.kind, subunit_id, parse_items(self.kind, rows))

    def commit(self, collection: ContentCollection):
        self._collection = collection
        self._error = None

    async def refresh(self, subunit_id: str, session=None) -> ContentCollection:
        """
        Re-read the collection for a subunit.

        Args:
            subunit_id: Subunit whose collection to load
            session: FetchSession guarding the commit; None commits unconditionally

        Returns:
            The freshly built collection (committed only if the session is current)
        """
        try:
            collection = await self.fetch(subunit_id)
        except Exception as e:
            if session is None or session.is_current:
                # Keep whatever was shown before
                self._error = e
                logger.error(f"Failed to load {self.kind.value} for {subunit_id}: {e}")
            raise

        if session is not None and not session.is_current:
            logger.debug(f"Discarding stale {self.kind.value} for {subunit_id}")
            return collection

        self.commit(collection)
        logger.debug(
            f"Loaded {len(collection)} {self.kind.value} for {subunit_id} "
            f"({collection.draft_count} drafts)"
        )
        return collection

    def reset(self):
        """Forget the collection and error, e.g. when the subunit changes."""
        self._collection = ContentCollection.empty(self.kind)
        self._error = None
