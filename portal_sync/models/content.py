# Content Models
"""Pydantic models for the six content kinds and their collections."""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field


class ContentKind(str, Enum):
    """Content kinds a subunit publishes."""
    NEWS = "news"
    EVENTS = "events"
    DOCUMENTS = "documents"
    VIDEOS = "videos"
    IMAGES = "images"
    MESSAGES = "messages"


class SubunitScope(str, Enum):
    """Organizational level that owns a collection."""
    SECTOR = "sector"
    SUBSECTOR = "subsector"

    @property
    def column(self) -> str:
        """Name of the owning-subunit column, e.g. ``subsector_id``."""
        return f"{self.value}_id"

    @property
    def table(self) -> str:
        """Name of the subunit table itself."""
        return f"{self.value}s"

    def content_table(self, kind: ContentKind) -> str:
        """Backend table holding ``kind`` for this scope, e.g. ``sector_news``."""
        return f"{self.value}_{kind.value}"

    @property
    def team_table(self) -> str:
        """Backend table of team memberships, e.g. ``subsector_team_members``."""
        return f"{self.value}_team_members"


class ContentItem(BaseModel):
    """Fields shared by every content kind."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    is_published: bool = False
    is_featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None


class NewsItem(ContentItem):
    summary: str = ""
    content: str = ""
    image_url: Optional[str] = None


class EventItem(ContentItem):
    description: str = ""
    location: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class DocumentItem(ContentItem):
    description: str = ""
    file_url: str = ""
    file_size: Optional[int] = None
    file_type: Optional[str] = None


class VideoItem(ContentItem):
    description: Optional[str] = None
    video_url: str = ""
    thumbnail_url: Optional[str] = None
    thumbnail_timestamp: Optional[float] = None
    upload_type: str = Field(default="youtube", description="youtube or direct")
    order_index: Optional[int] = None


class ImageItem(ContentItem):
    description: Optional[str] = None
    image_url: str = ""
    order_index: Optional[int] = None


class MessageItem(ContentItem):
    content: str = ""
    priority: Optional[str] = Field(default=None, description="low, medium or high")


CONTENT_MODELS: Dict[ContentKind, Type[ContentItem]] = {
    ContentKind.NEWS: NewsItem,
    ContentKind.EVENTS: EventItem,
    ContentKind.DOCUMENTS: DocumentItem,
    ContentKind.VIDEOS: VideoItem,
    ContentKind.IMAGES: ImageItem,
    ContentKind.MESSAGES: MessageItem,
}


class SortKey(NamedTuple):
    field: str
    descending: bool = True


# Most significant key first
SORT_KEYS: Dict[ContentKind, Tuple[SortKey, ...]] = {
    ContentKind.NEWS: (SortKey("created_at"),),
    ContentKind.EVENTS: (SortKey("start_date"),),
    ContentKind.DOCUMENTS: (SortKey("created_at"),),
    ContentKind.VIDEOS: (SortKey("order_index", descending=False), SortKey("created_at")),
    ContentKind.IMAGES: (SortKey("order_index", descending=False), SortKey("created_at")),
    ContentKind.MESSAGES: (SortKey("created_at"),),
}


def _sort_value(value: Any) -> Any:
    """Comparable form of a sort value; naive timestamps are read as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value


def sort_items(kind: ContentKind, items: List[ContentItem]) -> List[ContentItem]:
    """
    Order items by the kind's sort keys.

    Applies stable sorts from the least to the most significant key. Items
    missing a sort value always land after those that have one. Timestamps
    with and without an offset are compared on the same UTC timeline.
    """
    ordered = list(items)
    for key in reversed(SORT_KEYS[kind]):
        present = [i for i in ordered if getattr(i, key.field, None) is not None]
        absent = [i for i in ordered if getattr(i, key.field, None) is None]
        present.sort(key=lambda i: _sort_value(getattr(i, key.field)), reverse=key.descending)
        ordered = present + absent
    return ordered


@dataclass(frozen=True)
class ContentCollection:
    """
    Full, ordered collection of one content kind for one subunit.

    Built once per fetch; ``draft_count`` is computed at build time and the
    collection is never patched afterwards.
    """
    kind: ContentKind
    subunit_id: str
    items: Tuple[ContentItem, ...]
    draft_count: int

    @classmethod
    def build(
        cls,
        kind: ContentKind,
        subunit_id: str,
        items: List[ContentItem],
    ) -> "ContentCollection":
        ordered = sort_items(kind, items)
        drafts = sum(1 for item in ordered if not item.is_published)
        return cls(kind=kind, subunit_id=subunit_id, items=tuple(ordered), draft_count=drafts)

    @classmethod
    def empty(cls, kind: ContentKind, subunit_id: str = "") -> "ContentCollection":
        return cls(kind=kind, subunit_id=subunit_id, items=(), draft_count=0)

    @property
    def published(self) -> List[ContentItem]:
        return [item for item in self.items if item.is_published]

    def view(self, show_drafts: bool) -> List[ContentItem]:
        """Items visible under the given draft flag."""
        if show_drafts:
            return list(self.items)
        return self.published

    def get(self, item_id: str) -> Optional[ContentItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self.items)


def parse_items(kind: ContentKind, rows: List[Dict[str, Any]]) -> List[ContentItem]:
    """Validate raw backend rows into the kind's model."""
    model = CONTENT_MODELS[kind]
    return [model.model_validate(row) for row in rows]
