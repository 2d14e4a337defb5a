# Portal Sync Models
"""Pydantic models for content, reference data, and aggregation state."""

from .content import (
    CONTENT_MODELS,
    ContentCollection,
    ContentItem,
    ContentKind,
    DocumentItem,
    EventItem,
    ImageItem,
    MessageItem,
    NewsItem,
    SubunitScope,
    VideoItem,
    parse_items,
    sort_items,
)
from .reference import (
    MESSAGE_TYPES,
    Group,
    GroupMessage,
    Position,
    PositionOption,
    Subunit,
    TeamMember,
    UserProfile,
    WorkLocation,
)
from .state import AggregatedSnapshot, ContextState

__all__ = [
    # Content models
    "CONTENT_MODELS",
    "ContentCollection",
    "ContentItem",
    "ContentKind",
    "DocumentItem",
    "EventItem",
    "ImageItem",
    "MessageItem",
    "NewsItem",
    "SubunitScope",
    "VideoItem",
    "parse_items",
    "sort_items",
    # Reference models
    "MESSAGE_TYPES",
    "Group",
    "GroupMessage",
    "Position",
    "PositionOption",
    "Subunit",
    "TeamMember",
    "UserProfile",
    "WorkLocation",
    # State models
    "AggregatedSnapshot",
    "ContextState",
]
