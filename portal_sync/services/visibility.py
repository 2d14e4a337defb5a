# Draft Visibility
"""Per-kind show/hide-drafts flag over a content repository."""

from typing import List, Optional

from portal_sync.config import settings
from portal_sync.models.content import ContentItem, ContentKind

from .content_repository import ContentRepository


class DraftVisibilityController:
    """
    Derives the visible list of one kind from its repository.

    The view is a pure function of the committed collection and the flag, so
    toggling never touches the network and the draft count never changes.
    """

    def __init__(self, repository: ContentRepository, default: Optional[bool] = None):
        self.repository = repository
        self.default = settings.default_show_drafts if default is None else default
        self.show_drafts = self.default

    @property
    def kind(self) -> ContentKind:
        return self.repository.kind

    @property
    def draft_count(self) -> int:
        return self.repository.draft_count

    def toggle(self) -> bool:
        """Flip the flag and return the new value."""
        self.show_drafts = not self.show_drafts
        return self.show_drafts

    def set(self, show: bool) -> bool:
        self.show_drafts = bool(show)
        return self.show_drafts

    def view(self) -> List[ContentItem]:
        return self.repository.view(self.show_drafts)

    def reset(self):
        self.show_drafts = self.default
