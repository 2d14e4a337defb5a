# Aggregation State Models
"""Lifecycle state and read-only snapshots exposed to the UI layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .content import ContentItem, ContentKind
from .reference import Group, PositionOption, Subunit, TeamMember, UserProfile, WorkLocation


class ContextState(str, Enum):
    """Aggregation context lifecycle."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class AggregatedSnapshot:
    """Point-in-time copy of everything an aggregation context exposes."""
    state: ContextState
    subunit_id: Optional[str]
    subunit: Optional[Subunit]
    views: Dict[ContentKind, List[ContentItem]]
    draft_counts: Dict[ContentKind, int]
    show_drafts: Dict[ContentKind, bool]
    users: List[UserProfile] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)
    automatic_groups: List[Group] = field(default_factory=list)
    work_locations: List[WorkLocation] = field(default_factory=list)
    positions: List[PositionOption] = field(default_factory=list)
    team_members: List[TeamMember] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def loading(self) -> bool:
        return self.state == ContextState.LOADING

    @property
    def error(self) -> Optional[str]:
        if not self.errors:
            return None
        return "; ".join(f"{name}: {message}" for name, message in sorted(self.errors.items()))
