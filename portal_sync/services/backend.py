"""
Portal Backend interface: the query/mutation service behind the portal.

The aggregation layer only talks to the backend through this interface, so the
concrete transport (BackendClient over HTTP, or an in-memory fake in tests)
can be swapped freely.

Subclasses must implement:
    - get_subunit / list_subsectors: subunit metadata
    - list_content / create_content / update_content / delete_content: one
      set of operations shared by all six content kinds
    - list_users / list_work_locations / list_positions / list_groups:
      reference data
    - create_group / update_group / delete_group: notification groups
    - list_team_members / add_team_member / update_team_member /
      remove_team_member: subunit team membership
    - send_group_message: notifications to a group

list_content always returns the full collection (drafts included); filtering
by publication state happens client-side.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from portal_sync.models.content import ContentKind, SubunitScope


class PortalBackend(ABC):
    """Base class for portal backends."""

    # Subunits

    @abstractmethod
    async def get_subunit(self, scope: SubunitScope, subunit_id: str) -> Dict[str, Any]:
        """Fetch one sector or subsector row. Raises NotFoundError if missing."""
        ...

    @abstractmethod
    async def list_subsectors(self, sector_id: str) -> List[Dict[str, Any]]:
        """List the subsectors of a sector, ordered by name."""
        ...

    # Content

    @abstractmethod
    async def list_content(
        self, scope: SubunitScope, kind: ContentKind, subunit_id: str
    ) -> List[Dict[str, Any]]:
        """List every item of ``kind`` owned by the subunit, drafts included."""
        ...

    @abstractmethod
    async def create_content(
        self, scope: SubunitScope, kind: ContentKind, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_content(
        self, scope: SubunitScope, kind: ContentKind, item_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_content(self, scope: SubunitScope, kind: ContentKind, item_id: str) -> None:
        ...

    # Reference data

    @abstractmethod
    async def list_users(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_work_locations(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_positions(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_groups(self, scope: SubunitScope, subunit_id: str) -> List[Dict[str, Any]]:
        """List the notification groups owned by a subunit."""
        ...

    # Groups

    @abstractmethod
    async def create_group(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_group(self, group_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def delete_group(self, group_id: str) -> None:
        ...

    # Team membership

    @abstractmethod
    async def list_team_members(self, scope: SubunitScope, subunit_id: str) -> List[Dict[str, Any]]:
        """List a subunit's team members with their embedded profile."""
        ...

    @abstractmethod
    async def add_team_member(self, scope: SubunitScope, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update_team_member(
        self, scope: SubunitScope, member_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def remove_team_member(self, scope: SubunitScope, member_id: str) -> None:
        ...

    # Notifications

    @abstractmethod
    async def send_group_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a notification to every recipient of a group."""
        ...

    async def close(self):
        """Release transport resources. No-op by default."""
        return None
