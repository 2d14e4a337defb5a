# Mutation Gateway
"""Validated writes for content, groups, team members and messages, then a targeted refresh."""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from portal_sync.errors import ContentValidationError, ContextDisposedError, NoActiveSubunitError
from portal_sync.models.content import CONTENT_MODELS, ContentItem, ContentKind, SubunitScope
from portal_sync.models.reference import MESSAGE_TYPES, Group, GroupMessage, TeamMember

from .backend import PortalBackend
from .content_repository import ContentRepository
from .fetch_orchestrator import FetchSession
from .reference_data import ReferenceDataLoader
from .team_roster import TeamRoster

logger = logging.getLogger("portal_sync.services.mutation_gateway")

# Fields that must be non-blank when creating an item of each kind
REQUIRED_FIELDS: Dict[ContentKind, Tuple[str, ...]] = {
    ContentKind.NEWS: ("title", "summary", "content"),
    ContentKind.EVENTS: ("title", "description", "start_date"),
    ContentKind.DOCUMENTS: ("title", "file_url"),
    ContentKind.VIDEOS: ("title", "video_url"),
    ContentKind.IMAGES: ("title", "image_url"),
    ContentKind.MESSAGES: ("title", "content"),
}
GROUP_REQUIRED_FIELDS: Tuple[str, ...] = ("name",)

# Server-managed columns never sent in an update
PROTECTED_FIELDS = frozenset({"id", "created_at", "created_by"})

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 255


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _to_wire(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert dates to ISO strings so the payload is JSON-serializable."""
    return {
        key: value.isoformat() if isinstance(value, (datetime, date)) else value
        for key, value in data.items()
    }


def _check_title(kind: str, data: Mapping[str, Any]):
    if "title" not in data or data["title"] is None:
        return
    title = str(data["title"]).strip()
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ContentValidationError(
            f"Title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters",
            kind=kind,
            missing={"title": True},
        )


def _validate_create(kind: str, payload: Mapping[str, Any], required: Tuple[str, ...]) -> Dict[str, Any]:
    if not payload:
        raise ContentValidationError(f"Empty {kind} payload", kind=kind, missing={f: True for f in required})
    missing = {name: True for name in required if _is_blank(payload.get(name))}
    if missing:
        raise ContentValidationError(
            f"Missing required {kind} fields: {', '.join(missing)}",
            kind=kind,
            missing=missing,
        )
    _check_title(kind, payload)
    data = dict(payload)
    data.pop("id", None)
    return data


def _validate_update(
    kind: str,
    item_id: Optional[str],
    patch: Mapping[str, Any],
    required: Tuple[str, ...],
) -> Dict[str, Any]:
    if _is_blank(item_id):
        raise ContentValidationError(f"{kind} id is required", kind=kind, missing={"id": True})
    data = {key: value for key, value in (patch or {}).items() if key not in PROTECTED_FIELDS}
    if not data:
        raise ContentValidationError(f"Nothing to update for {kind} {item_id}", kind=kind)
    missing = {name: True for name in required if name in data and _is_blank(data[name])}
    if missing:
        raise ContentValidationError(
            f"Required {kind} fields cannot be blank: {', '.join(missing)}",
            kind=kind,
            missing=missing,
        )
    _check_title(kind, data)
    return data


def validate_create(kind: ContentKind, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check a create payload without touching the backend.

    Returns:
        A copy of the payload ready to send

    Raises:
        ContentValidationError: With ``missing`` naming each absent field
    """
    return _validate_create(kind.value, payload, REQUIRED_FIELDS[kind])


def validate_update(kind: ContentKind, item_id: Optional[str], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Check an update patch; protected columns are stripped from the result."""
    return _validate_update(kind.value, item_id, patch, REQUIRED_FIELDS[kind])


class MutationGateway:
    """
    Single write path for content items, notification groups and team members.

    Every successful write is followed by a refresh of the affected
    collection only. Writes are not retried; a failed write leaves every
    collection untouched and the error goes straight to the caller.

    The subunit and session are captured before the backend call. If another
    subunit starts loading while the write is in flight, the refresh is
    skipped so the old subunit's rows never reach the new view.
    """

    def __init__(
        self,
        backend: PortalBackend,
        scope: SubunitScope,
        repositories: Mapping[ContentKind, ContentRepository],
        subunit_provider: Callable[[], Optional[str]],
        session_provider: Callable[[], Optional[FetchSession]] = lambda: None,
        groups_loader: Optional[ReferenceDataLoader] = None,
        team_roster: Optional[TeamRoster] = None,
        group_resolver: Callable[[str], Optional[Group]] = lambda group_id: None,
        is_disposed: Callable[[], bool] = lambda: False,
    ):
        self.backend = backend
        self.scope = scope
        self.repositories = repositories
        self._subunit_provider = subunit_provider
        self._session_provider = session_provider
        self.groups_loader = groups_loader
        self.team_roster = team_roster
        self._group_resolver = group_resolver
        self._is_disposed = is_disposed

    def _require_subunit(self) -> str:
        if self._is_disposed():
            raise ContextDisposedError("Context has been disposed")
        subunit_id = self._subunit_provider()
        if not subunit_id:
            raise NoActiveSubunitError("No subunit loaded")
        return subunit_id

    def _begin(self) -> Tuple[str, Optional[FetchSession]]:
        """Subunit and session the write belongs to, read before any I/O."""
        return self._require_subunit(), self._session_provider()

    @staticmethod
    def _superseded(subunit_id: str, session: Optional[FetchSession]) -> bool:
        if session is None:
            return False
        return not session.is_current or session.subunit_id != subunit_id

    async def _refresh(self, kind: ContentKind, subunit_id: str, session: Optional[FetchSession]):
        if self._superseded(subunit_id, session):
            logger.debug(f"Skipping {kind.value} refresh for {subunit_id}, session superseded")
            return
        try:
            await self.repositories[kind].refresh(subunit_id, session=session)
        except Exception as e:
            # The write went through; the repository keeps the error for the UI
            logger.warning(f"Refresh of {kind.value} after write failed: {e}")

    async def _reload_groups(self, subunit_id: str, session: Optional[FetchSession]):
        if self.groups_loader is None:
            return
        self.groups_loader.invalidate(subunit_id)
        if self._superseded(subunit_id, session):
            logger.debug(f"Skipping group reload for {subunit_id}, session superseded")
            return
        await self.groups_loader.load(subunit_id, session=session)

    async def _reload_team(self, subunit_id: str, session: Optional[FetchSession]):
        if self.team_roster is None:
            return
        if self._superseded(subunit_id, session):
            logger.debug(f"Skipping team reload for {subunit_id}, session superseded")
            return
        await self.team_roster.load(subunit_id, session=session)

    # Content

    async def create(self, kind: ContentKind, payload: Mapping[str, Any]) -> ContentItem:
        """
        Create an item owned by the loaded subunit.

        Args:
            kind: Content kind
            payload: Item fields; the owning subunit column is filled in

        Returns:
            The created item as returned by the backend
        """
        data = validate_create(kind, payload)
        subunit_id, session = self._begin()
        data[self.scope.column] = subunit_id

        row = await self.backend.create_content(self.scope, kind, _to_wire(data))
        logger.info(f"Created {kind.value} {row.get('id')} for {subunit_id}")
        await self._refresh(kind, subunit_id, session)
        return CONTENT_MODELS[kind].model_validate(row)

    async def update(self, kind: ContentKind, item_id: str, patch: Mapping[str, Any]) -> ContentItem:
        data = validate_update(kind, item_id, patch)
        subunit_id, session = self._begin()

        row = await self.backend.update_content(self.scope, kind, item_id, _to_wire(data))
        logger.info(f"Updated {kind.value} {item_id}")
        await self._refresh(kind, subunit_id, session)
        return CONTENT_MODELS[kind].model_validate(row)

    async def set_published(self, kind: ContentKind, item_id: str, published: bool) -> ContentItem:
        """Publish or unpublish an item."""
        return await self.update(kind, item_id, {"is_published": published})

    async def delete(self, kind: ContentKind, item_id: str) -> None:
        if _is_blank(item_id):
            raise ContentValidationError(f"{kind.value} id is required", kind=kind.value, missing={"id": True})
        subunit_id, session = self._begin()

        await self.backend.delete_content(self.scope, kind, item_id)
        logger.info(f"Deleted {kind.value} {item_id}")
        await self._refresh(kind, subunit_id, session)

    # Groups

    async def create_group(self, payload: Mapping[str, Any]) -> Group:
        data = _validate_create("group", payload, GROUP_REQUIRED_FIELDS)
        subunit_id, session = self._begin()
        data[self.scope.column] = subunit_id
        data.setdefault("user_ids", [])

        row = await self.backend.create_group(_to_wire(data))
        logger.info(f"Created group {row.get('id')} for {subunit_id}")
        await self._reload_groups(subunit_id, session)
        return Group.model_validate(row)

    async def update_group(self, group_id: str, patch: Mapping[str, Any]) -> Group:
        data = _validate_update("group", group_id, patch, GROUP_REQUIRED_FIELDS)
        subunit_id, session = self._begin()

        row = await self.backend.update_group(group_id, _to_wire(data))
        logger.info(f"Updated group {group_id}")
        await self._reload_groups(subunit_id, session)
        return Group.model_validate(row)

    async def delete_group(self, group_id: str) -> None:
        if _is_blank(group_id):
            raise ContentValidationError("group id is required", kind="group", missing={"id": True})
        subunit_id, session = self._begin()

        await self.backend.delete_group(group_id)
        logger.info(f"Deleted group {group_id}")
        await self._reload_groups(subunit_id, session)

    async def send_group_message(
        self,
        group_id: str,
        title: str,
        content: str,
        type: str = "info",
        expire_at: Optional[datetime] = None,
        links: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Send a notification to every member of a group.

        Automatic (per work location) groups are resolved here so the
        backend receives explicit recipients. Nothing is refreshed afterwards.

        Args:
            group_id: Stored or automatic group id
            title: Notification title
            content: Notification body
            type: One of MESSAGE_TYPES
            expire_at: Optional expiry of the notification
            links: Optional list of ``{"label", "url"}`` links

        Returns:
            The backend's send result
        """
        missing = {
            name: True
            for name, value in (("group_id", group_id), ("title", title), ("content", content))
            if _is_blank(value)
        }
        if missing:
            raise ContentValidationError(
                f"Missing required message fields: {', '.join(missing)}",
                kind="message",
                missing=missing,
            )
        if type not in MESSAGE_TYPES:
            raise ContentValidationError(
                f"Unknown message type '{type}', expected one of {', '.join(MESSAGE_TYPES)}",
                kind="message",
            )
        subunit_id = self._require_subunit()

        group = self._group_resolver(group_id)
        message = GroupMessage(
            title=title.strip(),
            content=content,
            type=type,
            group_id=group_id,
            user_ids=list(group.user_ids) if group is not None else [],
            expire_at=expire_at,
            links=list(links or []),
            **{self.scope.column: subunit_id},
        )

        result = await self.backend.send_group_message(message.model_dump(mode="json"))
        logger.info(f"Sent {type} message to group {group_id} ({len(message.user_ids)} recipients)")
        return result

    # Team

    async def add_team_member(self, user_id: str, position: Optional[str] = None) -> TeamMember:
        """
        Add a user to the loaded subunit's team.

        Raises:
            ContentValidationError: If user_id is blank or the user is already on the team
        """
        if _is_blank(user_id):
            raise ContentValidationError("user id is required", kind="team_member", missing={"user_id": True})
        subunit_id, session = self._begin()
        if self.team_roster is not None and self.team_roster.subunit_id == subunit_id:
            if self.team_roster.member_for(user_id) is not None:
                raise ContentValidationError(f"User {user_id} is already on the team", kind="team_member")

        payload = {"user_id": user_id, self.scope.column: subunit_id, "position": position}
        row = await self.backend.add_team_member(self.scope, payload)
        logger.info(f"Added {user_id} to team of {subunit_id}")
        await self._reload_team(subunit_id, session)
        return TeamMember.from_row(row)

    async def update_team_member(self, member_id: str, position: Optional[str]) -> TeamMember:
        """Change a team member's position."""
        if _is_blank(member_id):
            raise ContentValidationError("member id is required", kind="team_member", missing={"id": True})
        subunit_id, session = self._begin()

        row = await self.backend.update_team_member(self.scope, member_id, {"position": position})
        logger.info(f"Updated team member {member_id}")
        await self._reload_team(subunit_id, session)
        return TeamMember.from_row(row)

    async def remove_team_member(self, member_id: str) -> None:
        if _is_blank(member_id):
            raise ContentValidationError("member id is required", kind="team_member", missing={"id": True})
        subunit_id, session = self._begin()

        await self.backend.remove_team_member(self.scope, member_id)
        logger.info(f"Removed team member {member_id}")
        await self._reload_team(subunit_id, session)
