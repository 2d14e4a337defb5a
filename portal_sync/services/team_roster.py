# Team Roster
"""Team members of the loaded subunit."""

import logging
from typing import List, Optional

from portal_sync.models.content import SubunitScope
from portal_sync.models.reference import TeamMember

from .backend import PortalBackend
from .retrying_fetcher import RetryingFetcher

logger = logging.getLogger("portal_sync.services.team_roster")


class TeamRoster:
    """
    Holds the team membership list of one subunit.

    The roster is read straight from the backend on every load (it is not
    cached). Like the other reference loaders, a failed load is logged and
    the previous roster is kept.
    """

    def __init__(
        self,
        backend: PortalBackend,
        scope: SubunitScope,
        fetcher: Optional[RetryingFetcher] = None,
    ):
        self.backend = backend
        self.scope = scope
        self.fetcher = fetcher or RetryingFetcher()
        self._members: List[TeamMember] = []
        self._subunit_id: Optional[str] = None
        self._error: Optional[BaseException] = None

    @property
    def members(self) -> List[TeamMember]:
        return list(self._members)

    @property
    def subunit_id(self) -> Optional[str]:
        return self._subunit_id

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def member_for(self, user_id: str) -> Optional[TeamMember]:
        for member in self._members:
            if member.user_id == user_id:
                return member
        return None

    async def load(self, subunit_id: str, session=None) -> List[TeamMember]:
        """
        Load the roster of a subunit.

        Args:
            subunit_id: Owning subunit
            session: FetchSession guarding the commit

        Returns:
            The loaded members, or the previously held ones on failure
        """
        result = await self.fetcher.execute(
            lambda: self.backend.list_team_members(self.scope, subunit_id),
            description=f"list team of {self.scope.value} {subunit_id}",
        )
        stale = session is not None and not session.is_current

        if not result.ok:
            if not stale:
                self._error = result.error
            logger.warning(f"Failed to load team of {subunit_id}, keeping previous roster: {result.error}")
            return self.members

        try:
            members = [TeamMember.from_row(row) for row in result.value or []]
        except ValueError as e:
            if not stale:
                self._error = e
            logger.warning(f"Malformed team rows for {subunit_id}, keeping previous roster: {e}")
            return self.members

        if stale:
            logger.debug(f"Discarding stale team of {subunit_id}")
            return members

        self._members = members
        self._subunit_id = subunit_id
        self._error = None
        logger.debug(f"Loaded {len(members)} team members for {subunit_id}")
        return list(members)

    def reset(self):
        self._members = []
        self._subunit_id = None
        self._error = None
