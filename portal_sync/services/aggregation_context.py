"""
Aggregation Context for portal_sync.

Composition root for one subunit administration view. Owns the six content
repositories, their draft visibility controllers, the reference data loaders
and the cache, wires them into a FetchOrchestrator and exposes everything
the UI needs through one façade.

Lifecycle:
    UNINITIALIZED -> LOADING -> READY | ERRORED
    READY and ERRORED accept a new load(); loading another subunit resets all
    identity-scoped state (collections, visibility flags, subunit, groups,
    team)
    while global reference data stays cached.

Usage:
    from portal_sync import AggregationContext, BackendClient, ContentKind

    async with AggregationContext(BackendClient()) as context:
        await context.load("subsector-1")
        drafts = context.draft_count(ContentKind.NEWS)
        context.toggle_drafts(ContentKind.NEWS)
        await context.mutations.create(ContentKind.NEWS, {...})
"""

import logging
from typing import Dict, List, Optional, Union

from portal_sync.errors import ContextDisposedError, NoActiveSubunitError
from portal_sync.models.content import ContentCollection, ContentItem, ContentKind, SubunitScope
from portal_sync.models.reference import (
    Group,
    Position,
    PositionOption,
    Subunit,
    TeamMember,
    UserProfile,
    WorkLocation,
)
from portal_sync.models.state import AggregatedSnapshot, ContextState

from .backend import PortalBackend
from .cache_store import CacheStore
from .content_repository import ContentRepository
from .fetch_orchestrator import FetchOrchestrator, FetchSession, LoadOutcome
from .mutation_gateway import MutationGateway
from .reference_data import (
    ReferenceDataLoader,
    ReferenceResource,
    build_automatic_groups,
    filter_users,
)
from .retrying_fetcher import RetryingFetcher
from .team_roster import TeamRoster
from .visibility import DraftVisibilityController

logger = logging.getLogger("portal_sync.services.aggregation_context")

SUBUNIT_LOADER = "subunit"
TEAM_LOADER = "team"

KindLike = Union[ContentKind, str]


class AggregationContext:
    """Façade over every collection and loader of one subunit view."""

    def __init__(
        self,
        backend: PortalBackend,
        scope: SubunitScope = SubunitScope.SUBSECTOR,
        cache: Optional[CacheStore] = None,
        fetcher: Optional[RetryingFetcher] = None,
        default_show_drafts: Optional[bool] = None,
        cancel_inflight: Optional[bool] = None,
    ):
        """
        Initialize the context.

        Args:
            backend: Query/mutation service
            scope: Whether the context administers a sector or a subsector
            cache: Reference data cache; pass one to share it between contexts
            fetcher: Retry policy for every read
            default_show_drafts: Initial draft flag for all kinds (default: settings)
            cancel_inflight: Cancel superseded tasks (default: settings)
        """
        self.backend = backend
        self.scope = scope
        self.cache = cache if cache is not None else CacheStore()
        self.fetcher = fetcher or RetryingFetcher()

        self.repositories: Dict[ContentKind, ContentRepository] = {
            kind: ContentRepository(backend, scope, kind, fetcher=self.fetcher)
            for kind in ContentKind
        }
        self.visibility: Dict[ContentKind, DraftVisibilityController] = {
            kind: DraftVisibilityController(repository, default=default_show_drafts)
            for kind, repository in self.repositories.items()
        }

        self.users_loader = ReferenceDataLoader(
            ReferenceResource.USERS, backend.list_users, UserProfile, self.cache, self.fetcher
        )
        self.work_locations_loader = ReferenceDataLoader(
            ReferenceResource.WORK_LOCATIONS, backend.list_work_locations, WorkLocation, self.cache, self.fetcher
        )
        self.positions_loader = ReferenceDataLoader(
            ReferenceResource.POSITIONS, backend.list_positions, Position, self.cache, self.fetcher
        )
        self.groups_loader = ReferenceDataLoader(
            ReferenceResource.GROUPS, backend.list_groups, Group, self.cache, self.fetcher, scope=scope
        )
        self.team_roster = TeamRoster(backend, scope, fetcher=self.fetcher)

        self._state = ContextState.UNINITIALIZED
        self._subunit_id: Optional[str] = None
        self._subunit: Optional[Subunit] = None
        self._subunit_error: Optional[BaseException] = None
        self._load_errors: Dict[str, BaseException] = {}

        self.orchestrator = FetchOrchestrator(
            cancel_inflight=cancel_inflight,
            on_start=self._on_start,
            on_complete=self._on_complete,
        )
        self.orchestrator.register(SUBUNIT_LOADER, self._load_subunit)
        for kind, repository in self.repositories.items():
            self.orchestrator.register(kind.value, repository.refresh)
        for loader in (self.users_loader, self.work_locations_loader, self.positions_loader):
            self.orchestrator.register(loader.name, self._global_loader(loader), primary=False)
        self.orchestrator.register(self.groups_loader.name, self.groups_loader.load, primary=False)
        self.orchestrator.register(TEAM_LOADER, self.team_roster.load, primary=False)

        self.mutations = MutationGateway(
            backend,
            scope,
            self.repositories,
            subunit_provider=lambda: self._subunit_id,
            session_provider=lambda: self.orchestrator.current_session,
            groups_loader=self.groups_loader,
            team_roster=self.team_roster,
            group_resolver=self.find_group,
            is_disposed=lambda: self.orchestrator.disposed,
        )

    @staticmethod
    def _global_loader(loader: ReferenceDataLoader):
        async def run(subunit_id: str, session: FetchSession):
            return await loader.load(session=session)
        return run

    # Lifecycle

    async def load(self, subunit_id: str, force: bool = False) -> Optional[LoadOutcome]:
        """
        Load every collection and reference resource for a subunit.

        Returns None when the same subunit is already loading.
        """
        if not subunit_id:
            raise ValueError("subunit_id is required")
        return await self.orchestrator.load(subunit_id, force=force)

    async def refresh_all(self) -> Optional[LoadOutcome]:
        """Reload everything for the current subunit, superseding any load in flight."""
        return await self.load(self._require_subunit(), force=True)

    async def refresh_kind(self, kind: KindLike) -> ContentCollection:
        """Re-read a single content kind."""
        kind = ContentKind(kind)
        subunit_id = self._require_subunit()
        try:
            return await self.repositories[kind].refresh(
                subunit_id, session=self.orchestrator.current_session
            )
        finally:
            self._settle_state()

    def dispose(self):
        """Cancel everything in flight. The context cannot be loaded again."""
        if self.orchestrator.disposed:
            return
        self.orchestrator.dispose()
        if self._state == ContextState.LOADING:
            self._state = ContextState.UNINITIALIZED
        logger.debug(f"Disposed context for {self.scope.value} {self._subunit_id}")

    async def __aenter__(self) -> "AggregationContext":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.dispose()

    def _require_subunit(self) -> str:
        if self.orchestrator.disposed:
            raise ContextDisposedError("Context has been disposed")
        if not self._subunit_id:
            raise NoActiveSubunitError("No subunit loaded")
        return self._subunit_id

    def _on_start(self, session: FetchSession, previous: Optional[FetchSession]):
        if session.subunit_id != self._subunit_id:
            self._reset_identity()
            logger.info(f"Loading {self.scope.value} {session.subunit_id}")
        self._subunit_id = session.subunit_id
        self._load_errors = {}
        self._state = ContextState.LOADING

    def _on_complete(self, outcome: LoadOutcome):
        self._load_errors = dict(outcome.primary_errors)
        self._state = ContextState.ERRORED if self.errors else ContextState.READY

    def _settle_state(self):
        if self._state in (ContextState.READY, ContextState.ERRORED):
            self._state = ContextState.ERRORED if self.errors else ContextState.READY

    def _reset_identity(self):
        for repository in self.repositories.values():
            repository.reset()
        for controller in self.visibility.values():
            controller.reset()
        self.groups_loader.reset()
        self.team_roster.reset()
        self._subunit = None
        self._subunit_error = None

    async def _load_subunit(self, subunit_id: str, session: FetchSession) -> Subunit:
        result = await self.fetcher.execute(
            lambda: self.backend.get_subunit(self.scope, subunit_id),
            description=f"get {self.scope.value} {subunit_id}",
        )
        if not result.ok:
            if session.is_current:
                self._subunit_error = result.error
            raise result.error

        subunit = Subunit.from_row(result.value, self.scope)
        if self.scope == SubunitScope.SECTOR:
            children = await self.fetcher.execute(
                lambda: self.backend.list_subsectors(subunit_id),
                description=f"list subsectors of {subunit_id}",
            )
            if children.ok:
                subunit.subsectors = [
                    Subunit.from_row(row, SubunitScope.SUBSECTOR) for row in children.value
                ]
            else:
                logger.warning(f"Failed to load subsectors of {subunit_id}: {children.error}")

        if session.is_current:
            self._subunit = subunit
            self._subunit_error = None
        return subunit

    # State

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state == ContextState.LOADING

    @property
    def disposed(self) -> bool:
        return self.orchestrator.disposed

    @property
    def errors(self) -> Dict[str, BaseException]:
        """Failures of the subunit and content loaders, by loader name."""
        errors = dict(self._load_errors)
        if self._subunit_error is not None:
            errors[SUBUNIT_LOADER] = self._subunit_error
        for kind, repository in self.repositories.items():
            if repository.error is not None:
                errors[kind.value] = repository.error
            else:
                errors.pop(kind.value, None)
        return errors

    @property
    def error(self) -> Optional[str]:
        errors = self.errors
        if not errors:
            return None
        return "; ".join(f"{name}: {error}" for name, error in sorted(errors.items()))

    @property
    def subunit(self) -> Optional[Subunit]:
        return self._subunit

    @property
    def subunit_id(self) -> Optional[str]:
        return self._subunit_id

    # Content

    def view(self, kind: KindLike) -> List[ContentItem]:
        return self.visibility[ContentKind(kind)].view()

    def draft_count(self, kind: KindLike) -> int:
        return self.visibility[ContentKind(kind)].draft_count

    def show_drafts(self, kind: KindLike) -> bool:
        return self.visibility[ContentKind(kind)].show_drafts

    def toggle_drafts(self, kind: KindLike) -> bool:
        return self.visibility[ContentKind(kind)].toggle()

    def set_show_drafts(self, kind: KindLike, show: bool) -> bool:
        return self.visibility[ContentKind(kind)].set(show)

    @property
    def news(self) -> List[ContentItem]:
        return self.view(ContentKind.NEWS)

    @property
    def events(self) -> List[ContentItem]:
        return self.view(ContentKind.EVENTS)

    @property
    def documents(self) -> List[ContentItem]:
        return self.view(ContentKind.DOCUMENTS)

    @property
    def videos(self) -> List[ContentItem]:
        return self.view(ContentKind.VIDEOS)

    @property
    def images(self) -> List[ContentItem]:
        return self.view(ContentKind.IMAGES)

    @property
    def messages(self) -> List[ContentItem]:
        return self.view(ContentKind.MESSAGES)

    # Reference data

    @property
    def users(self) -> List[UserProfile]:
        return self.users_loader.value

    @property
    def groups(self) -> List[Group]:
        return self.groups_loader.value

    @property
    def work_locations(self) -> List[WorkLocation]:
        return self.work_locations_loader.value

    @property
    def positions(self) -> List[Position]:
        return self.positions_loader.value

    @property
    def position_options(self) -> List[PositionOption]:
        return [position.to_option() for position in self.positions]

    @property
    def automatic_groups(self) -> List[Group]:
        return build_automatic_groups(self.users, self.work_locations)

    def find_group(self, group_id: str) -> Optional[Group]:
        """Stored or automatic group by id."""
        for group in self.groups + self.automatic_groups:
            if group.id == group_id:
                return group
        return None

    @property
    def team_members(self) -> List[TeamMember]:
        return self.team_roster.members

    def filtered_users(self, search_term: str = "", location_id: str = "all") -> List[UserProfile]:
        return filter_users(self.users, search_term, location_id)

    def snapshot(self) -> AggregatedSnapshot:
        """Immutable copy of everything the context currently exposes."""
        return AggregatedSnapshot(
            state=self._state,
            subunit_id=self._subunit_id,
            subunit=self._subunit,
            views={kind: self.view(kind) for kind in ContentKind},
            draft_counts={kind: self.draft_count(kind) for kind in ContentKind},
            show_drafts={kind: self.show_drafts(kind) for kind in ContentKind},
            users=self.users,
            groups=self.groups,
            automatic_groups=self.automatic_groups,
            team_members=self.team_members,
            work_locations=self.work_locations,
            positions=self.position_options,
            errors={name: str(error) for name, error in self.errors.items()},
        )
