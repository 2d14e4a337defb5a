"""
Fetch Orchestrator for portal_sync.

Runs every registered loader for one subunit identity concurrently and makes
sure that results of a superseded load are never observable.

Each call to ``load`` opens a FetchSession. Opening a new session cancels the
previous one: its token fires immediately, so every loader's commit step sees
``session.is_current == False`` and drops its result, and (when
``cancel_inflight_requests`` is enabled) its still-running tasks are cancelled.
Failures are isolated per loader; a failing loader never affects the others.

Usage:
    orchestrator = FetchOrchestrator()
    orchestrator.register("news", news_repository.refresh)
    orchestrator.register("users", load_users, primary=False)

    outcome = await orchestrator.load("subsector-1")
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from portal_sync.config import settings
from portal_sync.errors import ContextDisposedError

logger = logging.getLogger("portal_sync.services.fetch_orchestrator")

Loader = Callable[[str, "FetchSession"], Awaitable[Any]]

_session_ids = itertools.count(1)


class FetchSession:
    """Cancellation token and task set for one subunit identity."""

    def __init__(self, subunit_id: str):
        self.id = next(_session_ids)
        self.subunit_id = subunit_id
        self._cancelled = False
        self._finished = False
        self._tasks: List[asyncio.Future] = []

    @property
    def is_current(self) -> bool:
        """False once the session has been superseded or disposed."""
        return not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def in_flight(self) -> bool:
        return not self._finished and not self._cancelled

    @property
    def tasks(self) -> List[asyncio.Future]:
        return list(self._tasks)

    def attach(self, task: asyncio.Future):
        self._tasks.append(task)

    def cancel(self, cancel_tasks: bool = True):
        """
        Fire the token.

        Args:
            cancel_tasks: Also cancel tasks that have not finished yet
        """
        if self._cancelled:
            return
        self._cancelled = True
        if cancel_tasks:
            for task in self._tasks:
                if not task.done():
                    task.cancel()

    def finish(self):
        self._finished = True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else ("finished" if self._finished else "in flight")
        return f"<FetchSession {self.id} {self.subunit_id} {state}>"


@dataclass
class LoaderRegistration:
    name: str
    loader: Loader
    primary: bool = True


@dataclass
class LoadOutcome:
    """
    Result of one orchestrated load.

    Attributes:
        session: Session the load ran under
        errors: Failures per loader name
        primary_errors: Subset of errors raised by primary loaders
        superseded: True when a newer session replaced this one mid-flight
    """
    session: FetchSession
    errors: Dict[str, BaseException] = field(default_factory=dict)
    primary_errors: Dict[str, BaseException] = field(default_factory=dict)
    superseded: bool = False

    @property
    def ok(self) -> bool:
        return not self.superseded and not self.primary_errors


class FetchOrchestrator:
    """
    Concurrent loader runner with per-session cancellation.

    Hooks:
        on_start(session, previous): called synchronously before any loader runs
        on_complete(outcome): called only for sessions still current at the end
    """

    def __init__(
        self,
        cancel_inflight: Optional[bool] = None,
        on_start: Optional[Callable[[FetchSession, Optional[FetchSession]], None]] = None,
        on_complete: Optional[Callable[[LoadOutcome], None]] = None,
    ):
        self.cancel_inflight = (
            settings.cancel_inflight_requests if cancel_inflight is None else cancel_inflight
        )
        self.on_start = on_start
        self.on_complete = on_complete
        self._loaders: Dict[str, LoaderRegistration] = {}
        self._session: Optional[FetchSession] = None
        self._disposed = False

    def register(self, name: str, loader: Loader, primary: bool = True):
        """
        Register a loader.

        Args:
            name: Unique loader name, used as the key of LoadOutcome.errors
            loader: ``(subunit_id, session) -> awaitable``
            primary: Whether a failure of this loader marks the load as failed
        """
        if name in self._loaders:
            raise ValueError(f"Loader already registered: {name}")
        self._loaders[name] = LoaderRegistration(name=name, loader=loader, primary=primary)

    @property
    def loader_names(self) -> List[str]:
        return list(self._loaders)

    @property
    def current_session(self) -> Optional[FetchSession]:
        return self._session

    @property
    def in_flight(self) -> bool:
        return self._session is not None and self._session.in_flight

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def load(self, subunit_id: str, force: bool = False) -> Optional[LoadOutcome]:
        """
        Load everything for a subunit.

        Args:
            subunit_id: Subunit identity to load
            force: Start over even if the same identity is already loading

        Returns:
            LoadOutcome, or None when the same identity was already in flight

        Raises:
            ContextDisposedError: If the orchestrator was disposed
        """
        if self._disposed:
            raise ContextDisposedError("Cannot load after dispose()")

        previous = self._session
        if previous is not None and previous.in_flight and previous.subunit_id == subunit_id and not force:
            logger.debug(f"Load for {subunit_id} already in flight, ignoring")
            return None
        if previous is not None:
            previous.cancel(cancel_tasks=self.cancel_inflight)

        session = FetchSession(subunit_id)
        self._session = session
        if self.on_start:
            self.on_start(session, previous)

        registrations = list(self._loaders.values())
        for registration in registrations:
            session.attach(asyncio.ensure_future(registration.loader(subunit_id, session)))

        logger.debug(f"Started {session!r} with {len(registrations)} loader(s)")
        try:
            results = await asyncio.gather(*session.tasks, return_exceptions=True)
        finally:
            session.finish()

        if not session.is_current:
            logger.debug(f"Discarding results of superseded {session!r}")
            return LoadOutcome(session=session, superseded=True)

        outcome = LoadOutcome(session=session)
        for registration, result in zip(registrations, results):
            if isinstance(result, BaseException):
                outcome.errors[registration.name] = result
                if registration.primary:
                    outcome.primary_errors[registration.name] = result

        if outcome.errors:
            logger.warning(
                f"Load for {subunit_id} finished with failures: "
                f"{', '.join(sorted(outcome.errors))}"
            )
        else:
            logger.info(f"Load for {subunit_id} finished")

        if self.on_complete:
            self.on_complete(outcome)
        return outcome

    def dispose(self):
        """Cancel the current session and refuse further loads."""
        if self._disposed:
            return
        self._disposed = True
        if self._session is not None:
            self._session.cancel(cancel_tasks=True)
        logger.debug("Orchestrator disposed")
