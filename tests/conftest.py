# Test Configuration
"""Pytest fixtures for portal_sync tests."""

import asyncio
import copy
import itertools
from collections import Counter
from typing import Any, Dict, List

import pytest

from portal_sync.errors import NotFoundError
from portal_sync.models.content import ContentKind, SubunitScope
from portal_sync.services.aggregation_context import AggregationContext
from portal_sync.services.backend import PortalBackend
from portal_sync.services.cache_store import CacheStore
from portal_sync.services.retrying_fetcher import RetryingFetcher


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeBackend(PortalBackend):
    """
    In-memory portal backend.

    Every call increments one or more keys in ``calls``. A test can block a
    key with ``gate(key)`` and queue errors with ``fail(key, error)``. Content
    keys are ``"{kind}"`` and ``"{kind}:{subunit_id}"``; team reads use
    ``"team"`` and ``"team:{subunit_id}"``. Sent group messages are kept in
    ``messages_sent``.
    """

    def __init__(self):
        self.subunits: Dict[tuple, Dict[str, Any]] = {}
        self.subsectors: Dict[str, List[Dict[str, Any]]] = {}
        self.content: Dict[tuple, List[Dict[str, Any]]] = {}
        self.users: List[Dict[str, Any]] = []
        self.work_locations: List[Dict[str, Any]] = []
        self.positions: List[Dict[str, Any]] = []
        self.groups: Dict[tuple, List[Dict[str, Any]]] = {}
        self.team: Dict[tuple, List[Dict[str, Any]]] = {}
        self.messages_sent: List[Dict[str, Any]] = []
        self.calls: Counter = Counter()
        self.failures: Dict[str, List[BaseException]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.closed = False
        self._ids = itertools.count(1)

    # Test controls

    def gate(self, key: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[key] = event
        return event

    def fail(self, key: str, *errors: BaseException):
        self.failures.setdefault(key, []).extend(errors)

    def add_subunit(self, scope: SubunitScope, row: Dict[str, Any]):
        self.subunits[(scope, row["id"])] = row

    def add_content(self, scope: SubunitScope, kind: ContentKind, subunit_id: str, rows: List[Dict[str, Any]]):
        self.content.setdefault((scope, kind, subunit_id), []).extend(rows)

    async def _enter(self, *keys: str):
        for key in keys:
            self.calls[key] += 1
        for key in keys:
            gate = self.gates.get(key)
            if gate is not None:
                await gate.wait()
        for key in keys:
            queued = self.failures.get(key)
            if queued:
                raise queued.pop(0)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-new-{next(self._ids)}"

    def _find(self, store: Dict[tuple, List[Dict[str, Any]]], prefix: tuple, row_id: str):
        for key, rows in store.items():
            if key[: len(prefix)] != prefix:
                continue
            for row in rows:
                if row["id"] == row_id:
                    return rows, row
        raise NotFoundError(f"Row {row_id} not found")

    # Subunits

    async def get_subunit(self, scope, subunit_id):
        await self._enter("subunit", f"subunit:{subunit_id}")
        row = self.subunits.get((scope, subunit_id))
        if row is None:
            raise NotFoundError(f"{scope.value} {subunit_id} not found")
        return copy.deepcopy(row)

    async def list_subsectors(self, sector_id):
        await self._enter("subsectors")
        return copy.deepcopy(self.subsectors.get(sector_id, []))

    # Content

    async def list_content(self, scope, kind, subunit_id):
        await self._enter(kind.value, f"{kind.value}:{subunit_id}")
        return copy.deepcopy(self.content.get((scope, kind, subunit_id), []))

    async def create_content(self, scope, kind, payload):
        await self._enter("create_content")
        row = {
            "id": self._next_id(kind.value),
            "is_published": False,
            "created_at": "2024-06-01T12:00:00+00:00",
        }
        row.update(payload)
        self.content.setdefault((scope, kind, payload[scope.column]), []).append(row)
        return copy.deepcopy(row)

    async def update_content(self, scope, kind, item_id, patch):
        await self._enter("update_content")
        _, row = self._find(self.content, (scope, kind), item_id)
        row.update(patch)
        return copy.deepcopy(row)

    async def delete_content(self, scope, kind, item_id):
        await self._enter("delete_content")
        rows, row = self._find(self.content, (scope, kind), item_id)
        rows.remove(row)

    # Reference data

    async def list_users(self):
        await self._enter("users")
        return copy.deepcopy(self.users)

    async def list_work_locations(self):
        await self._enter("work_locations")
        return copy.deepcopy(self.work_locations)

    async def list_positions(self):
        await self._enter("positions")
        return copy.deepcopy(self.positions)

    async def list_groups(self, scope, subunit_id):
        await self._enter("groups", f"groups:{subunit_id}")
        return copy.deepcopy(self.groups.get((scope, subunit_id), []))

    # Groups

    async def create_group(self, payload):
        await self._enter("create_group")
        row = {"id": self._next_id("group"), "user_ids": []}
        row.update(payload)
        scope = SubunitScope.SECTOR if payload.get("sector_id") else SubunitScope.SUBSECTOR
        self.groups.setdefault((scope, payload[scope.column]), []).append(row)
        return copy.deepcopy(row)

    async def update_group(self, group_id, patch):
        await self._enter("update_group")
        _, row = self._find(self.groups, (), group_id)
        row.update(patch)
        return copy.deepcopy(row)

    async def delete_group(self, group_id):
        await self._enter("delete_group")
        rows, row = self._find(self.groups, (), group_id)
        rows.remove(row)

    # Team membership

    async def list_team_members(self, scope, subunit_id):
        await self._enter("team", f"team:{subunit_id}")
        return copy.deepcopy(self.team.get((scope, subunit_id), []))

    async def add_team_member(self, scope, payload):
        await self._enter("add_team_member")
        row = {"id": self._next_id("member"), "created_at": "2024-06-01T12:00:00+00:00"}
        row.update(payload)
        self.team.setdefault((scope, payload[scope.column]), []).insert(0, row)
        return copy.deepcopy(row)

    async def update_team_member(self, scope, member_id, patch):
        await self._enter("update_team_member")
        _, row = self._find(self.team, (scope,), member_id)
        row.update(patch)
        return copy.deepcopy(row)

    async def remove_team_member(self, scope, member_id):
        await self._enter("remove_team_member")
        rows, row = self._find(self.team, (scope,), member_id)
        rows.remove(row)

    # Notifications

    async def send_group_message(self, payload):
        await self._enter("send_group_message")
        self.messages_sent.append(copy.deepcopy(payload))
        return {"sent": len(payload.get("user_ids", []))}

    async def close(self):
        self.closed = True


def news_row(index: int, published: bool, subunit_id: str = "S1") -> Dict[str, Any]:
    return {
        "id": f"news-{subunit_id}-{index}",
        "title": f"News {index}",
        "summary": "Summary",
        "content": "Body",
        "is_published": published,
        "created_at": f"2024-01-{index:02d}T10:00:00+00:00",
        "subsector_id": subunit_id,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def fetcher(sleeper):
    """Retrying fetcher with the default policy and a non-blocking sleep."""
    return RetryingFetcher(timeout=1.0, max_attempts=3, base_delay=1.0, max_delay=5.0, sleep=sleeper)


@pytest.fixture
def cache(clock):
    return CacheStore(ttl_seconds=300, clock=clock)


@pytest.fixture
def backend():
    """
    Backend seeded with two subsectors.

    S1 has five news items (three published, two drafts), no events, one
    video, two groups and one team member (U1). S2 has one published news
    item.
    """
    fake = FakeBackend()
    fake.add_subunit(
        SubunitScope.SUBSECTOR,
        {"id": "S1", "name": "Payroll", "sector_id": "SEC1", "sectors": {"name": "Finance"}},
    )
    fake.add_subunit(
        SubunitScope.SUBSECTOR,
        {"id": "S2", "name": "Benefits", "sector_id": "SEC1", "sectors": [{"name": "Finance"}]},
    )
    fake.add_subunit(SubunitScope.SECTOR, {"id": "SEC1", "name": "Finance"})
    fake.subsectors["SEC1"] = [
        {"id": "S2", "name": "Benefits", "sector_id": "SEC1"},
        {"id": "S1", "name": "Payroll", "sector_id": "SEC1"},
    ]

    fake.add_content(
        SubunitScope.SUBSECTOR,
        ContentKind.NEWS,
        "S1",
        [news_row(1, True), news_row(2, False), news_row(3, True), news_row(4, False), news_row(5, True)],
    )
    fake.add_content(
        SubunitScope.SUBSECTOR,
        ContentKind.VIDEOS,
        "S1",
        [{"id": "video-1", "title": "Intro", "video_url": "https://youtu.be/x", "is_published": True}],
    )
    fake.add_content(SubunitScope.SUBSECTOR, ContentKind.NEWS, "S2", [news_row(1, True, "S2")])
    fake.add_content(
        SubunitScope.SECTOR,
        ContentKind.NEWS,
        "SEC1",
        [news_row(1, True, "SEC1")],
    )

    fake.work_locations = [
        {"id": "L1", "name": "Headquarters", "city": "Brasilia"},
        {"id": "L2", "name": "Branch"},
        {"id": "L3", "name": "Empty Office"},
    ]
    fake.users = [
        {"id": "U1", "full_name": "Ana Souza", "email": "ana@example.com", "work_location_id": "L1"},
        {"id": "U2", "full_name": "Bruno Lima", "email": "bruno@example.com", "work_location_id": "L1"},
        {"id": "U3", "full_name": "Carla Dias", "email": "carla@corp.example", "work_location_id": "L2"},
    ]
    fake.positions = [
        {"id": "P1", "name": "Analyst", "department": "Finance"},
        {"id": "P2", "name": "Manager"},
    ]
    fake.groups[(SubunitScope.SUBSECTOR, "S1")] = [
        {"id": "G1", "name": "Team", "user_ids": ["U1", "U2"], "subsector_id": "S1"},
        {"id": "G2", "name": "Leads", "user_ids": ["U1"], "subsector_id": "S1"},
    ]
    fake.team[(SubunitScope.SUBSECTOR, "S1")] = [
        {
            "id": "M1",
            "user_id": "U1",
            "subsector_id": "S1",
            "position": "Analyst",
            "created_at": "2024-01-15T09:00:00+00:00",
            "profiles": {"full_name": "Ana Souza", "email": "ana@example.com"},
        }
    ]
    return fake


@pytest.fixture
def context(backend, fetcher, cache):
    """Subsector context over the seeded backend."""
    return AggregationContext(backend, fetcher=fetcher, cache=cache, default_show_drafts=False)
