# Aggregation Context Tests
"""End-to-end tests for the aggregation façade."""

import asyncio

import pytest

from portal_sync.errors import BackendError, ContextDisposedError, NoActiveSubunitError
from portal_sync.models.content import ContentKind, SubunitScope
from portal_sync.models.state import AggregatedSnapshot, ContextState
from portal_sync.services.aggregation_context import AggregationContext


async def wait_for_calls(backend, key, count=1):
    for _ in range(200):
        if backend.calls[key] >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"backend never called {key}")


class TestEndToEnd:
    """Test a full load of one subsector."""

    @pytest.mark.asyncio
    async def test_load_subsector(self, backend, context):
        """Five news (three published), no events, drafts hidden by default."""
        assert context.state == ContextState.UNINITIALIZED

        outcome = await context.load("S1")

        assert outcome.ok
        assert context.state == ContextState.READY
        assert not context.loading
        assert context.error is None

        assert len(context.news) == 3
        assert context.draft_count(ContentKind.NEWS) == 2
        assert context.show_drafts(ContentKind.NEWS) is False
        assert context.events == []
        assert context.draft_count(ContentKind.EVENTS) == 0
        assert [video.id for video in context.videos] == ["video-1"]
        assert context.documents == [] and context.images == [] and context.messages == []

        assert context.subunit.name == "Payroll"
        assert context.subunit.sector_name == "Finance"
        assert context.subunit_id == "S1"

    @pytest.mark.asyncio
    async def test_toggle_shows_drafts_without_fetching(self, backend, context):
        await context.load("S1")
        calls = sum(backend.calls.values())

        assert context.toggle_drafts("news") is True
        assert len(context.news) == 5
        assert context.draft_count(ContentKind.NEWS) == 2
        # Other kinds keep their own flag
        assert context.show_drafts(ContentKind.EVENTS) is False
        assert sum(backend.calls.values()) == calls

    @pytest.mark.asyncio
    async def test_reference_data(self, context):
        await context.load("S1")

        assert [user.id for user in context.users] == ["U1", "U2", "U3"]
        assert [group.id for group in context.groups] == ["G1", "G2"]
        assert len(context.work_locations) == 3
        assert [option.label for option in context.position_options] == ["Analyst - Finance", "Manager"]
        assert [group.id for group in context.automatic_groups] == ["location-L1", "location-L2"]
        assert [user.id for user in context.filtered_users("carla")] == ["U3"]
        assert [user.id for user in context.filtered_users(location_id="L1")] == ["U1", "U2"]

    @pytest.mark.asyncio
    async def test_snapshot(self, context):
        await context.load("S1")
        context.set_show_drafts(ContentKind.NEWS, True)

        snapshot = context.snapshot()

        assert isinstance(snapshot, AggregatedSnapshot)
        assert snapshot.state == ContextState.READY
        assert len(snapshot.views[ContentKind.NEWS]) == 5
        assert snapshot.draft_counts[ContentKind.NEWS] == 2
        assert snapshot.show_drafts[ContentKind.NEWS] is True
        assert snapshot.positions[0].label == "Analyst - Finance"
        assert snapshot.error is None
        assert not snapshot.loading

    @pytest.mark.asyncio
    async def test_sector_scope_loads_subsectors(self, backend, fetcher, cache):
        context = AggregationContext(backend, scope=SubunitScope.SECTOR, fetcher=fetcher, cache=cache)

        await context.load("SEC1")

        assert context.subunit.scope == SubunitScope.SECTOR
        assert [child.name for child in context.subunit.subsectors] == ["Benefits", "Payroll"]
        assert [item.id for item in context.news] == ["news-SEC1-1"]


class TestStateMachine:
    """Test lifecycle transitions and error surfacing."""

    @pytest.mark.asyncio
    async def test_loading_state(self, backend, context):
        gate = backend.gate("news:S1")

        task = asyncio.ensure_future(context.load("S1"))
        await wait_for_calls(backend, "news:S1")

        assert context.state == ContextState.LOADING
        assert context.loading
        gate.set()
        await task
        assert context.state == ContextState.READY

    @pytest.mark.asyncio
    async def test_primary_failure_is_isolated(self, backend, context):
        backend.fail("news", BackendError("forbidden", status_code=403))

        outcome = await context.load("S1")

        assert context.state == ContextState.ERRORED
        assert set(outcome.primary_errors) == {"news"}
        assert set(context.errors) == {"news"}
        assert "news: HTTP 403: forbidden" in context.error
        # Other kinds still loaded
        assert [video.id for video in context.videos] == ["video-1"]
        assert context.subunit.name == "Payroll"
        assert context.snapshot().errors == {"news": "HTTP 403: forbidden"}

    @pytest.mark.asyncio
    async def test_refresh_kind_recovers(self, backend, context):
        backend.fail("news", BackendError("forbidden", status_code=403))
        await context.load("S1")

        await context.refresh_kind(ContentKind.NEWS)

        assert context.state == ContextState.READY
        assert context.errors == {}
        assert len(context.news) == 3

    @pytest.mark.asyncio
    async def test_refresh_kind_failure_raises(self, backend, context):
        await context.load("S1")
        backend.fail("events", BackendError("bad request", status_code=400))

        with pytest.raises(BackendError):
            await context.refresh_kind("events")

        assert context.state == ContextState.ERRORED
        assert set(context.errors) == {"events"}

    @pytest.mark.asyncio
    async def test_missing_subunit(self, context):
        await context.load("UNKNOWN")

        assert context.state == ContextState.ERRORED
        assert "subunit" in context.errors
        assert context.subunit is None

    @pytest.mark.asyncio
    async def test_auxiliary_failure_keeps_ready(self, backend, context):
        backend.fail("users", BackendError("forbidden", status_code=403))
        backend.fail("positions", *[BackendError("down", status_code=503)] * 3)

        await context.load("S1")

        assert context.state == ContextState.READY
        assert context.error is None
        assert context.users == []
        assert context.positions == []
        assert len(context.news) == 3

    @pytest.mark.asyncio
    async def test_load_requires_identity(self, context):
        with pytest.raises(ValueError):
            await context.load("")

    @pytest.mark.asyncio
    async def test_refresh_without_subunit(self, context):
        with pytest.raises(NoActiveSubunitError):
            await context.refresh_kind(ContentKind.NEWS)
        with pytest.raises(NoActiveSubunitError):
            await context.refresh_all()


class TestIdentityChange:
    """Test switching subunits."""

    @pytest.mark.asyncio
    async def test_switch_resets_scoped_state(self, backend, context):
        await context.load("S1")
        context.toggle_drafts(ContentKind.NEWS)

        await context.load("S2")

        assert context.subunit.name == "Benefits"
        assert context.show_drafts(ContentKind.NEWS) is False
        assert [item.id for item in context.news] == ["news-S2-1"]
        assert context.videos == []
        assert context.groups == []
        # Global reference data is cached across subunits
        assert len(context.users) == 3
        assert backend.calls["users"] == 1
        assert backend.calls["groups:S2"] == 1

    @pytest.mark.asyncio
    async def test_superseded_load_never_observable(self, backend, context):
        backend.gate("news:S1")

        first = asyncio.ensure_future(context.load("S1"))
        await wait_for_calls(backend, "news:S1")
        await context.load("S2")
        stale = await first

        assert stale.superseded
        assert context.state == ContextState.READY
        assert context.subunit_id == "S2"
        assert context.subunit.name == "Benefits"
        assert [item.id for item in context.news] == ["news-S2-1"]

    @pytest.mark.asyncio
    async def test_refresh_all_uses_cache_for_reference_data(self, backend, context):
        await context.load("S1")

        outcome = await context.refresh_all()

        assert outcome.ok
        assert backend.calls["news:S1"] == 2
        assert backend.calls["users"] == 1
        assert backend.calls["groups:S1"] == 1

    @pytest.mark.asyncio
    async def test_shared_cache_between_contexts(self, backend, fetcher, cache, context):
        await context.load("S1")
        other = AggregationContext(backend, fetcher=fetcher, cache=cache)

        await other.load("S2")

        assert backend.calls["users"] == 1
        assert len(other.users) == 3


class TestDispose:
    """Test teardown."""

    @pytest.mark.asyncio
    async def test_dispose_mid_load(self, backend, context):
        backend.gate("news:S1")

        task = asyncio.ensure_future(context.load("S1"))
        await wait_for_calls(backend, "news:S1")
        context.dispose()
        outcome = await task

        assert outcome.superseded
        assert context.state == ContextState.UNINITIALIZED
        assert context.news == []
        assert context.disposed

    @pytest.mark.asyncio
    async def test_context_manager(self, backend, fetcher, cache):
        async with AggregationContext(backend, fetcher=fetcher, cache=cache) as context:
            await context.load("S1")
            assert context.state == ContextState.READY

        with pytest.raises(ContextDisposedError):
            await context.load("S2")
        with pytest.raises(ContextDisposedError):
            await context.refresh_all()
