import asyncio
import math

import pytest

from date_dice.catalog import get_category
from date_dice.geo import meters_to_lat_delta
from date_dice.location import ManualLocationProvider
from date_dice.models import (
    AuthorizationStatus,
    CategoryQuery,
    Coordinate,
    PlaceCandidate,
    SearchState,
    TextQuery,
)
from date_dice.orchestrator import SearchOrchestrator
from date_dice.randomizer import ActivityRandomizer

HERE = Coordinate(37.7858, -122.4064)

A = PlaceCandidate(name="X", coordinate=Coordinate(37.80, -122.40))
B = PlaceCandidate(name="Y", coordinate=Coordinate(37.90, -122.40))
C = PlaceCandidate(name="Z", coordinate=Coordinate(37.81, -122.41))


class FakeProvider:
    """Answers text and category queries from fixed lists.

    Entries may be exceptions, which are raised instead. When ``gate`` is set
    up, every search waits on it before answering.
    """

    def __init__(self, text=None, category=None, gate=None):
        self.text = text if text is not None else []
        self.category = category if category is not None else []
        self.gate = gate
        self.started = asyncio.Event()
        self.calls = []

    async def search(self, query, region):
        self.calls.append((query, region))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        answer = self.text if isinstance(query, TextQuery) else self.category
        if isinstance(answer, Exception):
            raise answer
        return list(answer)


def make_orchestrator(provider, terms=("Club",), categories=None, status=None, coordinate=HERE, **kwargs):
    if categories is None:
        categories = [get_category("nightlife")]
    location = ManualLocationProvider(
        coordinate,
        status or AuthorizationStatus.AUTHORIZED_WHEN_IN_USE,
        grant_on_prompt=kwargs.pop("grant_on_prompt", True),
    )
    randomizer = ActivityRandomizer(list(terms), categories)
    orch = SearchOrchestrator(provider, location, randomizer, radius_m=kwargs.pop("radius_m", 5000), **kwargs)
    return orch, location


def test_start_without_fix_fetches_location():
    orch, location = make_orchestrator(FakeProvider(), coordinate=None)
    assert orch.state == SearchState.IDLE

    orch.start()

    assert orch.state == SearchState.FETCHING_LOCATION
    assert location.requests == 1


def test_first_fix_moves_to_ready_and_frames_camera():
    orch, _ = make_orchestrator(FakeProvider())
    orch.start()

    assert orch.state == SearchState.READY
    assert orch.coordinate == HERE
    assert orch.camera.center == HERE
    assert math.isclose(orch.camera.lat_span, meters_to_lat_delta(5000 * 25 / 9))


@pytest.mark.asyncio
async def test_club_scenario_merges_text_first_and_filters_region():
    provider = FakeProvider(text=[A, B], category=[A, C])
    orch, _ = make_orchestrator(provider)
    orch.start()

    assert await orch.change_activity() is True

    snap = orch.snapshot()
    assert snap.label.term == "Club"
    assert snap.results == (A, C)
    assert snap.state == SearchState.RESULTS_NON_EMPTY
    assert snap.show_results_list is True
    assert snap.show_empty_indicator is False
    assert snap.title == "Club"
    queries = [q for q, _ in provider.calls]
    assert queries == [TextQuery("Club"), CategoryQuery(get_category("nightlife"))]
    region = provider.calls[0][1]
    assert math.isclose(region.lat_span, meters_to_lat_delta(5000))


@pytest.mark.asyncio
async def test_both_empty_yields_empty_state():
    orch, _ = make_orchestrator(FakeProvider())
    orch.start()

    await orch.change_activity()

    snap = orch.snapshot()
    assert snap.state == SearchState.RESULTS_EMPTY
    assert snap.results == ()
    assert snap.show_results_list is False
    assert snap.show_empty_indicator is True
    assert snap.is_loading is False


@pytest.mark.asyncio
async def test_failed_strategy_does_not_fail_the_other():
    provider = FakeProvider(text=RuntimeError("timeout"), category=[C])
    orch, _ = make_orchestrator(provider)
    orch.start()

    await orch.change_activity()

    assert orch.results == (C,)
    assert orch.state == SearchState.RESULTS_NON_EMPTY


@pytest.mark.asyncio
async def test_both_strategies_failing_looks_empty():
    provider = FakeProvider(text=RuntimeError("down"), category=RuntimeError("down"))
    orch, _ = make_orchestrator(provider)
    orch.start()

    await orch.change_activity()

    assert orch.state == SearchState.RESULTS_EMPTY


@pytest.mark.asyncio
async def test_reroll_while_searching_is_noop():
    gate = asyncio.Event()
    provider = FakeProvider(text=[A], gate=gate)
    orch, _ = make_orchestrator(provider, terms=("Club", "Bar"))
    orch.start()

    first = asyncio.create_task(orch.change_activity())
    await provider.started.wait()
    label_during = orch.label

    assert orch.state == SearchState.SEARCHING
    assert orch.snapshot().is_loading is True
    assert await orch.change_activity() is False
    assert orch.label == label_during
    assert orch.results == ()

    gate.set()
    assert await first is True
    assert orch.results == (A,)
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_reroll_without_location_is_noop():
    provider = FakeProvider(text=[A])
    orch, _ = make_orchestrator(provider, coordinate=None)
    orch.start()

    assert await orch.change_activity() is False
    assert orch.label is None
    assert provider.calls == []


def test_permission_denied_on_prompt():
    orch, _ = make_orchestrator(
        FakeProvider(), status=AuthorizationStatus.NOT_DETERMINED, grant_on_prompt=False
    )
    orch.start()
    assert orch.state == SearchState.LOCATION_DENIED
    assert orch.authorization_status == AuthorizationStatus.DENIED


@pytest.mark.asyncio
async def test_denial_mid_search_discards_results():
    gate = asyncio.Event()
    provider = FakeProvider(text=[A], category=[C], gate=gate)
    orch, location = make_orchestrator(provider, status=AuthorizationStatus.NOT_DETERMINED)
    orch.start()
    assert orch.state == SearchState.READY

    task = asyncio.create_task(orch.change_activity())
    await provider.started.wait()
    location.set_authorization(AuthorizationStatus.DENIED)
    assert orch.state == SearchState.LOCATION_DENIED

    gate.set()
    await task

    assert orch.state == SearchState.LOCATION_DENIED
    assert orch.results == ()
    assert await orch.change_activity() is False


def test_reauthorization_after_denial_returns_to_ready():
    orch, location = make_orchestrator(FakeProvider(), status=AuthorizationStatus.DENIED)
    location.coordinate = HERE
    orch.start()
    assert orch.state == SearchState.LOCATION_DENIED

    location.set_authorization(AuthorizationStatus.AUTHORIZED_WHEN_IN_USE)

    assert orch.state == SearchState.READY
    assert orch.coordinate == HERE
    assert location.requests == 1


@pytest.mark.asyncio
async def test_radius_change_reframes_and_refreshes_same_label():
    provider = FakeProvider(text=[A])
    orch, _ = make_orchestrator(provider, terms=("Club", "Bar"))
    orch.start()
    await orch.change_activity()
    label = orch.label

    assert await orch.set_radius(10000) is True

    assert orch.label == label
    assert math.isclose(orch.camera.lat_span, meters_to_lat_delta(10000 * 25 / 9))
    assert len(provider.calls) == 4
    assert math.isclose(provider.calls[-1][1].lat_span, meters_to_lat_delta(10000))
    assert provider.calls[-2][0] == TextQuery(label.term)


@pytest.mark.asyncio
async def test_radius_change_without_label_only_reframes():
    provider = FakeProvider()
    orch, _ = make_orchestrator(provider)
    orch.start()

    assert await orch.set_radius(20000) is False
    assert math.isclose(orch.camera.lat_span, meters_to_lat_delta(20000 * 25 / 9))
    assert provider.calls == []


@pytest.mark.asyncio
async def test_invalid_radius_rejected():
    orch, _ = make_orchestrator(FakeProvider())
    with pytest.raises(ValueError):
        await orch.set_radius(1234)


@pytest.mark.asyncio
async def test_radius_change_during_search_runs_latest_only():
    near = PlaceCandidate(name="Near", coordinate=Coordinate(37.79, -122.40))
    far = PlaceCandidate(name="Far", coordinate=Coordinate(37.86, -122.40))
    gate = asyncio.Event()

    class RadiusProvider(FakeProvider):
        async def search(self, query, region):
            self.calls.append((query, region))
            self.started.set()
            await gate.wait()
            if region.lat_span > meters_to_lat_delta(5000):
                return [near, far]
            return [near]

    provider = RadiusProvider()
    orch, _ = make_orchestrator(provider)
    orch.start()

    task = asyncio.create_task(orch.change_activity())
    await provider.started.wait()
    assert await orch.set_radius(10000) is True

    gate.set()
    await task

    assert orch.results == (near, far)
    assert orch.state == SearchState.RESULTS_NON_EMPTY
    assert orch.is_searching is False
    assert len(provider.calls) == 4


@pytest.mark.asyncio
async def test_single_query_mode_prefers_category():
    provider = FakeProvider(text=[A], category=[C])
    orch, _ = make_orchestrator(provider, dual_query=False)
    orch.start()

    await orch.change_activity()

    assert [q for q, _ in provider.calls] == [CategoryQuery(get_category("nightlife"))]
    assert orch.results == (C,)


@pytest.mark.asyncio
async def test_no_category_catalog_issues_text_only():
    provider = FakeProvider(text=[A])
    orch, _ = make_orchestrator(provider, categories=[])
    orch.start()

    await orch.change_activity()

    assert [q for q, _ in provider.calls] == [TextQuery("Club")]


def test_duplicate_location_updates_do_not_notify():
    orch, location = make_orchestrator(FakeProvider())
    orch.start()
    seen = []
    orch.subscribe(seen.append)

    location.move_to(HERE)
    location.move_to(Coordinate(37.78581, -122.4064))
    assert seen == []

    location.move_to(Coordinate(37.80, -122.4064))
    assert len(seen) == 1
    assert seen[0].camera.center == Coordinate(37.80, -122.4064)


@pytest.mark.asyncio
async def test_refresh_on_move_triggers_new_search():
    provider = FakeProvider(text=[A])
    orch, location = make_orchestrator(provider, refresh_on_move=True)
    orch.start()
    await orch.change_activity()

    location.move_to(Coordinate(37.79, -122.40))
    await orch.wait_idle()

    assert len(provider.calls) == 4
    assert provider.calls[-1][1].center == Coordinate(37.79, -122.40)


def test_unsubscribe_stops_notifications():
    orch, _ = make_orchestrator(FakeProvider(), coordinate=None)
    seen = []
    unsubscribe = orch.subscribe(seen.append)
    orch.start()
    unsubscribe()
    orch.on_location_update(HERE)

    assert [s.state for s in seen] == [SearchState.FETCHING_LOCATION]
    assert orch.state == SearchState.READY


@pytest.mark.asyncio
async def test_stale_cycle_without_location_leaves_searching():
    gate = asyncio.Event()
    provider = FakeProvider(text=[A], category=[C], gate=gate)
    orch, location = make_orchestrator(provider)
    orch.start()

    task = asyncio.create_task(orch.change_activity())
    await provider.started.wait()
    assert await orch.set_radius(10000) is True
    orch.on_location_update(None)

    gate.set()
    await task

    snap = orch.snapshot()
    assert snap.state == SearchState.FETCHING_LOCATION
    assert snap.is_loading is False
    assert orch.is_searching is False
    assert snap.results == ()
    assert len(provider.calls) == 2

    location.move_to(HERE)
    assert orch.state == SearchState.READY
