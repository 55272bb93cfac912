"""Search orchestration: the roulette state machine."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from . import config
from .dedup import filter_to_region, merge_results
from .geo import camera_framing, default_camera_framing, search_region
from .location import LocationTracker
from .models import (
    ActivityLabel,
    AuthorizationStatus,
    CameraFraming,
    CategoryQuery,
    Coordinate,
    PlaceCandidate,
    PlaceQuery,
    SearchRegion,
    SearchResultSet,
    SearchState,
    TextQuery,
)
from .providers import LocationProvider, PlaceSearchProvider
from .randomizer import ActivityRandomizer

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Roll an activity"
DEFAULT_BUTTON_LABEL = "Randomize Activity"


@dataclass(frozen=True)
class OrchestratorSnapshot:
    state: SearchState
    label: Optional[ActivityLabel]
    results: SearchResultSet
    camera: CameraFraming
    radius_m: int
    coordinate: Optional[Coordinate]
    authorization_status: AuthorizationStatus

    @property
    def title(self) -> str:
        return self.label.title if self.label else DEFAULT_TITLE

    @property
    def button_label(self) -> str:
        return self.label.title if self.label else DEFAULT_BUTTON_LABEL

    @property
    def is_loading(self) -> bool:
        return self.state == SearchState.SEARCHING

    @property
    def show_results_list(self) -> bool:
        return bool(self.results)

    @property
    def show_empty_indicator(self) -> bool:
        return self.state == SearchState.RESULTS_EMPTY


Observer = Callable[[OrchestratorSnapshot], None]


class SearchOrchestrator:
    """Owns the current activity, radius and search state.

    All mutation happens on one event loop. At most one search cycle is in
    flight; each cycle carries a sequence number and only the latest one may
    publish results.
    """

    def __init__(
        self,
        search_provider: PlaceSearchProvider,
        location_provider: LocationProvider,
        randomizer: ActivityRandomizer,
        radius_m: Optional[int] = None,
        dual_query: Optional[bool] = None,
        refresh_on_move: Optional[bool] = None,
        tracker: Optional[LocationTracker] = None,
    ) -> None:
        self.search_provider = search_provider
        self.location_provider = location_provider
        self.randomizer = randomizer
        self.radius_m = config.validate_radius(
            config.DEFAULT_RADIUS_M if radius_m is None else radius_m
        )
        self.dual_query = config.DUAL_QUERY if dual_query is None else dual_query
        self.refresh_on_move = config.REFRESH_ON_MOVE if refresh_on_move is None else refresh_on_move
        self.tracker = tracker or LocationTracker()

        self.state = SearchState.IDLE
        self.label: Optional[ActivityLabel] = None
        self.results: SearchResultSet = ()
        self.camera: CameraFraming = default_camera_framing()
        self.authorization_status = location_provider.authorization_status

        self._seq = 0
        self._searching = False
        self._refresh_pending = False
        self._observers: List[Observer] = []
        self._tasks: Set[asyncio.Task] = set()

        location_provider.attach(self.on_location_update, self.on_authorization_change)

    # --- observable state ---

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return self.tracker.current

    @property
    def is_searching(self) -> bool:
        return self._searching

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            state=self.state,
            label=self.label,
            results=self.results,
            camera=self.camera,
            radius_m=self.radius_m,
            coordinate=self.coordinate,
            authorization_status=self.authorization_status,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for observer in list(self._observers):
            observer(snap)

    def _set_state(self, state: SearchState) -> None:
        if state != self.state:
            logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state
        self._notify()

    # --- lifecycle and location ---

    def start(self) -> None:
        self.authorization_status = self.location_provider.authorization_status
        if self.authorization_status.is_denied:
            self._set_state(SearchState.LOCATION_DENIED)
            return
        if self.coordinate is not None:
            self._set_state(SearchState.READY)
            return
        self._set_state(SearchState.FETCHING_LOCATION)
        self.location_provider.request_location()

    def on_location_update(self, coordinate: Optional[Coordinate]) -> None:
        had_coordinate = self.coordinate is not None
        if not self.tracker.update(coordinate):
            return
        if coordinate is None:
            logger.info("Location lost")
            self._notify()
            return

        self.camera = camera_framing(coordinate, self.radius_m)
        if self.state == SearchState.LOCATION_DENIED:
            self._notify()
            return
        if self.state in (SearchState.IDLE, SearchState.FETCHING_LOCATION):
            self._set_state(SearchState.READY)
            return
        self._notify()
        if self.refresh_on_move and had_coordinate and self.label is not None:
            self._spawn(self._refresh())

    def on_authorization_change(self, status: AuthorizationStatus) -> None:
        self.authorization_status = status
        if status.is_denied:
            # Invalidate the in-flight cycle; its requests still complete.
            self._seq += 1
            self._refresh_pending = False
            self._set_state(SearchState.LOCATION_DENIED)
            return
        if status.is_authorized and self.state in (SearchState.LOCATION_DENIED, SearchState.IDLE):
            if self.coordinate is not None:
                self._set_state(SearchState.READY)
                return
            self._set_state(SearchState.FETCHING_LOCATION)
            self.location_provider.request_location()
            return
        self._notify()

    # --- commands ---

    async def change_activity(self) -> bool:
        """Roll a new activity and search for it.

        Returns False without touching label or results when no coordinate is
        known, location is denied, or a search is already in flight.
        """
        if self._searching:
            logger.debug("Reroll ignored: search in flight")
            return False
        if not self._can_search():
            logger.info("Reroll ignored: no usable location (state=%s)", self.state.value)
            return False
        self.label = self.randomizer.next_label(self.label)
        logger.info(
            "Rolled %r (category=%s)",
            self.label.term,
            self.label.category.key if self.label.category else None,
        )
        await self._run_cycles()
        return True

    async def set_radius(self, meters: float) -> bool:
        meters = config.validate_radius(meters)
        if meters == self.radius_m:
            return False
        self.radius_m = meters
        if self.coordinate is not None:
            self.camera = camera_framing(self.coordinate, meters)
        self._notify()
        if self.label is None or not self._can_search():
            return False
        await self._refresh()
        return True

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # --- search cycle ---

    def _can_search(self) -> bool:
        return self.coordinate is not None and self.state != SearchState.LOCATION_DENIED

    async def _refresh(self) -> None:
        if self._searching:
            # Latest wins: the running cycle becomes stale and a new one follows it.
            self._seq += 1
            self._refresh_pending = True
            return
        await self._run_cycles()

    async def _run_cycles(self) -> None:
        self._searching = True
        try:
            while True:
                self._refresh_pending = False
                self._seq += 1
                seq = self._seq
                label, coordinate, radius_m = self.label, self.coordinate, self.radius_m
                if label is None or coordinate is None:
                    return
                self._set_state(SearchState.SEARCHING)
                results = await self._search_once(label, coordinate, radius_m)

                if seq != self._seq:
                    logger.info("Discarding stale results of search cycle %s", seq)
                    if self._refresh_pending and self._can_search():
                        continue
                    return

                self.results = results
                self._set_state(
                    SearchState.RESULTS_NON_EMPTY if results else SearchState.RESULTS_EMPTY
                )
                return
        finally:
            self._searching = False
            if self.state == SearchState.SEARCHING:
                self._settle()

    def _settle(self) -> None:
        """Leave SEARCHING after a cycle that published nothing."""
        if self.coordinate is None:
            self._set_state(SearchState.FETCHING_LOCATION)
        elif self.results:
            self._set_state(SearchState.RESULTS_NON_EMPTY)
        else:
            self._set_state(SearchState.READY)

    async def _search_once(
        self, label: ActivityLabel, coordinate: Coordinate, radius_m: int
    ) -> SearchResultSet:
        region = search_region(coordinate, radius_m)
        queries = self._queries_for(label)
        logger.info(
            "Searching %s m (%.5f lat delta) with %s queries",
            radius_m,
            region.lat_span,
            len(queries),
        )
        found = await asyncio.gather(*(self._run_strategy(q, region) for q in queries))
        merged = merge_results(found)
        logger.info("Search for %r produced %s unique places", label.term, len(merged))
        return merged

    def _queries_for(self, label: ActivityLabel) -> Tuple[PlaceQuery, ...]:
        text = TextQuery(label.term)
        if label.category is None:
            return (text,)
        category = CategoryQuery(label.category)
        if not self.dual_query:
            return (category,)
        # Text results come first in the merged order.
        return (text, category)

    async def _run_strategy(self, query: PlaceQuery, region: SearchRegion) -> List[PlaceCandidate]:
        try:
            found = await self.search_provider.search(query, region)
        except Exception as exc:
            logger.warning("%s search failed, treating as no results: %s", type(query).__name__, exc)
            return []
        in_range = filter_to_region(found, region)
        dropped = len(found) - len(in_range)
        if dropped:
            logger.debug("Dropped %s out-of-region candidates", dropped)
        return in_range

    def _spawn(self, coro: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; skipping background refresh")
            if asyncio.iscoroutine(coro):
                coro.close()
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
