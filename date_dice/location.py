"""Location handling: edge-triggered change detection and a manual provider."""
from __future__ import annotations

import logging
from typing import Optional

from . import config
from .geo import haversine_m
from .models import AuthorizationStatus, Coordinate
from .providers import AuthorizationCallback, LocationCallback

logger = logging.getLogger(__name__)


class LocationTracker:
    """Reports a location change only when it matters.

    A change is a transition between known and unknown, or a move farther
    than ``threshold_m`` from the last reported coordinate.
    """

    def __init__(self, threshold_m: Optional[float] = None) -> None:
        self.threshold_m = config.LOCATION_CHANGE_THRESHOLD_M if threshold_m is None else threshold_m
        self.current: Optional[Coordinate] = None

    def update(self, coordinate: Optional[Coordinate]) -> bool:
        previous = self.current
        if previous is None or coordinate is None:
            if previous is coordinate:
                return False
            self.current = coordinate
            return True
        if haversine_m(previous, coordinate) <= self.threshold_m:
            return False
        self.current = coordinate
        return True


class ManualLocationProvider:
    """In-process location provider fed with a fixed coordinate.

    Mirrors device semantics: an undetermined permission is prompted for
    (granted or denied per ``grant_on_prompt``), a denied permission delivers
    nothing, and an authorized one delivers the configured coordinate.
    """

    def __init__(
        self,
        coordinate: Optional[Coordinate],
        authorization_status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        grant_on_prompt: bool = True,
    ) -> None:
        self.coordinate = coordinate
        self.authorization_status = authorization_status
        self.grant_on_prompt = grant_on_prompt
        self.requests = 0
        self._on_location: Optional[LocationCallback] = None
        self._on_authorization: Optional[AuthorizationCallback] = None

    def attach(self, on_location: LocationCallback, on_authorization: AuthorizationCallback) -> None:
        self._on_location = on_location
        self._on_authorization = on_authorization

    def request_location(self) -> None:
        self.requests += 1
        status = self.authorization_status
        if status == AuthorizationStatus.NOT_DETERMINED:
            granted = (
                AuthorizationStatus.AUTHORIZED_WHEN_IN_USE
                if self.grant_on_prompt
                else AuthorizationStatus.DENIED
            )
            self.set_authorization(granted)
        elif status.is_denied:
            logger.info("Location access denied")
        else:
            self._deliver()

    def set_authorization(self, status: AuthorizationStatus) -> None:
        self.authorization_status = status
        requested = self.requests
        if self._on_authorization is not None:
            self._on_authorization(status)
        # The listener may already have requested a fix.
        if status.is_authorized and self.requests == requested:
            self._deliver()

    def move_to(self, coordinate: Optional[Coordinate]) -> None:
        self.coordinate = coordinate
        if self.authorization_status.is_authorized:
            self._deliver()

    def _deliver(self) -> None:
        if self.coordinate is None:
            logger.error("Error getting location: no coordinate available")
            return
        if self._on_location is not None:
            self._on_location(self.coordinate)
