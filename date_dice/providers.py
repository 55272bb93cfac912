"""Interfaces of the external collaborators the orchestrator consumes."""
from __future__ import annotations

from typing import Callable, List, Optional, Protocol

from .models import AuthorizationStatus, Coordinate, PlaceCandidate, PlaceQuery, SearchRegion

LocationCallback = Callable[[Optional[Coordinate]], None]
AuthorizationCallback = Callable[[AuthorizationStatus], None]


class PlaceSearchProvider(Protocol):
    async def search(self, query: PlaceQuery, region: SearchRegion) -> List[PlaceCandidate]:
        ...


class LocationProvider(Protocol):
    authorization_status: AuthorizationStatus

    def attach(self, on_location: LocationCallback, on_authorization: AuthorizationCallback) -> None:
        ...

    def request_location(self) -> None:
        ...
