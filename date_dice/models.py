"""Core value types shared by the search engine and the orchestrator."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


class SearchState(str, Enum):
    IDLE = "idle"
    FETCHING_LOCATION = "fetching_location"
    READY = "ready"
    SEARCHING = "searching"
    RESULTS_NON_EMPTY = "results_non_empty"
    RESULTS_EMPTY = "results_empty"
    LOCATION_DENIED = "location_denied"


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"
    AUTHORIZED_ALWAYS = "authorized_always"

    @property
    def is_denied(self) -> bool:
        return self in (AuthorizationStatus.DENIED, AuthorizationStatus.RESTRICTED)

    @property
    def is_authorized(self) -> bool:
        return self in (
            AuthorizationStatus.AUTHORIZED_WHEN_IN_USE,
            AuthorizationStatus.AUTHORIZED_ALWAYS,
        )


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


@dataclass(frozen=True)
class PoiCategory:
    """Structured point-of-interest category.

    ``place_type`` is the Places API type used as ``includedType`` when the
    provider can filter on it; categories without one are searched by label.
    """

    key: str
    label: str
    place_type: Optional[str] = None
    tier: str = "base"


@dataclass(frozen=True)
class ActivityLabel:
    term: str
    category: Optional[PoiCategory] = None

    @property
    def title(self) -> str:
        return self.term


@dataclass(frozen=True)
class TextQuery:
    text: str


@dataclass(frozen=True)
class CategoryQuery:
    category: PoiCategory


PlaceQuery = Union[TextQuery, CategoryQuery]


@dataclass(frozen=True)
class SearchRegion:
    """Rectangle covering ``center +- lat_span`` by ``center +- lon_span``."""

    center: Coordinate
    lat_span: float
    lon_span: float

    @property
    def lat_range(self) -> Tuple[float, float]:
        return (self.center.lat - self.lat_span, self.center.lat + self.lat_span)

    @property
    def lon_range(self) -> Tuple[float, float]:
        return (self.center.lon - self.lon_span, self.center.lon + self.lon_span)


@dataclass(frozen=True)
class CameraFraming:
    center: Coordinate
    lat_span: float
    lon_span: float


@dataclass(frozen=True)
class PlaceCandidate:
    name: Optional[str]
    coordinate: Coordinate
    place_id: Optional[str] = None
    address: Optional[str] = None
    types: Tuple[str, ...] = field(default_factory=tuple)
    source: Optional[str] = None

    def identity_key(self, precision: int = 7) -> Tuple[float, float, Optional[str]]:
        return (
            round(self.coordinate.lat, precision),
            round(self.coordinate.lon, precision),
            self.name,
        )


SearchResultSet = Tuple[PlaceCandidate, ...]
