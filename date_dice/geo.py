"""Geospatial helpers."""
from __future__ import annotations

import math

from . import config
from .models import CameraFraming, Coordinate, SearchRegion


def meters_to_lat_delta(meters: float) -> float:
    return (meters / config.EARTH_RADIUS_M) * (180.0 / math.pi)


def search_region(center: Coordinate, radius_m: float) -> SearchRegion:
    # Square box in degree space; longitude is not widened at high latitudes.
    delta = meters_to_lat_delta(radius_m)
    return SearchRegion(center=center, lat_span=delta, lon_span=delta)


def camera_framing(center: Coordinate, radius_m: float) -> CameraFraming:
    span = meters_to_lat_delta(radius_m * config.CAMERA_RADIUS_FACTOR)
    return CameraFraming(center=center, lat_span=span, lon_span=span)


def default_camera_framing() -> CameraFraming:
    lat, lon = config.DEFAULT_CAMERA_CENTER
    return CameraFraming(
        center=Coordinate(lat, lon),
        lat_span=config.DEFAULT_CAMERA_SPAN,
        lon_span=config.DEFAULT_CAMERA_SPAN,
    )


def wrap_lon(lon: float) -> float:
    """Fold a longitude back into [-180, 180]."""
    if -180.0 <= lon <= 180.0:
        return lon
    return (lon + 180.0) % 360.0 - 180.0


def region_contains(region: SearchRegion, coordinate: Coordinate) -> bool:
    lat_min, lat_max = region.lat_range
    if not lat_min <= coordinate.lat <= lat_max:
        return False
    # Boxes near the antimeridian extend past +-180; test the shifted longitudes too.
    lon_min, lon_max = region.lon_range
    lon = coordinate.lon
    return any(lon_min <= shifted <= lon_max for shifted in (lon, lon - 360.0, lon + 360.0))


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    r = config.EARTH_RADIUS_M
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lon - a.lon)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return r * c
