"""Merge and deduplicate place candidates from several query strategies."""
from __future__ import annotations

from typing import Iterable, List, Optional, Set, Tuple

from . import config
from .geo import region_contains
from .models import PlaceCandidate, SearchRegion, SearchResultSet


def filter_to_region(
    candidates: Iterable[PlaceCandidate], region: SearchRegion
) -> List[PlaceCandidate]:
    return [c for c in candidates if region_contains(region, c.coordinate)]


def merge_results(lists: Iterable[Iterable[PlaceCandidate]]) -> SearchResultSet:
    """Concatenate ``lists`` in order, keeping the first candidate per identity.

    Identity is (rounded latitude, rounded longitude, name).
    """
    seen: Set[Tuple[float, float, Optional[str]]] = set()
    merged: List[PlaceCandidate] = []
    for candidates in lists:
        for candidate in candidates:
            key = candidate.identity_key(config.COORDINATE_DEDUP_PRECISION)
            if key in seen:
                continue
            seen.add(key)
            merged.append(candidate)
    return tuple(merged)
