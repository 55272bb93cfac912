"""Places API client and response parsing."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from . import config
from .geo import wrap_lon
from .http import HttpClient, RequestBudget
from .models import CategoryQuery, Coordinate, PlaceCandidate, PlaceQuery, SearchRegion, TextQuery

logger = logging.getLogger(__name__)


class PlacesClient:
    """Google Places (New) text search scoped to a rectangular region.

    Implements the async place-search provider used by the orchestrator; the
    blocking HTTP call runs in a worker thread.
    """

    def __init__(
        self,
        http_client: HttpClient,
        budget: RequestBudget,
        field_mask: str = config.PLACES_FIELD_MASK_MIN,
        max_pages: int = config.PLACES_MAX_PAGES_PER_QUERY,
    ) -> None:
        self.http = http_client
        self.budget = budget
        self.field_mask = field_mask
        self.max_pages = max(1, int(max_pages))

    async def search(self, query: PlaceQuery, region: SearchRegion) -> List[PlaceCandidate]:
        return await asyncio.to_thread(self.search_all, query, region)

    def search_all(self, query: PlaceQuery, region: SearchRegion) -> List[PlaceCandidate]:
        text, included_type, source = describe_query(query)
        places: List[PlaceCandidate] = []
        page_token: Optional[str] = None
        for _ in range(self.max_pages):
            resp = self.search_text(text, region, included_type=included_type, page_token=page_token)
            places.extend(parse_places_response(resp, source=source))
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        logger.info("Places %s query %r returned %s candidates", source, text, len(places))
        return places

    def search_text(
        self,
        text: str,
        region: SearchRegion,
        included_type: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = build_text_search_body(text, region, included_type, page_token)
        self.budget.consume()
        return self.http.post_json(config.PLACES_TEXT_SEARCH_URL, body, self.field_mask)


def describe_query(query: PlaceQuery) -> Tuple[str, Optional[str], str]:
    """Return (text, included_type, source tag) for a query."""
    if isinstance(query, CategoryQuery):
        return query.category.label, query.category.place_type, "category"
    if isinstance(query, TextQuery):
        return query.text, None, "text"
    raise TypeError(f"Unsupported query type: {type(query).__name__}")


def build_text_search_body(
    text: str,
    region: SearchRegion,
    included_type: Optional[str],
    page_token: Optional[str],
) -> Dict[str, Any]:
    lat_min, lat_max = region.lat_range
    lon_min, lon_max = region.lon_range
    body: Dict[str, Any] = {
        "textQuery": text,
        "pageSize": config.PLACES_PAGE_SIZE,
        "locationRestriction": {
            "rectangle": {
                "low": {"latitude": max(-90.0, lat_min), "longitude": wrap_lon(lon_min)},
                "high": {"latitude": min(90.0, lat_max), "longitude": wrap_lon(lon_max)},
            }
        },
    }
    if page_token:
        body["pageToken"] = page_token
    if included_type:
        body["includedType"] = included_type
        body["strictTypeFiltering"] = config.PLACES_STRICT_TYPE_FILTERING
    if config.PLACES_TEXT_SEARCH_BODY_EXTRA:
        body.update(config.PLACES_TEXT_SEARCH_BODY_EXTRA)
    return body


# Adapter/mapper for Places response fields

def parse_places_response(response: Dict[str, Any], source: Optional[str] = None) -> List[PlaceCandidate]:
    places = response.get("places") or []
    parsed: List[PlaceCandidate] = []
    for p in places:
        location = p.get("location") or p.get("latLng") or {}
        lat = location.get("latitude", location.get("lat"))
        lon = location.get("longitude", location.get("lng", location.get("lon")))
        if lat is None or lon is None:
            continue
        try:
            coordinate = Coordinate(float(lat), float(lon))
        except (TypeError, ValueError):
            logger.debug("Skipping place with invalid location: %s", location)
            continue
        display = p.get("displayName")
        if isinstance(display, dict):
            name = display.get("text") or display.get("value")
        else:
            name = display
        parsed.append(
            PlaceCandidate(
                name=name,
                coordinate=coordinate,
                place_id=p.get("id") or p.get("placeId"),
                address=p.get("formattedAddress"),
                types=tuple(p.get("types") or ()),
                source=source,
            )
        )
    return parsed
