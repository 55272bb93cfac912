"""Project configuration.

Loads user-defined roulette parameters from roulette_config.json when available,
falling back to sensible defaults. Keep API request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

PLACES_TEXT_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"

# --- Field masks ---

PLACES_FIELD_MASK_MIN = (
    "places.id,places.displayName,places.location,places.types,"
    "places.formattedAddress,nextPageToken"
)

# --- Geometry ---

EARTH_RADIUS_M = 6_371_000.0
SEARCH_RADII_M: Tuple[int, ...] = (1000, 5000, 10000, 20000)
# Camera shows the search circle with margin around it.
CAMERA_RADIUS_FACTOR = 25.0 / 9.0
DEFAULT_CAMERA_CENTER: Tuple[float, float] = (37.785834, -122.406417)
DEFAULT_CAMERA_SPAN = 0.2
COORDINATE_DEDUP_PRECISION = 7

# --- Defaults (used when no roulette_config.json) ---

_DEFAULT_SEARCH_TERMS: Dict[str, List[str]] = {
    "nightlife": ["Bar", "Club", "Karaoke", "Jazz Bar", "Comedy Club", "Rooftop Lounge"],
    "food": ["Restaurant", "Dessert", "Brunch", "Food Truck", "Wine Tasting", "Cooking Class"],
    "outdoors": ["Walk", "Surfing", "Picnic", "Botanical Garden", "Lookout", "Beach"],
    "culture": ["Museum", "Art Gallery", "Theater", "Bookstore", "Live Music", "Cinema"],
    "active": ["Sport", "Bowling", "Climbing Gym", "Ice Skating", "Mini Golf", "Arcade"],
}
_DEFAULT_FEATURE_TIER = "base"
_DEFAULT_RADIUS_M = 5000
_DEFAULT_LOCATION_CHANGE_THRESHOLD_M = 10.0
_DEFAULT_MAX_PLACES_REQUESTS = 200

# --- Mutable config (populated by load_roulette_config or directly) ---

SEARCH_TERM_GROUPS: Dict[str, List[str]] = {k: list(v) for k, v in _DEFAULT_SEARCH_TERMS.items()}
FEATURE_TIER = _DEFAULT_FEATURE_TIER
DEFAULT_RADIUS_M = _DEFAULT_RADIUS_M

# Issue both text and category queries per cycle. When off, only the category
# query runs (text when no category was rolled).
DUAL_QUERY = True
REFRESH_ON_MOVE = False
LOCATION_CHANGE_THRESHOLD_M = _DEFAULT_LOCATION_CHANGE_THRESHOLD_M

# --- Places API request shape ---

PLACES_PAGE_SIZE = 20
PLACES_MAX_PAGES_PER_QUERY = 1
PLACES_STRICT_TYPE_FILTERING = False
PLACES_TEXT_SEARCH_BODY_EXTRA: Dict[str, Any] = {}

# --- Budgets ---

MAX_PLACES_REQUESTS_PER_SESSION = _DEFAULT_MAX_PLACES_REQUESTS

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20
HTTP_RETRY_MAX = 5
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

FEATURE_TIERS = ("base", "extended")


def search_terms() -> List[str]:
    """Flatten the themed term groups into one catalog, preserving order."""
    terms: List[str] = []
    for group in SEARCH_TERM_GROUPS.values():
        for term in group:
            if term not in terms:
                terms.append(term)
    return terms


def validate_radius(meters: float) -> int:
    if int(meters) != meters or int(meters) not in SEARCH_RADII_M:
        allowed = ", ".join(str(r) for r in SEARCH_RADII_M)
        raise ValueError(f"Search radius must be one of: {allowed} (got {meters})")
    return int(meters)


def load_roulette_config(path: Optional[str] = None) -> bool:
    """Load roulette configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "roulette_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    terms = data.get("search_terms")
    if isinstance(terms, dict) and terms:
        globals_ref["SEARCH_TERM_GROUPS"] = {str(k): list(v) for k, v in terms.items()}
    elif isinstance(terms, list) and terms:
        globals_ref["SEARCH_TERM_GROUPS"] = {"custom": list(terms)}

    tier = data.get("feature_tier")
    if tier is not None:
        tier = str(tier).lower()
        if tier not in FEATURE_TIERS:
            raise ValueError(f"feature_tier must be one of: {', '.join(FEATURE_TIERS)}")
        globals_ref["FEATURE_TIER"] = tier

    radius = data.get("default_radius_m")
    if radius is not None:
        globals_ref["DEFAULT_RADIUS_M"] = validate_radius(radius)

    if "dual_query" in data:
        globals_ref["DUAL_QUERY"] = bool(data["dual_query"])
    if "refresh_on_move" in data:
        globals_ref["REFRESH_ON_MOVE"] = bool(data["refresh_on_move"])

    threshold = data.get("location_change_threshold_m")
    if threshold is not None:
        globals_ref["LOCATION_CHANGE_THRESHOLD_M"] = max(0.0, float(threshold))

    max_requests = data.get("max_places_requests")
    if max_requests is not None:
        globals_ref["MAX_PLACES_REQUESTS_PER_SESSION"] = int(max_requests)

    return True
