"""
Activity catalogs: free-text search terms and structured POI categories.

Categories carry a feature tier. The "base" tier is available everywhere; the
"extended" tier adds categories that only richer place providers understand.
The catalog variant is selected once at startup from ``config.FEATURE_TIER``.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from . import config
from .models import PoiCategory


def _cat(key: str, label: str, place_type: Optional[str] = None, tier: str = "base") -> PoiCategory:
    return PoiCategory(key=key, label=label, place_type=place_type, tier=tier)


POI_CATEGORIES: List[PoiCategory] = [
    # Culture
    _cat("museum", "Museum", "museum"),
    _cat("theater", "Theater", "performing_arts_theater"),
    _cat("library", "Library", "library"),
    _cat("movie_theater", "Movie Theater", "movie_theater"),
    _cat("nightlife", "Nightlife", "night_club"),
    # Food & drink
    _cat("bakery", "Bakery", "bakery"),
    _cat("brewery", "Brewery"),
    _cat("cafe", "Cafe", "cafe"),
    _cat("restaurant", "Restaurant", "restaurant"),
    _cat("winery", "Winery"),
    # Outdoors & attractions
    _cat("amusement_park", "Amusement Park", "amusement_park"),
    _cat("aquarium", "Aquarium", "aquarium"),
    _cat("beach", "Beach"),
    _cat("campground", "Campground", "campground"),
    _cat("marina", "Marina", "marina"),
    _cat("national_park", "National Park", "national_park"),
    _cat("park", "Park", "park"),
    _cat("zoo", "Zoo", "zoo"),
    # Extended tier
    _cat("music_venue", "Music Venue", tier="extended"),
    _cat("planetarium", "Planetarium", tier="extended"),
    _cat("castle", "Castle", "historical_landmark", tier="extended"),
    _cat("fortress", "Fortress", "historical_landmark", tier="extended"),
    _cat("landmark", "Landmark", "tourist_attraction", tier="extended"),
    _cat("national_monument", "National Monument", "historical_landmark", tier="extended"),
    _cat("distillery", "Distillery", tier="extended"),
    _cat("food_market", "Food Market", "market", tier="extended"),
    _cat("fairground", "Fairground", tier="extended"),
    _cat("bowling", "Bowling", "bowling_alley", tier="extended"),
    _cat("go_kart", "Go Kart", tier="extended"),
    _cat("hiking", "Hiking", "hiking_area", tier="extended"),
    _cat("mini_golf", "Mini Golf", tier="extended"),
    _cat("rock_climbing", "Rock Climbing", tier="extended"),
    _cat("skating", "Skating", tier="extended"),
    _cat("skiing", "Skiing", tier="extended"),
    _cat("fishing", "Fishing", tier="extended"),
    _cat("kayaking", "Kayaking", tier="extended"),
]

_TIER_ORDER: Dict[str, int] = {tier: idx for idx, tier in enumerate(config.FEATURE_TIERS)}


def categories_for_tier(tier: Optional[str] = None) -> List[PoiCategory]:
    """Return every category available at ``tier`` (defaults to the configured tier)."""
    tier = (tier or config.FEATURE_TIER).lower()
    if tier not in _TIER_ORDER:
        raise ValueError(f"Unknown feature tier: {tier}")
    level = _TIER_ORDER[tier]
    return [c for c in POI_CATEGORIES if _TIER_ORDER[c.tier] <= level]


def get_category(key: str) -> Optional[PoiCategory]:
    for category in POI_CATEGORIES:
        if category.key == key:
            return category
    return None


# Default search terms mapped to the category describing the same activity.
# Terms without an entry fall back to a label match, then to no category.
TERM_CATEGORY_KEYS: Dict[str, str] = {
    "Bar": "nightlife",
    "Club": "nightlife",
    "Karaoke": "nightlife",
    "Jazz Bar": "nightlife",
    "Comedy Club": "nightlife",
    "Rooftop Lounge": "nightlife",
    "Restaurant": "restaurant",
    "Dessert": "bakery",
    "Brunch": "cafe",
    "Food Truck": "food_market",
    "Wine Tasting": "winery",
    "Walk": "park",
    "Surfing": "beach",
    "Picnic": "park",
    "Botanical Garden": "park",
    "Lookout": "landmark",
    "Beach": "beach",
    "Museum": "museum",
    "Art Gallery": "museum",
    "Theater": "theater",
    "Live Music": "music_venue",
    "Cinema": "movie_theater",
    "Bowling": "bowling",
    "Climbing Gym": "rock_climbing",
    "Ice Skating": "skating",
    "Mini Golf": "mini_golf",
    "Arcade": "amusement_park",
}


def category_for_term(term: str, categories: Sequence[PoiCategory]) -> Optional[PoiCategory]:
    """Return the category in ``categories`` that names the same activity as ``term``."""
    key = TERM_CATEGORY_KEYS.get(term)
    folded = term.casefold()
    for category in categories:
        if category.key == key or category.label.casefold() == folded:
            return category
    return None
