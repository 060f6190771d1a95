"""
Category -> tag predicate translation.

A semantic category from the closed set below becomes a list of OSM tag
predicates that the source combines with logical OR. Translation never
fails: unknown categories degrade to "has a name", and the empty / "all"
category becomes the union of the common tag families.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from nearby_explorer.models import LatLng


@dataclass(frozen=True)
class TagPredicate:
    """One tag filter. ``value=None`` means "key exists"."""
    key: str
    value: Optional[str] = None

    def to_overpass(self) -> str:
        if self.value is None:
            return f'["{self.key}"]'
        return f'["{self.key}"="{self.value}"]'


@dataclass(frozen=True)
class CategoryQuery:
    category: str
    center: LatLng
    radius: int
    predicates: Tuple[TagPredicate, ...]


ALL_CATEGORY = "all"

# Tag families unioned for the empty / "all" category.
BROAD_FAMILIES = ("amenity", "shop", "tourism", "leisure", "historic")

CATEGORY_TAGS: Dict[str, List[TagPredicate]] = {
    "restaurants": [
        TagPredicate("amenity", "restaurant"),
        TagPredicate("amenity", "fast_food"),
        TagPredicate("amenity", "food_court"),
    ],
    "hotels": [
        TagPredicate("tourism", "hotel"),
        TagPredicate("tourism", "motel"),
        TagPredicate("tourism", "guest_house"),
        TagPredicate("tourism", "hostel"),
    ],
    "attractions": [
        TagPredicate("tourism", "attraction"),
        TagPredicate("tourism", "museum"),
        TagPredicate("tourism", "viewpoint"),
        TagPredicate("historic"),
    ],
    "hospitals": [
        TagPredicate("amenity", "hospital"),
        TagPredicate("amenity", "clinic"),
    ],
    "schools": [
        TagPredicate("amenity", "school"),
        TagPredicate("amenity", "college"),
        TagPredicate("amenity", "university"),
    ],
    "worship": [
        TagPredicate("amenity", "place_of_worship"),
    ],
    "shopping": [
        TagPredicate("shop", "mall"),
        TagPredicate("shop", "supermarket"),
        TagPredicate("shop", "department_store"),
        TagPredicate("amenity", "marketplace"),
    ],
    "transport": [
        TagPredicate("amenity", "bus_station"),
        TagPredicate("railway", "station"),
        TagPredicate("public_transport", "station"),
        TagPredicate("amenity", "taxi"),
    ],
    "parks": [
        TagPredicate("leisure", "park"),
        TagPredicate("leisure", "garden"),
        TagPredicate("leisure", "nature_reserve"),
    ],
    "sports": [
        TagPredicate("leisure", "sports_centre"),
        TagPredicate("leisure", "stadium"),
        TagPredicate("leisure", "pitch"),
        TagPredicate("leisure", "fitness_centre"),
    ],
    "airports": [
        TagPredicate("aeroway", "aerodrome"),
    ],
    "cafes": [
        TagPredicate("amenity", "cafe"),
    ],
}

SUPPORTED_CATEGORIES = tuple(CATEGORY_TAGS) + (ALL_CATEGORY,)

GENERIC_PREDICATES = (TagPredicate("name"),)


def normalize_category(category: Optional[str]) -> str:
    cleaned = (category or "").strip().lower()
    return cleaned or ALL_CATEGORY


def is_supported(category: Optional[str]) -> bool:
    return normalize_category(category) in SUPPORTED_CATEGORIES


def predicates_for(category: Optional[str]) -> Tuple[TagPredicate, ...]:
    key = normalize_category(category)
    if key == ALL_CATEGORY:
        return tuple(TagPredicate(family) for family in BROAD_FAMILIES)
    tags = CATEGORY_TAGS.get(key)
    if not tags:
        return GENERIC_PREDICATES
    return tuple(tags)


def translate(category: Optional[str], center: LatLng, radius: int) -> CategoryQuery:
    """Build the query for ``category`` around ``center``.

    ``radius`` is passed through as given; the Overpass source expects meters.
    """
    return CategoryQuery(
        category=normalize_category(category),
        center=center,
        radius=radius,
        predicates=predicates_for(category),
    )
