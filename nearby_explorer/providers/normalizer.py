"""
Normalize raw source records into domain models.

All functions here are pure and never raise on bad input: a record that
cannot yield valid geometry is dropped (``None``), and every other missing
field falls back to something displayable.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, TypedDict

from nearby_explorer.models import POI, Address, Airport, GeocodeMatch, LatLng, PlaceDetail

logger = logging.getLogger(__name__)

# Tag keys inspected for the category, highest priority first.
CATEGORY_KEYS = ("amenity", "shop", "tourism", "leisure", "historic", "natural")

NAME_KEYS = ("name", "name:en", "brand", "operator")

DEFAULT_CATEGORY = "place"
DEFAULT_NAME = "Place"

NOMINATIM_TYPE_PREFIX = {"node": "N", "way": "W", "relation": "R"}


class OverpassCenter(TypedDict, total=False):
    lat: float
    lon: float


class OverpassElement(TypedDict, total=False):
    type: str
    id: int
    lat: float
    lon: float
    center: OverpassCenter
    tags: Dict[str, str]


class NominatimPlace(TypedDict, total=False):
    osm_type: str
    osm_id: int
    lat: str
    lon: str
    name: str
    display_name: str
    category: str
    type: str
    address: Dict[str, str]
    extratags: Dict[str, str]


def humanize(value: Optional[str]) -> str:
    """``"fast_food"`` -> ``"Fast Food"``."""
    if not value:
        return ""
    words = [w for w in str(value).replace("_", " ").split(" ") if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _clean_tags(tags: Any) -> Dict[str, str]:
    if not isinstance(tags, Mapping):
        return {}
    return {str(k): str(v) for k, v in tags.items() if v is not None}


def derive_category(tags: Mapping[str, str]) -> str:
    for key in CATEGORY_KEYS:
        value = tags.get(key)
        if value and value != "yes":
            return value
        if value == "yes":
            return key
    return DEFAULT_CATEGORY


def synthesize_name(tags: Mapping[str, str]) -> str:
    """Pick a display name, synthesizing one from the type tag if needed."""
    for key in NAME_KEYS:
        value = tags.get(key)
        if value and str(value).strip():
            return str(value).strip()
    category = derive_category(tags)
    if category != DEFAULT_CATEGORY:
        return humanize(category)
    return DEFAULT_NAME


def _element_location(raw: Mapping[str, Any]) -> Optional[LatLng]:
    location = LatLng.parse(raw.get("lat"), raw.get("lon"))
    if location is not None:
        return location
    center = raw.get("center")
    if isinstance(center, Mapping):
        return LatLng.parse(center.get("lat"), center.get("lon"))
    return None


def _element_id(raw: Mapping[str, Any]) -> Optional[str]:
    osm_type = raw.get("type")
    osm_id = raw.get("id")
    if not osm_type or osm_id is None:
        return None
    return f"{osm_type}/{osm_id}"


def _address_from_tags(tags: Mapping[str, str]) -> Address:
    return Address(
        road=tags.get("addr:street"),
        house_number=tags.get("addr:housenumber"),
        city=tags.get("addr:city"),
        postcode=tags.get("addr:postcode"),
        country=tags.get("addr:country"),
    )


def normalize_element(raw: Any) -> Optional[POI]:
    """Overpass element -> POI, or ``None`` when it has no usable id or coordinates."""
    if not isinstance(raw, Mapping):
        return None
    place_id = _element_id(raw)
    location = _element_location(raw)
    if place_id is None or location is None:
        return None
    tags = _clean_tags(raw.get("tags"))
    return POI(
        id=place_id,
        name=synthesize_name(tags),
        location=location,
        category=derive_category(tags),
        address=_address_from_tags(tags),
        raw_tags=tags,
        source="overpass",
    )


def normalize_elements(raws: Any) -> List[POI]:
    """Normalize a list of Overpass elements, dropping invalid ones and duplicate ids."""
    if not isinstance(raws, Iterable) or isinstance(raws, (str, bytes, Mapping)):
        return []
    seen = set()
    pois: List[POI] = []
    dropped = 0
    for raw in raws:
        poi = normalize_element(raw)
        if poi is None:
            dropped += 1
            continue
        if poi.id in seen:
            continue
        seen.add(poi.id)
        pois.append(poi)
    if dropped:
        logger.debug("Dropped %d elements without usable coordinates", dropped)
    return pois


def normalize_airport(raw: Any) -> Optional[Airport]:
    if not isinstance(raw, Mapping):
        return None
    place_id = _element_id(raw)
    location = _element_location(raw)
    if place_id is None or location is None:
        return None
    tags = _clean_tags(raw.get("tags"))
    name = next((tags[k] for k in NAME_KEYS if tags.get(k)), None) or "Airport"
    return Airport(
        id=place_id,
        name=name,
        location=location,
        address=_address_from_tags(tags),
        raw_tags=tags,
        source="overpass",
        iata_code=tags.get("iata") or None,
        icao_code=tags.get("icao") or None,
    )


def normalize_airports(raws: Any) -> List[Airport]:
    if not isinstance(raws, Iterable) or isinstance(raws, (str, bytes, Mapping)):
        return []
    seen = set()
    airports: List[Airport] = []
    for raw in raws:
        airport = normalize_airport(raw)
        if airport is None or airport.id in seen:
            continue
        seen.add(airport.id)
        airports.append(airport)
    return airports


def to_nominatim_id(place_id: str) -> Optional[str]:
    """``"node/123"`` -> ``"N123"`` as used by Nominatim ``/lookup``."""
    osm_type, _, osm_id = str(place_id).partition("/")
    prefix = NOMINATIM_TYPE_PREFIX.get(osm_type)
    if not prefix or not osm_id.isdigit():
        return None
    return f"{prefix}{osm_id}"


def normalize_nominatim(raw: Any) -> Optional[PlaceDetail]:
    """Nominatim lookup record -> PlaceDetail (lat/lon arrive as strings)."""
    if not isinstance(raw, Mapping):
        return None
    location = LatLng.parse(raw.get("lat"), raw.get("lon"))
    osm_type = raw.get("osm_type")
    osm_id = raw.get("osm_id")
    if location is None or not osm_type or osm_id is None:
        return None
    extratags = _clean_tags(raw.get("extratags"))
    address = raw.get("address") if isinstance(raw.get("address"), Mapping) else {}
    tags = dict(extratags)
    if raw.get("category") and raw.get("type"):
        tags.setdefault(str(raw["category"]), str(raw["type"]))

    name = raw.get("name") or synthesize_name(tags)
    category = derive_category(tags)
    if category == DEFAULT_CATEGORY and raw.get("type"):
        category = str(raw["type"])

    return PlaceDetail(
        id=f"{osm_type}/{osm_id}",
        name=str(name),
        location=location,
        category=category,
        address=Address(
            road=address.get("road"),
            house_number=address.get("house_number"),
            city=address.get("city") or address.get("town") or address.get("village"),
            postcode=address.get("postcode"),
            country=address.get("country"),
        ),
        tags=tags,
        opening_hours=extratags.get("opening_hours"),
        phone=extratags.get("phone") or extratags.get("contact:phone"),
        website=extratags.get("website") or extratags.get("contact:website"),
        display_name=raw.get("display_name"),
    )


def _bounding_box(raw: Any) -> Optional[Dict[str, float]]:
    # Nominatim order: south, north, west, east
    if not isinstance(raw, (list, tuple)) or len(raw) != 4:
        return None
    try:
        south, north, west, east = (float(v) for v in raw)
    except (TypeError, ValueError):
        return None
    return {"south": south, "north": north, "west": west, "east": east}


def normalize_geocode(raw: Any) -> Optional[GeocodeMatch]:
    """Nominatim search record -> GeocodeMatch, or None without usable coordinates."""
    if not isinstance(raw, Mapping):
        return None
    location = LatLng.parse(raw.get("lat"), raw.get("lon"))
    if location is None:
        return None
    address = raw.get("address") if isinstance(raw.get("address"), Mapping) else {}
    name = raw.get("display_name") or raw.get("name") or f"{location.lat}, {location.lng}"
    return GeocodeMatch(
        name=str(name),
        location=location,
        components={str(k): str(v) for k, v in address.items()},
        bounds=_bounding_box(raw.get("boundingbox")),
    )
