import math

from nearby_explorer.providers.normalizer import (
    derive_category,
    humanize,
    normalize_airport,
    normalize_element,
    normalize_elements,
    normalize_nominatim,
    synthesize_name,
    to_nominatim_id,
)

from fakes import overpass_node, overpass_way


def test_humanize():
    assert humanize("fast_food") == "Fast Food"
    assert humanize("restaurant") == "Restaurant"
    assert humanize("") == ""
    assert humanize(None) == ""


def test_missing_name_is_synthesized_from_type_tag():
    poi = normalize_element(overpass_node(1, 6.5, 3.3, amenity="fast_food"))
    assert poi.name == "Fast Food"
    assert poi.category == "fast_food"


def test_name_fallback_order():
    assert synthesize_name({"name": "Mama Put"}) == "Mama Put"
    assert synthesize_name({"name:en": "Bookshop", "brand": "X"}) == "Bookshop"
    assert synthesize_name({"brand": "Shoprite", "shop": "supermarket"}) == "Shoprite"
    assert synthesize_name({"operator": "City Council"}) == "City Council"
    assert synthesize_name({"tourism": "viewpoint"}) == "Viewpoint"
    assert synthesize_name({}) == "Place"


def test_category_priority():
    assert derive_category({"shop": "bakery", "amenity": "cafe"}) == "cafe"
    assert derive_category({"natural": "beach", "leisure": "park"}) == "park"
    assert derive_category({"historic": "yes"}) == "historic"
    assert derive_category({"highway": "bus_stop"}) == "place"


def test_way_uses_center_coordinates():
    poi = normalize_element(overpass_way(77, 6.45, 3.39, leisure="park", name="Freedom Park"))
    assert poi.id == "way/77"
    assert (poi.lat, poi.lng) == (6.45, 3.39)


def test_address_and_tags_preserved():
    poi = normalize_element(overpass_node(
        2, 1.0, 2.0, amenity="cafe", **{"addr:street": "Allen Ave", "addr:city": "Ikeja"}))
    assert poi.address.road == "Allen Ave"
    assert poi.address.city == "Ikeja"
    assert poi.raw_tags["amenity"] == "cafe"


def test_records_without_usable_coordinates_are_dropped():
    raws = [
        overpass_node(1, 6.5, 3.3, amenity="cafe"),
        {"type": "node", "id": 2, "tags": {"amenity": "cafe"}},
        overpass_node(3, float("nan"), 3.3),
        overpass_node(4, 91.0, 3.3),
        {"type": "way", "id": 5, "center": {"lat": "x", "lon": 1}},
        "not-a-record",
        None,
        overpass_node(6, -33.9, 18.4, shop="books"),
    ]
    pois = normalize_elements(raws)
    assert [p.id for p in pois] == ["node/1", "node/6"]
    assert all(math.isfinite(p.lat) and math.isfinite(p.lng) for p in pois)


def test_duplicate_ids_keep_first():
    pois = normalize_elements([
        overpass_node(1, 1.0, 1.0, name="First"),
        overpass_node(1, 2.0, 2.0, name="Second"),
    ])
    assert len(pois) == 1
    assert pois[0].name == "First"


def test_normalize_elements_tolerates_garbage():
    assert normalize_elements(None) == []
    assert normalize_elements({"elements": []}) == []
    assert normalize_elements("nope") == []


def test_normalize_airport():
    airport = normalize_airport(overpass_way(
        9, 6.577, 3.321, aeroway="aerodrome", name="Murtala Muhammed International Airport",
        iata="LOS", icao="DNMM"))
    assert airport.category == "airport"
    assert airport.iata_code == "LOS"
    assert airport.icao_code == "DNMM"
    assert airport.can_lookup_flights


def test_airport_without_name_or_iata():
    airport = normalize_airport(overpass_node(10, 1.0, 1.0, aeroway="aerodrome"))
    assert airport.name == "Airport"
    assert airport.category == "airport"
    assert not airport.can_lookup_flights


def test_nominatim_record():
    detail = normalize_nominatim({
        "osm_type": "node", "osm_id": 123, "lat": "6.4281", "lon": "3.4219",
        "name": "Nike Art Gallery", "display_name": "Nike Art Gallery, Lekki, Lagos",
        "category": "tourism", "type": "gallery",
        "address": {"road": "Elegushi Road", "town": "Lekki", "country": "Nigeria"},
        "extratags": {"opening_hours": "Mo-Sa 10:00-18:00", "website": "https://nike.example"},
    })
    assert detail.id == "node/123"
    assert detail.location.lat == 6.4281
    assert detail.category == "gallery"
    assert detail.address.city == "Lekki"
    assert detail.opening_hours == "Mo-Sa 10:00-18:00"
    assert detail.website == "https://nike.example"


def test_nominatim_record_without_coordinates():
    assert normalize_nominatim({"osm_type": "node", "osm_id": 1}) is None
    assert normalize_nominatim([]) is None


def test_to_nominatim_id():
    assert to_nominatim_id("node/123") == "N123"
    assert to_nominatim_id("way/9") == "W9"
    assert to_nominatim_id("relation/4") == "R4"
    assert to_nominatim_id("ChIJ123") is None
