import logging

from nearby_explorer.models import POI, Address, LatLng
from nearby_explorer.services.fallback import FallbackSynthesizer
from nearby_explorer.services.working_set import WorkingSet


def snapshot_with(*pois):
    ws = WorkingSet()
    ws.replace(pois)
    return ws


def test_synthesizes_from_snapshot():
    poi = POI(id="node/5", name="Terra Kulture", location=LatLng(6.43, 3.42), category="arts_centre",
              address=Address(road="Tiamiyu Savage St"), raw_tags={"amenity": "arts_centre"})
    detail = FallbackSynthesizer().synthesize("node/5", snapshot_with(poi))

    assert detail.id == "node/5"
    assert detail.name == "Terra Kulture"
    assert (detail.location.lat, detail.location.lng) == (6.43, 3.42)
    assert detail.category == "arts_centre"
    assert detail.address.road == "Tiamiyu Savage St"
    assert detail.opening_hours


def test_adds_generic_category_tag_when_missing():
    poi = POI(id="node/6", name="Somewhere", location=LatLng(1.0, 1.0), raw_tags={"name": "Somewhere"})
    detail = FallbackSynthesizer().synthesize("node/6", snapshot_with(poi))
    assert detail.tags["amenity"] == "place"
    assert detail.tags["name"] == "Somewhere"


def test_unknown_id_gives_placeholder_at_origin(caplog):
    with caplog.at_level(logging.WARNING):
        detail = FallbackSynthesizer().synthesize("node/404", snapshot_with())
    assert detail.id == "node/404"
    assert detail.name == "Unknown Place"
    assert (detail.location.lat, detail.location.lng) == (0.0, 0.0)
    assert "degraded" in caplog.text


def test_no_snapshot_at_all():
    detail = FallbackSynthesizer().synthesize("node/1", None)
    assert detail.name == "Unknown Place"


def test_working_set_is_replaced_not_merged():
    ws = snapshot_with(POI(id="node/1", name="A", location=LatLng(1.0, 1.0)))
    ws.replace([POI(id="node/2", name="B", location=LatLng(2.0, 2.0))])
    assert "node/1" not in ws
    assert ws.find("node/2").name == "B"
    assert len(ws) == 1
