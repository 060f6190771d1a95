from datetime import datetime, timezone

import pytest

from nearby_explorer.models import LatLng
from nearby_explorer.providers.base import RecordUnresolvable, SourceMalformed, SourceUnavailable
from nearby_explorer.providers.flight_provider import SyntheticFlightProvider
from nearby_explorer.providers.geolocation_provider import IpApiLocationProvider
from nearby_explorer.providers.image_provider import (
    PexelsImageProvider,
    PixabayImageProvider,
    UnsplashImageProvider,
    WikimediaImageProvider,
)
from nearby_explorer.providers.nominatim_provider import NominatimDetailProvider, NominatimGeocoder
from nearby_explorer.services.session_manager import StaticSessionSource

from fakes import FakeResponse, FakeSession, raise_client_error

NOON = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def source(session):
    return StaticSessionSource(session)


# Nominatim

@pytest.mark.asyncio
async def test_nominatim_lookup_params_and_mapping():
    session = FakeSession.returning([{
        "osm_type": "way", "osm_id": 77, "lat": "6.44", "lon": "3.42",
        "name": "Lekki Conservation Centre", "display_name": "Lekki Conservation Centre, Lagos",
        "category": "leisure", "type": "nature_reserve",
        "address": {"road": "Lekki-Epe Expressway", "town": "Lekki", "country": "Nigeria"},
        "extratags": {"website": "https://lcc.example", "opening_hours": "Mo-Su 08:00-17:00"},
    }])
    detail = await NominatimDetailProvider(source(session), base_url="https://nominatim.example/").get_details("way/77")

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "https://nominatim.example/lookup")
    assert kwargs["params"] == {"osm_ids": "W77", "format": "json", "extratags": "1", "addressdetails": "1"}
    assert detail.id == "way/77"
    assert detail.name == "Lekki Conservation Centre"
    assert detail.tags["leisure"] == "nature_reserve"
    assert detail.address.city == "Lekki"
    assert detail.website == "https://lcc.example"
    assert detail.opening_hours == "Mo-Su 08:00-17:00"


@pytest.mark.asyncio
@pytest.mark.parametrize("session", [
    FakeSession.returning({}, status=404),
    FakeSession.returning([]),
])
async def test_nominatim_missing_record_is_unresolvable(session):
    with pytest.raises(RecordUnresolvable):
        await NominatimDetailProvider(source(session)).get_details("node/1")


@pytest.mark.asyncio
async def test_nominatim_rejects_foreign_ids_without_calling():
    session = FakeSession.returning([])
    with pytest.raises(RecordUnresolvable):
        await NominatimDetailProvider(source(session)).get_details("ChIJ-some-other-id")
    assert session.calls == []


@pytest.mark.asyncio
async def test_nominatim_outage_and_garbage():
    with pytest.raises(SourceUnavailable):
        await NominatimDetailProvider(source(FakeSession.returning({}, status=503))).get_details("node/1")
    with pytest.raises(SourceUnavailable):
        await NominatimDetailProvider(source(FakeSession(raise_client_error))).get_details("node/1")
    with pytest.raises(SourceMalformed):
        await NominatimDetailProvider(source(FakeSession.returning({"error": "x"}))).get_details("node/1")


@pytest.mark.asyncio
async def test_geocoder_search_params_and_mapping():
    session = FakeSession.returning([
        {"lat": "6.4550", "lon": "3.3941", "display_name": "Lagos Island, Lagos, Nigeria",
         "address": {"city": "Lagos", "country": "Nigeria"},
         "boundingbox": ["6.40", "6.47", "3.37", "3.42"]},
        {"lat": "not-a-number", "lon": "3.3", "display_name": "Broken"},
    ])
    matches = await NominatimGeocoder(source(session), base_url="https://nominatim.example/").geocode("Lagos Island")

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("GET", "https://nominatim.example/search")
    assert kwargs["params"] == {"q": "Lagos Island", "format": "json", "addressdetails": "1", "limit": "5"}
    assert [m.to_dict() for m in matches] == [{
        "name": "Lagos Island, Lagos, Nigeria",
        "lat": 6.455,
        "lng": 3.3941,
        "components": {"city": "Lagos", "country": "Nigeria"},
        "bounds": {"south": 6.40, "north": 6.47, "west": 3.37, "east": 3.42},
    }]


@pytest.mark.asyncio
async def test_geocoder_no_match_is_empty():
    assert await NominatimGeocoder(source(FakeSession.returning([]))).geocode("nowhere at all") == []


@pytest.mark.asyncio
async def test_geocoder_outage_and_garbage():
    with pytest.raises(SourceUnavailable):
        await NominatimGeocoder(source(FakeSession.returning({}, status=503))).geocode("Lagos")
    with pytest.raises(SourceUnavailable):
        await NominatimGeocoder(source(FakeSession(raise_client_error))).geocode("Lagos")
    with pytest.raises(SourceMalformed):
        await NominatimGeocoder(source(FakeSession.returning({"error": "x"}))).geocode("Lagos")


# Image providers

@pytest.mark.asyncio
@pytest.mark.parametrize("provider_cls", [UnsplashImageProvider, PixabayImageProvider, PexelsImageProvider])
async def test_keyed_providers_without_key_stay_offline(provider_cls):
    session = FakeSession.returning({})
    provider = provider_cls(source(session))
    assert await provider.search_by_name("Freedom Park") == []
    assert await provider.search_near(LatLng(6.45, 3.39)) == []
    assert session.calls == []


@pytest.mark.asyncio
async def test_wikimedia_orders_pages_by_search_rank():
    session = FakeSession.returning({"query": {"pages": {
        "20": {"index": 2, "imageinfo": [{"url": "https://upload.wikimedia.org/second.jpg"}]},
        "10": {"index": 1, "imageinfo": [{"url": "https://upload.wikimedia.org/first.jpg"}]},
        "30": {"index": 3},
    }}})
    urls = await WikimediaImageProvider(source(session)).search_by_name("Freedom Park Lagos")

    assert urls == ["https://upload.wikimedia.org/first.jpg", "https://upload.wikimedia.org/second.jpg"]
    params = session.calls[0][2]["params"]
    assert params["generator"] == "search"
    assert params["gsrsearch"] == "Freedom Park Lagos"


@pytest.mark.asyncio
async def test_wikimedia_geosearch_params():
    session = FakeSession.returning({"query": {"pages": {}}})
    assert await WikimediaImageProvider(source(session)).search_near(LatLng(6.45, 3.39), radius_m=50000) == []
    params = session.calls[0][2]["params"]
    assert params["generator"] == "geosearch"
    assert params["ggscoord"] == "6.45|3.39"
    assert params["ggsradius"] == "10000"


@pytest.mark.asyncio
async def test_unsplash_with_key():
    session = FakeSession.returning({"results": [
        {"urls": {"regular": "https://images.unsplash.com/a.jpg"}},
        {"urls": {}},
    ]})
    urls = await UnsplashImageProvider(source(session), api_key="k").search_by_name("Lagos")
    assert urls == ["https://images.unsplash.com/a.jpg"]
    assert session.calls[0][2]["headers"] == {"Authorization": "Client-ID k"}


@pytest.mark.asyncio
async def test_pixabay_asks_for_at_least_three():
    session = FakeSession.returning({"hits": [{"webformatURL": "https://cdn.pixabay.com/a.jpg"}]})
    urls = await PixabayImageProvider(source(session), api_key="k").search_by_name("Lagos", limit=1)
    assert urls == ["https://cdn.pixabay.com/a.jpg"]
    assert session.calls[0][2]["params"]["per_page"] == "3"


# Geolocation

@pytest.mark.asyncio
async def test_ip_api_mapping():
    session = FakeSession.returning({
        "status": "success", "lat": 51.5, "lon": -0.12,
        "city": "London", "regionName": "England", "country": "United Kingdom",
    })
    location = await IpApiLocationProvider(source(session)).locate()
    assert location.location == LatLng(51.5, -0.12)
    assert location.region == "England"
    assert location.source == "ip"


@pytest.mark.asyncio
@pytest.mark.parametrize("session", [
    FakeSession.returning({"status": "fail", "message": "private range"}),
    FakeSession.returning({}, status=429),
    FakeSession(raise_client_error),
])
async def test_ip_api_failures_are_none(session):
    assert await IpApiLocationProvider(source(session)).locate() is None


# Flights

@pytest.mark.asyncio
async def test_seeded_flights_are_repeatable():
    a = await SyntheticFlightProvider(seed=7, now=lambda: NOON).get_flights("lhr")
    b = await SyntheticFlightProvider(seed=7, now=lambda: NOON).get_flights("LHR")
    assert a == b
    assert len(a) == 10
    assert [f.direction for f in a] == ["arrival"] * 5 + ["departure"] * 5
    assert all(f.origin == "LHR" for f in a if f.direction == "departure")
    assert all(f.destination == "LHR" for f in a if f.direction == "arrival")
    assert all(f.scheduled_arrival > f.scheduled_departure for f in a)


@pytest.mark.asyncio
async def test_different_airports_get_different_boards():
    provider = SyntheticFlightProvider(seed=7, now=lambda: NOON)
    lhr = await provider.get_flights("LHR")
    jfk = await provider.get_flights("JFK")
    assert [f.flight_number for f in lhr] != [f.flight_number for f in jfk]


@pytest.mark.asyncio
async def test_blank_code_has_no_flights():
    assert await SyntheticFlightProvider(seed=7).get_flights("") == []
