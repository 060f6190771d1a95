from urllib.parse import quote

import pytest

from nearby_explorer.models import POI, LatLng
from nearby_explorer.providers.base import SourceUnavailable
from nearby_explorer.services.image_chain import (
    ImageRenderSession,
    ImageResolver,
    is_allowed_host,
    placeholder_url,
    proxied_url,
    static_map_url,
)

from fakes import FakeImageProvider

ALLOWED = ["upload.wikimedia.org", "images.unsplash.com", "cdn.pixabay.com",
           "staticmap.openstreetmap.de", "cf.bstatic.com"]


def make_poi(name="Freedom Park", category="park", tags=None):
    return POI(id="way/1", name=name, location=LatLng(6.45, 3.39), category=category,
               raw_tags=tags or {"leisure": "park"})


def make_resolver(providers, geo=None, timeout=1.0):
    return ImageResolver(providers, geo_provider=geo, timeout=timeout,
                         allowed_hosts=ALLOWED, proxy_path="/api/image-proxy")


def p(url):
    return f"/api/image-proxy?url={quote(url, safe='')}"


def test_static_map_url_is_deterministic():
    assert static_map_url(6.45, 3.39) == (
        "https://staticmap.openstreetmap.de/staticmap.php"
        "?center=6.45,3.39&zoom=16&size=600x300&markers=6.45,3.39,red"
    )


def test_proxied_url_leaves_relative_and_data_urls():
    assert proxied_url("/placeholder.svg?query=x") == "/placeholder.svg?query=x"
    assert proxied_url("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
    assert proxied_url("https://cdn.pixabay.com/a b.jpg") == \
        "/api/image-proxy?url=https%3A%2F%2Fcdn.pixabay.com%2Fa%20b.jpg"


def test_allowed_host_is_exact():
    assert is_allowed_host("https://upload.wikimedia.org/x.jpg", ALLOWED)
    assert not is_allowed_host("https://upload.wikimedia.org.evil.example/x.jpg", ALLOWED)
    assert not is_allowed_host("ftp://upload.wikimedia.org/x.jpg", ALLOWED)


def test_placeholder_by_category():
    assert "photo-1566073771259" in placeholder_url(make_poi("Eko Hotel", "hotel", {"tourism": "hotel"}))
    assert "photo-1517248135467" in placeholder_url(make_poi("Yellow Chilli", "restaurant", {"amenity": "restaurant"}))
    assert "photo-1582555172866" in placeholder_url(make_poi("National Museum", "museum", {"tourism": "museum"}))
    assert placeholder_url(make_poi("Bus stop", "bus_station", {"amenity": "bus_station"})) == \
        "/placeholder.svg?height=300&width=600&query=bus%20station"


@pytest.mark.asyncio
async def test_override_wins_without_calling_providers():
    provider = FakeImageProvider("wikimedia", urls=["https://upload.wikimedia.org/a.jpg"])
    geo = FakeImageProvider("geo", near_urls=["https://upload.wikimedia.org/b.jpg"])
    resolution = await make_resolver([provider], geo).resolve(make_poi("The Decale Palace Hotel", "hotel"))

    assert resolution.source == "override"
    assert resolution.candidates[0].startswith(p("https://cf.bstatic.com/"))
    assert provider.name_calls == 0
    assert geo.near_calls == 0


@pytest.mark.asyncio
async def test_name_search_merges_in_provider_order_and_dedupes():
    a = FakeImageProvider("wikimedia", urls=["https://upload.wikimedia.org/1.jpg", "https://upload.wikimedia.org/2.jpg"])
    b = FakeImageProvider("unsplash", urls=["https://images.unsplash.com/3.jpg", "https://upload.wikimedia.org/1.jpg"])
    geo = FakeImageProvider("geo", near_urls=["https://upload.wikimedia.org/near.jpg"])
    resolution = await make_resolver([a, b], geo).resolve(make_poi())

    assert resolution.source == "name_search"
    assert resolution.candidates[:3] == [
        p("https://upload.wikimedia.org/1.jpg"),
        p("https://upload.wikimedia.org/2.jpg"),
        p("https://images.unsplash.com/3.jpg"),
    ]
    assert geo.near_calls == 0


@pytest.mark.asyncio
async def test_failing_and_slow_providers_are_rejected_branches():
    failing = FakeImageProvider("wikimedia", error=SourceUnavailable("down"))
    slow = FakeImageProvider("unsplash", urls=["https://images.unsplash.com/slow.jpg"], delay=0.5)
    ok = FakeImageProvider("pixabay", urls=["https://cdn.pixabay.com/ok.jpg"])
    resolution = await make_resolver([failing, slow, ok], timeout=0.05).resolve(make_poi())

    assert resolution.candidates[0] == p("https://cdn.pixabay.com/ok.jpg")
    assert p("https://images.unsplash.com/slow.jpg") not in resolution.candidates


@pytest.mark.asyncio
async def test_geo_search_only_when_name_search_is_empty():
    empty = FakeImageProvider("wikimedia")
    geo = FakeImageProvider("geo", near_urls=["https://upload.wikimedia.org/near.jpg"])
    resolution = await make_resolver([empty], geo).resolve(make_poi())

    assert resolution.source == "geo_search"
    assert resolution.candidates[0] == p("https://upload.wikimedia.org/near.jpg")
    assert geo.near_calls == 1


@pytest.mark.asyncio
async def test_tag_image_is_appended():
    poi = make_poi(tags={"leisure": "park", "image": "https://upload.wikimedia.org/tag.jpg"})
    resolution = await make_resolver([FakeImageProvider("wikimedia")]).resolve(poi)
    assert resolution.source == "tag_image"
    assert resolution.candidates[0] == p("https://upload.wikimedia.org/tag.jpg")


@pytest.mark.asyncio
async def test_no_match_ends_with_static_map_then_placeholder():
    poi = make_poi()
    resolution = await make_resolver([FakeImageProvider("wikimedia")], FakeImageProvider("geo")).resolve(poi)

    assert resolution.source == "static_map"
    assert resolution.candidates == [
        p(static_map_url(poi.lat, poi.lng)),
        "/placeholder.svg?height=300&width=600&query=park",
    ]


@pytest.mark.asyncio
async def test_disallowed_hosts_are_dropped():
    provider = FakeImageProvider("unsplash", urls=["https://tracker.example/x.jpg", "https://images.unsplash.com/y.jpg"])
    resolution = await make_resolver([provider]).resolve(make_poi())
    assert all("tracker.example" not in c for c in resolution.candidates)
    assert resolution.candidates[0] == p("https://images.unsplash.com/y.jpg")


@pytest.mark.asyncio
async def test_render_session_advances_without_re_resolving():
    provider = FakeImageProvider("wikimedia", urls=["https://upload.wikimedia.org/1.jpg"])
    resolver = make_resolver([provider])
    poi = make_poi()
    resolution = await resolver.resolve(poi)

    session = ImageRenderSession()
    first = session.load(poi, resolution)
    assert first == p("https://upload.wikimedia.org/1.jpg")

    second = session.report_failure(first)
    assert second == p(static_map_url(poi.lat, poi.lng))
    third = session.report_failure(second)
    assert third == resolution.candidates[-1]
    assert session.exhausted
    assert session.report_failure(third) == third
    assert provider.name_calls == 1


@pytest.mark.asyncio
async def test_loading_a_new_poi_clears_failures():
    resolver = make_resolver([FakeImageProvider("wikimedia")])
    poi = make_poi()
    resolution = await resolver.resolve(poi)
    session = ImageRenderSession()
    session.load(poi, resolution)
    session.report_failure(session.current)
    assert session.attempts.failed

    other = POI(id="node/77", name="Lekki Market", location=LatLng(6.44, 3.47), category="marketplace",
                raw_tags={"amenity": "marketplace"})
    other_resolution = await resolver.resolve(other)
    session.load(other, other_resolution)
    assert not session.attempts.failed
    assert session.attempts.poi_id == "node/77"
    assert session.current == other_resolution.candidates[0]


@pytest.mark.asyncio
async def test_reloading_same_poi_skips_urls_that_already_failed():
    provider = FakeImageProvider("wikimedia", urls=["https://upload.wikimedia.org/1.jpg"])
    resolver = make_resolver([provider])
    poi = make_poi()
    resolution = await resolver.resolve(poi)
    session = ImageRenderSession()
    first = session.load(poi, resolution)
    session.report_failure(first)

    again = session.load(poi, resolution)

    assert again != first
    assert again == p(static_map_url(poi.lat, poi.lng))
    assert session.attempts.has_failed(first)


@pytest.mark.asyncio
async def test_reloading_when_everything_failed_stays_on_placeholder():
    resolver = make_resolver([FakeImageProvider("wikimedia")])
    poi = make_poi()
    resolution = await resolver.resolve(poi)
    session = ImageRenderSession()
    for url in resolution.candidates:
        session.attempts.poi_id = poi.id
        session.attempts.mark_failed(url)

    assert session.load(poi, resolution) == resolution.candidates[-1]
    assert session.exhausted
