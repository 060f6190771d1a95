import pytest

from nearby_explorer.models import LatLng
from nearby_explorer.providers.base import SourceMalformed, SourceUnavailable
from nearby_explorer.providers.categories import translate
from nearby_explorer.providers.overpass_provider import OverpassExecutor, build_id_query, build_query
from nearby_explorer.services.session_manager import StaticSessionSource

from fakes import FakeResponse, FakeSession, overpass_node, raise_client_error

ENDPOINT = "https://primary.example/api/interpreter"


def make_executor(session):
    return OverpassExecutor(ENDPOINT, StaticSessionSource(session), timeout=5, query_timeout=25)


def test_build_query_shape():
    ql = build_query(translate("cafes", LatLng(1.5, 2.25), 800), timeout=25)
    assert ql.startswith("[out:json][timeout:25];(")
    assert ql.endswith(");out center;")
    for element_type in ("node", "way", "relation"):
        assert f'{element_type}["amenity"="cafe"](around:800,1.5,2.25);' in ql


def test_build_query_all_category_covers_each_family():
    ql = build_query(translate("all", LatLng(0.5, 0.5), 100))
    for family in ("amenity", "shop", "tourism", "leisure", "historic"):
        assert f'node["{family}"](around:100,0.5,0.5);' in ql


def test_build_id_query_skips_foreign_ids():
    ql = build_id_query(["node/1", "way/2", "ChIJxyz", "relation/x"])
    assert "node(1);way(2);" in ql
    assert "ChIJ" not in ql
    assert "relation" not in ql


@pytest.mark.asyncio
async def test_execute_posts_query_once():
    session = FakeSession.returning({"elements": [overpass_node(1, 1.0, 1.0)]})
    payload = await make_executor(session).execute(translate("cafes", LatLng(1.0, 1.0), 500))

    assert len(payload["elements"]) == 1
    assert len(session.calls) == 1
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == ENDPOINT
    assert kwargs["data"]["data"].startswith("[out:json]")


@pytest.mark.asyncio
async def test_non_2xx_is_source_unavailable_without_retry():
    session = FakeSession.returning({"remark": "busy"}, status=429)
    with pytest.raises(SourceUnavailable) as exc:
        await make_executor(session).execute(translate("cafes", LatLng(1.0, 1.0), 500))
    assert exc.value.details["status"] == 429
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_network_error_is_source_unavailable():
    session = FakeSession(raise_client_error)
    with pytest.raises(SourceUnavailable):
        await make_executor(session).execute(translate("cafes", LatLng(1.0, 1.0), 500))


@pytest.mark.asyncio
async def test_missing_elements_is_source_malformed():
    session = FakeSession.returning({"remark": "runtime error"})
    with pytest.raises(SourceMalformed):
        await make_executor(session).execute(translate("cafes", LatLng(1.0, 1.0), 500))


@pytest.mark.asyncio
async def test_non_json_body_is_source_malformed():
    session = FakeSession(lambda m, u, k: FakeResponse(200, bad_json=True))
    with pytest.raises(SourceMalformed):
        await make_executor(session).execute(translate("cafes", LatLng(1.0, 1.0), 500))


@pytest.mark.asyncio
async def test_execute_by_ids():
    session = FakeSession.returning({"elements": []})
    await make_executor(session).execute_by_ids(["node/42"])
    assert "node(42);" in session.calls[0][2]["data"]["data"]
