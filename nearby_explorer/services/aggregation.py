"""
POI aggregation service.

Owns the query executors, the resilient cache, the working-set snapshot and
the detail / image / flight / location providers, and decides which
failures surface and which are absorbed:

- aggregate queries (places, airports) surface ``SourceUnavailable`` /
  ``SourceMalformed`` once every configured endpoint has failed, and
  forward geocoding surfaces them as the geocoder raises them;
- detail, image, flight and user-location lookups always answer, degrading
  to synthesized or empty results.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from nearby_explorer.models import POI, Airport, Flight, GeocodeMatch, LatLng, PlaceDetail, UserLocation
from nearby_explorer.providers.base import (
    DetailProvider,
    FlightProvider,
    LocationProvider,
    ProviderError,
    RecordUnresolvable,
    SourceMalformed,
    SourceUnavailable,
)
from nearby_explorer.providers.categories import normalize_category, translate
from nearby_explorer.providers.normalizer import normalize_airports, normalize_element, normalize_elements
from nearby_explorer.providers.nominatim_provider import NominatimGeocoder
from nearby_explorer.providers.overpass_provider import OverpassExecutor
from nearby_explorer.services.fallback import FallbackSynthesizer
from nearby_explorer.services.image_chain import ImageResolution, ImageResolver
from nearby_explorer.services.resilient_cache import (
    USER_LOCATION_KEY,
    CacheDomain,
    ResilientCache,
    airports_key,
    flights_key,
    place_key,
    places_key,
)
from nearby_explorer.services.working_set import WorkingSet

logger = logging.getLogger(__name__)

DEFAULT_PLACES_RADIUS = 5000
DEFAULT_AIRPORTS_RADIUS = 50000


@dataclass
class DetailLookup:
    """A detail record plus whether it was synthesized instead of looked up."""
    detail: PlaceDetail
    degraded: bool = False


def detail_from_poi(poi: POI) -> PlaceDetail:
    tags = dict(poi.raw_tags)
    return PlaceDetail(
        id=poi.id,
        name=poi.name,
        location=poi.location,
        category=poi.category,
        address=poi.address,
        tags=tags,
        opening_hours=tags.get("opening_hours"),
        phone=tags.get("phone") or tags.get("contact:phone"),
        website=tags.get("website") or tags.get("contact:website"),
    )


class PlaceAggregationService:
    """Entry point for every place / airport / flight / image lookup."""

    def __init__(
        self,
        executors: Sequence[OverpassExecutor],
        cache: ResilientCache,
        detail_provider: DetailProvider,
        flight_provider: FlightProvider,
        location_provider: Optional[LocationProvider] = None,
        image_resolver: Optional[ImageResolver] = None,
        fallback: Optional[FallbackSynthesizer] = None,
        working_set: Optional[WorkingSet] = None,
        geocoder: Optional[NominatimGeocoder] = None,
    ):
        if not executors:
            raise ValueError("At least one query executor is required")
        self.executors = list(executors)
        self.cache = cache
        self.detail_provider = detail_provider
        self.flight_provider = flight_provider
        self.location_provider = location_provider
        self.image_resolver = image_resolver
        self.fallback = fallback or FallbackSynthesizer()
        self.working_set = working_set or WorkingSet()
        self.geocoder = geocoder

    async def _in_cache_thread(self, func, *args):
        """Run a cache call, on a worker thread when the store does network I/O."""
        if self.cache.blocking:
            return await asyncio.to_thread(func, *args)
        return func(*args)

    async def _cache_get(self, key: str) -> Any:
        return await self._in_cache_thread(self.cache.get, key)

    async def _cache_set(self, key: str, payload: Any, domain: CacheDomain) -> None:
        result = await self._in_cache_thread(self.cache.set, key, payload, domain)
        if not result.stored:
            logger.debug("Not cached %s: %s", key, result.reason)

    async def _query(self, run: Callable[[OverpassExecutor], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        """Try each endpoint once, in order; re-raise the last failure if all fail."""
        last_error: Optional[ProviderError] = None
        for executor in self.executors:
            try:
                return await run(executor)
            except (SourceUnavailable, SourceMalformed) as e:
                logger.warning("Overpass endpoint %s failed: %s", executor.endpoint, e)
                last_error = e
        raise last_error

    async def search_places(self, center: LatLng, radius: int = DEFAULT_PLACES_RADIUS,
                            category: Optional[str] = None) -> List[POI]:
        """Places around ``center``. Replaces the working set on success.

        Raises:
            SourceUnavailable: every endpoint failed to answer
            SourceMalformed: the last endpoint answered with an unexpected body
        """
        category_key = normalize_category(category)
        key = places_key(center, radius, category_key)
        is_airports = category_key == "airports"

        cached = await self._cache_get(key)
        if isinstance(cached, list):
            parse = Airport.from_dict if is_airports else POI.from_dict
            pois = [p for p in (parse(d) for d in cached if isinstance(d, dict)) if p is not None]
            logger.debug("Cache hit for %s (%d places)", key, len(pois))
            self.working_set.replace(pois, key)
            return pois

        query = translate(category_key, center, radius)
        payload = await self._query(lambda executor: executor.execute(query))
        if is_airports:
            pois = list(normalize_airports(payload["elements"]))
        else:
            pois = normalize_elements(payload["elements"])
        logger.info("Found %d places for %s within %dm of %s,%s",
                    len(pois), category_key, radius, center.lat, center.lng)

        domain = CacheDomain.AIRPORTS if is_airports else CacheDomain.PLACES
        await self._cache_set(key, [p.to_dict() for p in pois], domain)
        self.working_set.replace(pois, key)
        return pois

    async def search_airports(self, center: LatLng, radius: int = DEFAULT_AIRPORTS_RADIUS) -> List[Airport]:
        key = airports_key(center, radius)
        cached = await self._cache_get(key)
        if isinstance(cached, list):
            airports = [a for a in (Airport.from_dict(d) for d in cached if isinstance(d, dict)) if a is not None]
            self.working_set.replace(airports, key)
            return airports

        query = translate("airports", center, radius)
        payload = await self._query(lambda executor: executor.execute(query))
        airports = normalize_airports(payload["elements"])
        logger.info("Found %d airports within %dm of %s,%s", len(airports), radius, center.lat, center.lng)

        await self._cache_set(key, [a.to_dict() for a in airports], CacheDomain.AIRPORTS)
        self.working_set.replace(airports, key)
        return airports

    async def _refresh_from_source(self, place_id: str) -> Optional[PlaceDetail]:
        try:
            payload = await self._query(lambda executor: executor.execute_by_ids([place_id]))
        except (SourceUnavailable, SourceMalformed) as e:
            logger.warning("Could not refresh %s from Overpass: %s", place_id, e)
            return None
        for raw in payload["elements"]:
            poi = normalize_element(raw)
            if poi is not None and poi.id == place_id:
                return detail_from_poi(poi)
        return None

    async def lookup_details(self, place_id: str) -> DetailLookup:
        """Detail for ``place_id``; always answers, flagging synthesized results."""
        key = place_key(place_id)
        cached = await self._cache_get(key)
        if isinstance(cached, dict):
            detail = PlaceDetail.from_dict(cached)
            if detail is not None:
                return DetailLookup(detail)

        detail = None
        try:
            detail = await self.detail_provider.get_details(place_id)
        except RecordUnresolvable as e:
            logger.info("Detail lookup could not resolve %s: %s", place_id, e)
        except (SourceUnavailable, SourceMalformed) as e:
            logger.warning("Detail provider failed for %s: %s", place_id, e)
            detail = await self._refresh_from_source(place_id)

        if detail is None:
            return DetailLookup(self.fallback.synthesize(place_id, self.working_set), degraded=True)

        await self._cache_set(key, detail.to_dict(), CacheDomain.PLACE_DETAIL)
        return DetailLookup(detail)

    async def get_flights(self, iata_code: str) -> List[Flight]:
        code = (iata_code or "").strip().upper()
        if not code:
            return []
        key = flights_key(code)
        cached = await self._cache_get(key)
        if isinstance(cached, list):
            return [Flight.from_dict(d) for d in cached if isinstance(d, dict)]

        try:
            flights = await self.flight_provider.get_flights(code)
        except ProviderError as e:
            logger.warning("Flight lookup failed for %s: %s", code, e)
            return []
        await self._cache_set(key, [f.to_dict() for f in flights], CacheDomain.FLIGHTS)
        return flights

    async def resolve_user_location(self) -> Optional[UserLocation]:
        cached = await self._cache_get(USER_LOCATION_KEY)
        if isinstance(cached, dict):
            location = UserLocation.from_dict(cached)
            if location is not None:
                return location
        if self.location_provider is None:
            return None

        location = await self.location_provider.locate()
        if location is not None:
            await self._cache_set(USER_LOCATION_KEY, location.to_dict(), CacheDomain.USER_LOCATION)
        return location

    async def resolve_images(self, place_id: str) -> Optional[ImageResolution]:
        """Image candidates for a POI in the working set; ``None`` if it is not there."""
        poi = self.working_set.find(place_id)
        if poi is None or self.image_resolver is None:
            return None
        return await self.image_resolver.resolve(poi)

    async def geocode(self, query: str, limit: int = 5) -> List[GeocodeMatch]:
        """Forward-geocode free text.

        Raises:
            SourceUnavailable: the geocoder could not be reached
            SourceMalformed: the geocoder answered with an unexpected body
        """
        query = (query or "").strip()
        if not query or self.geocoder is None:
            return []
        return await self.geocoder.geocode(query, limit)

    async def sweep_cache(self) -> List[str]:
        """Drop expired entries and resync the store's usage figure."""
        return await self._in_cache_thread(self.cache.clear_expired)

    async def stats(self) -> Dict[str, Any]:
        return {
            "cache_usage_bytes": await self._in_cache_thread(self.cache.usage_bytes),
            "cache_budget_bytes": self.cache.budget_bytes,
            "working_set_size": len(self.working_set),
            "endpoints": [e.endpoint for e in self.executors],
        }
