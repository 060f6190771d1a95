"""
Nominatim providers: place details through ``/lookup`` and forward
geocoding through ``/search``.
"""

from typing import List, Optional

from nearby_explorer.config import get_config
from nearby_explorer.models import GeocodeMatch, PlaceDetail
from nearby_explorer.providers.base import (
    DetailProvider,
    Provider,
    ProviderMetadata,
    RecordUnresolvable,
    SourceMalformed,
    SourceUnavailable,
)
from nearby_explorer.providers.normalizer import normalize_geocode, normalize_nominatim, to_nominatim_id
from nearby_explorer.providers.utils import request_json


class NominatimDetailProvider(DetailProvider):
    """Resolves ``"node/123"``-style ids through Nominatim."""

    name = "nominatim"

    def __init__(self, session_source, base_url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__()
        config = get_config()
        self.session_source = session_source
        self.base_url = (base_url or config.provider_config.nominatim_url).rstrip("/")
        self.timeout = timeout or config.get_timeout('nominatim')

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="OpenStreetMap Nominatim place lookup",
            capabilities=["place_details"],
            rate_limit=60,
        )

    async def get_details(self, place_id: str) -> PlaceDetail:
        osm_ids = to_nominatim_id(place_id)
        if osm_ids is None:
            raise RecordUnresolvable(f"Unsupported place id: {place_id}", provider_name=self.name)

        session = await self.session_source.get_session()
        params = {
            "osm_ids": osm_ids,
            "format": "json",
            "extratags": "1",
            "addressdetails": "1",
        }
        try:
            payload = await request_json(
                session,
                "GET",
                f"{self.base_url}/lookup",
                params=params,
                timeout=self.timeout,
                provider_name=self.name,
            )
        except SourceUnavailable as e:
            if e.details.get("status") == 404:
                raise RecordUnresolvable(f"Place {place_id} not found", provider_name=self.name) from e
            raise

        if not isinstance(payload, list):
            raise SourceMalformed("Nominatim lookup did not return a list", provider_name=self.name)
        if not payload:
            raise RecordUnresolvable(f"Place {place_id} not found", provider_name=self.name)

        detail = normalize_nominatim(payload[0])
        if detail is None:
            raise SourceMalformed(f"Nominatim record for {place_id} has no usable coordinates",
                                  provider_name=self.name)
        self.logger.debug("Resolved %s to %s", place_id, detail.name)
        return detail


class NominatimGeocoder(Provider):
    """Free-text address / place name search."""

    name = "nominatim_search"

    def __init__(self, session_source, base_url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__()
        config = get_config()
        self.session_source = session_source
        self.base_url = (base_url or config.provider_config.nominatim_url).rstrip("/")
        self.timeout = timeout or config.get_timeout('nominatim')

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="OpenStreetMap Nominatim forward geocoding",
            capabilities=["geocoding"],
            rate_limit=60,
        )

    async def geocode(self, query: str, limit: int = 5) -> List[GeocodeMatch]:
        """Places matching ``query``, best first. An unknown place is an empty list.

        Raises:
            SourceUnavailable: Transport failure or non-2xx status
            SourceMalformed: The body is not a list of records
        """
        session = await self.session_source.get_session()
        payload = await request_json(
            session,
            "GET",
            f"{self.base_url}/search",
            params={"q": query, "format": "json", "addressdetails": "1", "limit": str(limit)},
            timeout=self.timeout,
            provider_name=self.name,
        )
        if not isinstance(payload, list):
            raise SourceMalformed("Nominatim search did not return a list", provider_name=self.name)
        matches = [m for m in (normalize_geocode(raw) for raw in payload) if m is not None]
        self.logger.debug("Geocoded %r to %d match(es)", query, len(matches))
        return matches
