"""
IP geolocation via ip-api.com.
"""

from typing import Optional

from nearby_explorer.config import get_config
from nearby_explorer.models import LatLng, UserLocation
from nearby_explorer.providers.base import Provider, ProviderError, ProviderMetadata
from nearby_explorer.providers.utils import request_json


class IpApiLocationProvider(Provider):
    """Approximate caller location from the public IP. Failures resolve to ``None``."""

    name = "ip_api"

    def __init__(self, session_source, url: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__()
        config = get_config()
        self.session_source = session_source
        self.url = url or config.provider_config.ip_api_url
        self.timeout = timeout or config.get_timeout('geolocation')

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="ip-api.com IP geolocation",
            capabilities=["user_location"],
            rate_limit=45,
        )

    async def locate(self) -> Optional[UserLocation]:
        session = await self.session_source.get_session()
        try:
            payload = await request_json(
                session, "GET", self.url,
                timeout=self.timeout, provider_name=self.name,
            )
        except ProviderError as e:
            self.logger.warning("IP geolocation failed: %s", e)
            return None

        if not isinstance(payload, dict) or payload.get("status") != "success":
            self.logger.warning("IP geolocation returned no location: %s",
                                payload.get("message") if isinstance(payload, dict) else payload)
            return None

        location = LatLng.parse(payload.get("lat"), payload.get("lon"))
        if location is None:
            return None
        return UserLocation(
            location=location,
            city=payload.get("city"),
            region=payload.get("regionName"),
            country=payload.get("country"),
            source="ip",
        )
