"""
Provider container: wires providers, cache and the aggregation service.

``build_container()`` is the single place where concrete classes are chosen
from configuration; everything downstream receives its collaborators
explicitly.
"""

from typing import Dict, List, Optional
import logging

from nearby_explorer.config import Config, get_config
from nearby_explorer.providers.base import HealthCheckResult, Provider, ProviderStatus
from nearby_explorer.providers.flight_provider import SyntheticFlightProvider
from nearby_explorer.providers.geolocation_provider import IpApiLocationProvider
from nearby_explorer.providers.image_provider import (
    PexelsImageProvider,
    PixabayImageProvider,
    UnsplashImageProvider,
    WikimediaImageProvider,
)
from nearby_explorer.providers.nominatim_provider import NominatimDetailProvider, NominatimGeocoder
from nearby_explorer.providers.overpass_provider import OverpassExecutor
from nearby_explorer.services.aggregation import PlaceAggregationService
from nearby_explorer.services.cache_store import MemoryStore, RedisStore
from nearby_explorer.services.image_chain import ImageResolver
from nearby_explorer.services.resilient_cache import ResilientCache, domain_ttls
from nearby_explorer.services.session_manager import SessionManager


class ProviderContainer:
    """Registry of provider instances plus the service built on them."""

    def __init__(self, session_source=None):
        self.logger = logging.getLogger(__name__)
        self.session_source = session_source
        self.service: Optional[PlaceAggregationService] = None
        self._providers: Dict[str, Provider] = {}

    def register(self, name: str, instance: Provider) -> None:
        self._providers[name] = instance
        self.logger.debug(f"Registered provider: {name}")

    def get(self, name: str) -> Optional[Provider]:
        return self._providers.get(name)

    def list_providers(self) -> List[str]:
        return list(self._providers.keys())

    async def health_check_all(self) -> Dict[str, HealthCheckResult]:
        """Run health checks on all registered providers."""
        results = {}
        for name, provider in self._providers.items():
            try:
                results[name] = await provider.health_check()
            except Exception as e:
                self.logger.error(f"Health check failed for {name}: {e}")
                results[name] = HealthCheckResult(
                    status=ProviderStatus.UNHEALTHY,
                    latency_ms=0,
                    message=f"Health check error: {str(e)}",
                )
        return results

    async def close_all(self) -> None:
        """Close the shared HTTP session."""
        if self.session_source is not None:
            try:
                await self.session_source.close()
            except Exception as e:
                self.logger.error(f"Error closing HTTP session: {e}")


def build_store(config: Config):
    cache_config = config.cache_config
    if cache_config.backend == "redis":
        redis_config = config.redis_config
        return RedisStore.from_url(
            redis_config.url,
            cache_config.budget_bytes,
            key_prefix=redis_config.key_prefix,
            socket_timeout=redis_config.socket_timeout,
            socket_connect_timeout=redis_config.socket_connect_timeout,
        )
    return MemoryStore(cache_config.budget_bytes)


def build_container(config: Optional[Config] = None, session_source=None,
                    store=None, clock=None) -> ProviderContainer:
    """Build providers, cache and aggregation service from configuration.

    Args:
        config: Configuration (defaults to ``get_config()``)
        session_source: Object with ``async get_session()``; a ``SessionManager`` by default
        store: Cache storage medium; chosen from ``CACHE_BACKEND`` by default
        clock: Time source for the cache (seconds since epoch)
    """
    config = config or get_config()
    providers = config.provider_config
    session_source = session_source or SessionManager()
    container = ProviderContainer(session_source)

    executors = []
    for i, endpoint in enumerate(providers.overpass_urls):
        executor = OverpassExecutor(endpoint, session_source)
        executors.append(executor)
        container.register(f"overpass_{i}", executor)

    detail_provider = NominatimDetailProvider(session_source)
    container.register("nominatim", detail_provider)

    geocoder = NominatimGeocoder(session_source)
    container.register(geocoder.name, geocoder)

    wikimedia = WikimediaImageProvider(session_source)
    image_providers = [
        wikimedia,
        UnsplashImageProvider(session_source),
        PixabayImageProvider(session_source),
        PexelsImageProvider(session_source),
    ]
    for provider in image_providers:
        container.register(provider.name, provider)

    location_provider = IpApiLocationProvider(session_source)
    container.register("ip_api", location_provider)

    cache = ResilientCache(
        store if store is not None else build_store(config),
        budget_bytes=config.cache_config.budget_bytes,
        item_ceiling_bytes=config.cache_config.item_ceiling_bytes,
        compress_threshold=config.cache_config.compress_threshold,
        clock=clock,
        ttls=domain_ttls(config.cache_config),
    )

    container.service = PlaceAggregationService(
        executors=executors,
        cache=cache,
        detail_provider=detail_provider,
        flight_provider=SyntheticFlightProvider(seed=providers.flight_seed),
        location_provider=location_provider,
        geocoder=geocoder,
        image_resolver=ImageResolver(
            image_providers,
            geo_provider=wikimedia,
            timeout=config.get_timeout('image'),
            allowed_hosts=providers.image_allowed_hosts,
            proxy_path=providers.proxy_path,
        ),
    )
    container.logger.info(
        f"Built container: {len(executors)} Overpass endpoint(s), cache backend {config.cache_config.backend}"
    )
    return container
