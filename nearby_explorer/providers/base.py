"""
Provider base interfaces and the error taxonomy.

Every upstream integration (geodata query, detail lookup, image search,
flights, IP geolocation) implements one of the interfaces below so the
aggregation service can depend on capabilities rather than concrete clients.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Protocol
from dataclasses import dataclass
from enum import Enum
import time
import logging

from nearby_explorer.models import Flight, LatLng, PlaceDetail, UserLocation


class ProviderStatus(Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a provider health check."""
    status: ProviderStatus
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class ProviderMetadata:
    """Metadata about a provider."""
    name: str
    version: str
    description: str
    capabilities: List[str]
    rate_limit: Optional[int] = None  # requests per minute


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider_name: Optional[str] = None, details: Optional[Dict] = None):
        """Initialize provider error.

        Args:
            message: Error message
            provider_name: Name of the provider that failed
            details: Additional error details
        """
        super().__init__(message)
        self.provider_name = provider_name
        self.details = details or {}


class SourceUnavailable(ProviderError):
    """Network failure, timeout, or non-2xx response from an upstream source."""


class SourceMalformed(ProviderError):
    """Upstream answered but the body is not the expected shape."""


class RecordUnresolvable(ProviderError):
    """A detail lookup id is not known upstream (e.g. 404 or empty result)."""


class ImageUnresolvable(ProviderError):
    """Every step of the image chain came back empty.

    Only used internally: the chain always recovers with a static map or a
    placeholder, so this never reaches a caller.
    """


class Provider(ABC):
    """Base provider interface."""

    name = "provider"

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def get_metadata(self) -> ProviderMetadata:
        """Get provider metadata."""

    async def ping(self) -> None:
        """Cheapest call that proves the provider is reachable. Override per provider."""

    async def health_check(self) -> HealthCheckResult:
        """Check provider health by running ``ping``."""
        start_time = time.time()
        try:
            await self.ping()
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.HEALTHY,
                latency_ms=latency_ms,
                message=f"Provider {self.__class__.__name__} is healthy",
                details={"latency_ms": latency_ms},
            )
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            return HealthCheckResult(
                status=ProviderStatus.UNHEALTHY,
                latency_ms=latency_ms,
                message=f"Provider health check failed: {str(e)}",
                details={"error": str(e)},
            )


class DetailProvider(Provider):
    """Resolves a single place id to a detail record."""

    @abstractmethod
    async def get_details(self, place_id: str) -> PlaceDetail:
        """Fetch details for ``place_id``.

        Raises:
            RecordUnresolvable: The id is unknown upstream
            SourceUnavailable: Transport failure
            SourceMalformed: Unexpected response shape
        """


class ImageProvider(Provider):
    """Image provider interface.

    ``search_by_name`` is the free-text search every image provider offers;
    ``search_near`` is only implemented by providers with a geo index.
    """

    @abstractmethod
    async def search_by_name(self, query: str, limit: int = 5) -> List[str]:
        """Return image URLs matching ``query`` (possibly empty)."""

    async def search_near(self, location: LatLng, radius_m: int = 1000, limit: int = 5) -> List[str]:
        return []


class FlightProvider(Protocol):
    """Capability: list flights for an airport IATA code."""

    async def get_flights(self, iata_code: str) -> List[Flight]:
        ...


class LocationProvider(Protocol):
    """Capability: resolve the caller's approximate location."""

    async def locate(self) -> Optional[UserLocation]:
        ...
