"""
Image resolution chain.

For a POI, ``ImageResolver.resolve`` walks the sources in order and keeps
every candidate it finds, so the renderer can fall through without asking
again:

1. hard-coded overrides (no provider is called when one matches)
2. concurrent free-text search across the image providers
3. geo search around the POI, only when step 2 found nothing
4. the POI's own ``image`` tag
5. a static map centred on the POI
6. a category placeholder

All candidates are rewritten through the local image proxy.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple
from urllib.parse import quote, urlparse

from nearby_explorer.config import get_config
from nearby_explorer.models import POI
from nearby_explorer.providers.base import ImageProvider, ImageUnresolvable
from nearby_explorer.utils.async_utils import settle_all

logger = logging.getLogger(__name__)

STATIC_MAP_URL = (
    "https://staticmap.openstreetmap.de/staticmap.php"
    "?center={lat},{lng}&zoom={zoom}&size={width}x{height}&markers={lat},{lng},red"
)

# Stop-gap overrides for places the search providers get wrong.
# Matched case-insensitively against the POI name.
IMAGE_OVERRIDES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    (
        ("decale palace", "decale hotel"),
        (
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/327328051.jpg"
            "?k=a4b6a1a9a8e638a292b9f659b2ebb3a30b533c77a5d3b0a8d2c5b0c7b7c3f0b&o=&hp=1",
            "https://cf.bstatic.com/xdata/images/hotel/max1024x768/327328052.jpg"
            "?k=f7f9c3d8e3c3d4e7b9c3d3e3d3e3d3e3d3e3d3e3d3e3d3e3d3e3d3e3d3e3d&o=&hp=1",
        ),
    ),
)

HOTEL_IMAGE = (
    "https://images.unsplash.com/photo-1566073771259-6a8506099945"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=60"
)
RESTAURANT_IMAGE = (
    "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=60"
)
ATTRACTION_IMAGE = (
    "https://images.unsplash.com/photo-1582555172866-f73bb12a2ab3"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=60"
)


def static_map_url(lat: float, lng: float, zoom: int = 16, width: int = 600, height: int = 300) -> str:
    return STATIC_MAP_URL.format(lat=lat, lng=lng, zoom=zoom, width=width, height=height)


def match_override(name: Optional[str]) -> List[str]:
    lowered = (name or "").lower()
    for needles, urls in IMAGE_OVERRIDES:
        if any(n in lowered for n in needles):
            return list(urls)
    return []


def placeholder_url(poi: Optional[POI]) -> str:
    """Category-derived placeholder. Hotels, food and sights get a stock photo."""
    if poi is None:
        return "/placeholder.svg?height=300&width=600&query=location"
    tags = poi.raw_tags or {}
    place_type = tags.get("amenity") or tags.get("tourism") or poi.category or "place"
    place_type = place_type.replace("_", " ")
    name = (poi.name or "").lower()

    if "hotel" in place_type or "hotel" in name or "palace" in name:
        return HOTEL_IMAGE
    if "restaurant" in place_type or "cafe" in place_type:
        return RESTAURANT_IMAGE
    if "attraction" in place_type or "museum" in place_type:
        return ATTRACTION_IMAGE
    return f"/placeholder.svg?height=300&width=600&query={quote(place_type, safe='')}"


def is_relative_or_data(url: str) -> bool:
    return url.startswith("data:") or url.startswith("/")


def is_allowed_host(url: str, allowed_hosts: Sequence[str]) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    return parsed.hostname.lower() in {h.lower() for h in allowed_hosts}


def proxied_url(url: str, proxy_path: str = "/api/image-proxy") -> str:
    if is_relative_or_data(url):
        return url
    return f"{proxy_path}?url={quote(url, safe='')}"


@dataclass
class ImageResolution:
    poi_id: str
    candidates: List[str]
    source: str

    @property
    def primary(self) -> str:
        return self.candidates[0]

    def to_dict(self):
        return {"poi_id": self.poi_id, "candidates": list(self.candidates), "source": self.source}


class ImageResolver:
    """Builds the ordered candidate list for a POI."""

    def __init__(
        self,
        providers: Sequence[ImageProvider],
        geo_provider: Optional[ImageProvider] = None,
        timeout: Optional[float] = None,
        allowed_hosts: Optional[Sequence[str]] = None,
        proxy_path: Optional[str] = None,
        per_provider_limit: int = 5,
    ):
        config = get_config()
        self.providers = list(providers)
        self.geo_provider = geo_provider
        self.timeout = timeout or config.get_timeout('image')
        self.allowed_hosts = list(allowed_hosts or config.provider_config.image_allowed_hosts)
        self.proxy_path = proxy_path or config.provider_config.proxy_path
        self.per_provider_limit = per_provider_limit

    async def search_by_name(self, query: str) -> List[str]:
        """Settle-all search across providers; merged in provider order, de-duplicated."""
        if not query or not query.strip() or not self.providers:
            return []
        results = await settle_all(
            [p.search_by_name(query, self.per_provider_limit) for p in self.providers],
            timeout=self.timeout,
        )
        merged: List[str] = []
        for provider, result in zip(self.providers, results):
            if isinstance(result, BaseException):
                logger.debug("Image provider %s failed for %r: %r", provider.name, query, result)
                continue
            for url in result or []:
                if url and url not in merged:
                    merged.append(url)
        return merged

    async def search_near(self, poi: POI) -> List[str]:
        if self.geo_provider is None:
            return []
        results = await settle_all([self.geo_provider.search_near(poi.location)], timeout=self.timeout)
        found = results[0]
        if isinstance(found, BaseException):
            logger.debug("Geo image search failed for %s: %r", poi.id, found)
            return []
        return list(found or [])

    def _finalize(self, poi: POI, found: List[str], source: str) -> ImageResolution:
        static_map = static_map_url(poi.lat, poi.lng)
        placeholder = placeholder_url(poi)
        candidates: List[str] = []
        for url in found + [static_map, placeholder]:
            if not is_relative_or_data(url) and not is_allowed_host(url, self.allowed_hosts):
                logger.debug("Dropping image from disallowed host: %s", url)
                continue
            proxied = proxied_url(url, self.proxy_path)
            if proxied not in candidates:
                candidates.append(proxied)
        return ImageResolution(poi_id=poi.id, candidates=candidates, source=source)

    async def _search(self, poi: POI) -> Tuple[List[str], str]:
        """Provider and tag stages of the chain.

        Raises:
            ImageUnresolvable: none of them produced a URL
        """
        found = await self.search_by_name(poi.name)
        source = "name_search"
        if not found:
            found = await self.search_near(poi)
            source = "geo_search"

        tag_image = (poi.raw_tags or {}).get("image")
        if tag_image and tag_image not in found:
            found = found + [tag_image]
            if len(found) == 1:
                source = "tag_image"

        if not found:
            raise ImageUnresolvable(f"No image found for {poi.id}")
        return found, source

    async def resolve(self, poi: POI) -> ImageResolution:
        override = match_override(poi.name)
        if override:
            return self._finalize(poi, override, "override")

        try:
            found, source = await self._search(poi)
        except ImageUnresolvable as e:
            logger.debug("%s, using static map", e)
            found, source = [], "static_map"
        resolution = self._finalize(poi, found, source)
        logger.debug("Resolved %d image candidates for %s via %s",
                     len(resolution.candidates), poi.id, source)
        return resolution


@dataclass
class ImageAttemptRecord:
    """URLs that failed to load for the POI currently on screen."""
    poi_id: Optional[str] = None
    failed: Set[str] = field(default_factory=set)

    def reset(self, poi_id: Optional[str]) -> None:
        self.poi_id = poi_id
        self.failed = set()

    def mark_failed(self, url: str) -> None:
        self.failed.add(url)

    def has_failed(self, url: str) -> bool:
        return url in self.failed


class ImageRenderSession:
    """Walks an already resolved candidate list as images fail to load.

    Never re-resolves: a failure only advances to the next candidate that has
    not already failed. The last candidate (the placeholder) is terminal.
    """

    def __init__(self):
        self.attempts = ImageAttemptRecord()
        self.resolution: Optional[ImageResolution] = None
        self._index = 0

    def load(self, poi: POI, resolution: ImageResolution) -> str:
        """Show ``poi``. Failures are only forgotten when a different POI is loaded."""
        if poi.id != self.attempts.poi_id:
            self.attempts.reset(poi.id)
        self.resolution = resolution
        candidates = resolution.candidates
        self._index = max(len(candidates) - 1, 0)
        for i, url in enumerate(candidates):
            if not self.attempts.has_failed(url):
                self._index = i
                break
        return self.current

    @property
    def current(self) -> Optional[str]:
        if self.resolution is None or not self.resolution.candidates:
            return None
        return self.resolution.candidates[self._index]

    @property
    def exhausted(self) -> bool:
        return self.resolution is None or self._index >= len(self.resolution.candidates) - 1

    def report_failure(self, url: str) -> Optional[str]:
        """Record that ``url`` failed and return the next candidate to show."""
        if self.resolution is None:
            return None
        self.attempts.mark_failed(url)
        if url != self.current:
            return self.current
        candidates = self.resolution.candidates
        for i in range(self._index + 1, len(candidates)):
            if not self.attempts.has_failed(candidates[i]):
                self._index = i
                return candidates[i]
        self._index = len(candidates) - 1
        return candidates[self._index]
