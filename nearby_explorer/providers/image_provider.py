"""
ImageProvider implementations: Wikimedia Commons, Unsplash, Pixabay, Pexels.

Each provider returns plain image URLs. Keyed providers without a
configured key return ``[]`` without touching the network; transport
problems surface as ``ProviderError`` so a settle-all join can treat them
as rejected branches.
"""

from typing import Any, Dict, List, Optional

from nearby_explorer.config import get_config
from nearby_explorer.models import LatLng
from nearby_explorer.providers.base import ImageProvider, ProviderMetadata
from nearby_explorer.providers.utils import request_json


def _dedupe(urls: List[Optional[str]], limit: int) -> List[str]:
    out: List[str] = []
    for url in urls:
        if url and url not in out:
            out.append(url)
        if len(out) >= limit:
            break
    return out


class _HttpImageProvider(ImageProvider):
    """Common plumbing: shared session source and configured timeout."""

    def __init__(self, session_source, timeout: Optional[float] = None):
        super().__init__()
        self.config = get_config()
        self.session_source = session_source
        self.timeout = timeout or self.config.get_timeout('image')

    async def _get_json(self, url: str, params: Dict[str, Any],
                        headers: Optional[Dict[str, str]] = None) -> Any:
        session = await self.session_source.get_session()
        return await request_json(
            session, "GET", url,
            params=params, headers=headers,
            timeout=self.timeout, provider_name=self.name,
        )


class WikimediaImageProvider(_HttpImageProvider):
    """Wikimedia Commons file search and geosearch. No key required."""

    name = "wikimedia"
    API_URL = "https://commons.wikimedia.org/w/api.php"

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="Wikimedia Commons file search",
            capabilities=["images", "geo_images"],
        )

    @staticmethod
    def _image_urls(payload: Any) -> List[str]:
        pages = (payload or {}).get("query", {}).get("pages", {}) if isinstance(payload, dict) else {}
        if isinstance(pages, dict):
            pages = list(pages.values())
        ordered = sorted(
            (p for p in pages if isinstance(p, dict)),
            key=lambda p: p.get("index", 0),
        )
        urls = []
        for page in ordered:
            info = page.get("imageinfo") or []
            if info and isinstance(info[0], dict):
                urls.append(info[0].get("url"))
        return [u for u in urls if u]

    async def search_by_name(self, query: str, limit: int = 5) -> List[str]:
        if not query or not query.strip():
            return []
        params = {
            "action": "query",
            "generator": "search",
            "gsrsearch": query,
            "gsrnamespace": "6",
            "gsrlimit": str(limit),
            "prop": "imageinfo",
            "iiprop": "url",
            "format": "json",
        }
        payload = await self._get_json(self.API_URL, params)
        return _dedupe(self._image_urls(payload), limit)

    async def search_near(self, location: LatLng, radius_m: int = 1000, limit: int = 5) -> List[str]:
        params = {
            "action": "query",
            "generator": "geosearch",
            "ggscoord": f"{location.lat}|{location.lng}",
            "ggsradius": str(min(max(radius_m, 10), 10000)),
            "ggsnamespace": "6",
            "ggslimit": "10",
            "prop": "imageinfo",
            "iiprop": "url",
            "format": "json",
        }
        payload = await self._get_json(self.API_URL, params)
        return _dedupe(self._image_urls(payload), limit)


class UnsplashImageProvider(_HttpImageProvider):
    """ImageProvider implementation using Unsplash API."""

    name = "unsplash"
    UNSPLASH_API_URL = "https://api.unsplash.com"

    def __init__(self, session_source, api_key: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(session_source, timeout)
        self.api_key = api_key or self.config.provider_config.unsplash_key

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="Unsplash image API",
            capabilities=["images"],
            rate_limit=50,
        )

    async def search_by_name(self, query: str, limit: int = 5) -> List[str]:
        if not self.api_key:
            self.logger.debug("Unsplash API key not configured")
            return []
        if not query or not query.strip():
            return []
        payload = await self._get_json(
            f"{self.UNSPLASH_API_URL}/search/photos",
            {"query": query, "per_page": str(min(limit, 30)), "orientation": "landscape"},
            headers={"Authorization": f"Client-ID {self.api_key}"},
        )
        results = payload.get("results", []) if isinstance(payload, dict) else []
        return _dedupe(
            [(r.get("urls") or {}).get("regular") for r in results if isinstance(r, dict)],
            limit,
        )


class PixabayImageProvider(_HttpImageProvider):
    """ImageProvider implementation using Pixabay API."""

    name = "pixabay"
    PIXABAY_API_URL = "https://pixabay.com/api/"

    def __init__(self, session_source, api_key: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(session_source, timeout)
        self.api_key = api_key or self.config.provider_config.pixabay_key

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="Pixabay image API",
            capabilities=["images"],
            rate_limit=100,
        )

    async def search_by_name(self, query: str, limit: int = 5) -> List[str]:
        if not self.api_key:
            self.logger.debug("Pixabay API key not configured")
            return []
        if not query or not query.strip():
            return []
        payload = await self._get_json(
            self.PIXABAY_API_URL,
            {
                "key": self.api_key,
                "q": query,
                "image_type": "photo",
                # Pixabay rejects per_page below 3
                "per_page": str(min(max(limit, 3), 200)),
            },
        )
        hits = payload.get("hits", []) if isinstance(payload, dict) else []
        return _dedupe(
            [h.get("webformatURL") or h.get("largeImageURL") for h in hits if isinstance(h, dict)],
            limit,
        )


class PexelsImageProvider(_HttpImageProvider):
    """ImageProvider implementation using Pexels API."""

    name = "pexels"
    PEXELS_API_URL = "https://api.pexels.com/v1/search"

    def __init__(self, session_source, api_key: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(session_source, timeout)
        self.api_key = api_key or self.config.provider_config.pexels_key

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description="Pexels image API",
            capabilities=["images"],
            rate_limit=200,
        )

    async def search_by_name(self, query: str, limit: int = 5) -> List[str]:
        if not self.api_key:
            self.logger.debug("Pexels API key not configured")
            return []
        if not query or not query.strip():
            return []
        payload = await self._get_json(
            self.PEXELS_API_URL,
            {"query": query, "per_page": str(min(limit, 80))},
            headers={"Authorization": self.api_key},
        )
        photos = payload.get("photos", []) if isinstance(payload, dict) else []
        return _dedupe(
            [(p.get("src") or {}).get("large") for p in photos if isinstance(p, dict)],
            limit,
        )
