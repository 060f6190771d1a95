"""
Overpass API query executor.

Serializes translated tag predicates to Overpass QL and issues exactly one
POST per call. Retry and endpoint failover are the caller's policy; this
module only reports what happened through the provider error taxonomy.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from nearby_explorer.config import get_config
from nearby_explorer.models import LatLng
from nearby_explorer.providers.base import Provider, ProviderMetadata, SourceMalformed
from nearby_explorer.providers.categories import CategoryQuery
from nearby_explorer.providers.utils import request_json

logger = logging.getLogger(__name__)

ELEMENT_TYPES = ("node", "way", "relation")


def build_query(query: CategoryQuery, timeout: int = 25) -> str:
    """Serialize ``query`` to Overpass QL.

    Every predicate is applied to nodes, ways and relations inside the
    ``around`` circle; the union is returned with ``out center`` so ways and
    relations carry a representative coordinate.

    Example:
        [out:json][timeout:25];(node["amenity"="cafe"](around:500,1.0,2.0);...);out center;
    """
    around = f"(around:{query.radius},{query.center.lat},{query.center.lng})"
    parts: List[str] = []
    for predicate in query.predicates:
        tag = predicate.to_overpass()
        for element_type in ELEMENT_TYPES:
            parts.append(f"{element_type}{tag}{around};")
    return f"[out:json][timeout:{timeout}];({''.join(parts)});out center;"


def build_id_query(ids: Iterable[str], timeout: int = 25) -> str:
    """Serialize ``"node/123"``-style ids to an Overpass id lookup."""
    parts: List[str] = []
    for place_id in ids:
        osm_type, _, osm_id = str(place_id).partition("/")
        if osm_type in ELEMENT_TYPES and osm_id.isdigit():
            parts.append(f"{osm_type}({osm_id});")
    return f"[out:json][timeout:{timeout}];({''.join(parts)});out center;"


class OverpassExecutor(Provider):
    """Runs Overpass QL against a single interpreter endpoint."""

    name = "overpass"

    def __init__(self, endpoint: str, session_source, timeout: Optional[float] = None,
                 query_timeout: Optional[int] = None):
        super().__init__()
        config = get_config()
        self.endpoint = endpoint
        self.session_source = session_source
        self.timeout = timeout or config.get_timeout('overpass')
        self.query_timeout = query_timeout or config.provider_config.overpass_query_timeout

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name=self.name,
            version="1.0.0",
            description=f"Overpass interpreter at {self.endpoint}",
            capabilities=["poi_search", "airports", "id_lookup"],
        )

    async def ping(self) -> None:
        await self._run(build_query(
            CategoryQuery("ping", LatLng(0.0, 0.0), 1, ()), timeout=5))

    async def execute(self, query: CategoryQuery) -> Dict[str, Any]:
        """Run a category query and return the decoded response.

        Raises:
            SourceUnavailable: Non-2xx, network error or timeout
            SourceMalformed: Body is not JSON or has no ``elements`` list
        """
        return await self._run(build_query(query, timeout=self.query_timeout))

    async def execute_by_ids(self, ids: Iterable[str]) -> Dict[str, Any]:
        """Fetch specific elements by ``"<type>/<id>"``. Same error contract as ``execute``."""
        return await self._run(build_id_query(ids, timeout=self.query_timeout))

    async def _run(self, ql: str) -> Dict[str, Any]:
        # Queued handler: this never waits on log I/O
        logger.debug("Overpass query to %s: %s", self.endpoint, ql)
        session = await self.session_source.get_session()
        payload = await request_json(
            session,
            "POST",
            self.endpoint,
            data={"data": ql},
            timeout=self.timeout,
            provider_name=self.name,
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
            raise SourceMalformed(
                "Overpass response has no top-level 'elements' list",
                provider_name=self.name,
                details={"endpoint": self.endpoint},
            )
        self.logger.debug("Overpass %s returned %d elements", self.endpoint, len(payload["elements"]))
        return payload
