"""
Session management for pooled outbound HTTP.

All providers share one ``aiohttp.ClientSession`` so connection pooling and
the User-Agent header required by the OSM services are applied uniformly.
"""

import asyncio
import aiohttp
from typing import Optional

from nearby_explorer.config import get_config


class SessionManager:
    """Owns the shared HTTP session and closes it on shutdown."""

    def __init__(self, user_agent: Optional[str] = None, timeout: Optional[float] = None):
        self._session: Optional[aiohttp.ClientSession] = None
        self._lock = asyncio.Lock()
        self._user_agent = user_agent
        self._timeout = timeout

    async def get_session(self) -> aiohttp.ClientSession:
        """Get the shared HTTP session, creating it if necessary.

        Uses a lock so concurrent first callers do not each create a session.
        """
        async with self._lock:
            if self._session is None or self._session.closed:
                self._session = self._create_session()
            return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        config = get_config()
        total = self._timeout or config.get_timeout('api')
        timeout = aiohttp.ClientTimeout(total=total)

        connector = aiohttp.TCPConnector(
            limit=100,
            limit_per_host=20,
            enable_cleanup_closed=True,
            keepalive_timeout=30.0,
            ttl_dns_cache=300,
        )

        return aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers={
                'User-Agent': self._user_agent or config.provider_config.user_agent,
                'Accept-Language': 'en-US,en;q=0.9',
            },
        )

    async def close(self):
        """Close the shared session and clean up resources."""
        async with self._lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None


class StaticSessionSource:
    """Session source that always hands out one externally owned session.

    Lets tests and embedders inject their own ``aiohttp.ClientSession`` (or a
    fake with the same ``get``/``post`` surface) without the manager creating one.
    """

    def __init__(self, session):
        self._session = session

    async def get_session(self):
        return self._session

    async def close(self):
        return None
