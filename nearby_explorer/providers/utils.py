"""
Shared utilities for provider modules.
"""
import asyncio
import json
import logging
from typing import Optional, Dict, Any

import aiohttp

from nearby_explorer.providers.base import SourceMalformed, SourceUnavailable

logger = logging.getLogger(__name__)


async def request_json(
    session,
    method: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 15,
    provider_name: Optional[str] = None,
) -> Any:
    """
    Issue exactly one HTTP request and decode the JSON body.

    Args:
        session: aiohttp session (or anything with the same get/post surface)
        method: "GET" or "POST"
        url: The URL to request
        params: Query parameters
        data: Form payload (POST)
        headers: Request headers
        timeout: Request timeout in seconds
        provider_name: Name recorded on raised errors

    Returns:
        Decoded JSON payload

    Raises:
        SourceUnavailable: transport error, timeout or non-2xx status
            (``details["status"]`` carries the HTTP status when there was one)
        SourceMalformed: the body is not valid JSON
    """
    call = getattr(session, method.lower())
    kwargs: Dict[str, Any] = {"timeout": aiohttp.ClientTimeout(total=timeout)}
    if params is not None:
        kwargs["params"] = params
    if data is not None:
        kwargs["data"] = data
    if headers is not None:
        kwargs["headers"] = headers
    try:
        async with call(url, **kwargs) as resp:
            if resp.status < 200 or resp.status >= 300:
                raise SourceUnavailable(
                    f"{method} {url} returned status {resp.status}",
                    provider_name=provider_name,
                    details={"status": resp.status},
                )
            try:
                return await resp.json(content_type=None)
            except (json.JSONDecodeError, ValueError, aiohttp.ContentTypeError) as e:
                raise SourceMalformed(
                    f"{method} {url} returned a non-JSON body: {e}",
                    provider_name=provider_name,
                )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning("HTTP %s %s failed: %s", method, url, e)
        raise SourceUnavailable(
            f"{method} {url} failed: {e}",
            provider_name=provider_name,
            details={"error": str(e)},
        ) from e
