"""
Media routes: image proxy for allow-listed image hosts
"""
import asyncio
from urllib.parse import urlparse

import aiohttp
from quart import Blueprint, Response, request, current_app

from nearby_explorer.config import get_config
from nearby_explorer.services.image_chain import is_allowed_host

from .utils import error_response, get_container

bp = Blueprint('media', __name__)

PROXY_CACHE_CONTROL = "public, max-age=86400"


@bp.route('/api/image-proxy', methods=['GET'])
async def image_proxy():
    """Fetch an image from an allow-listed host and relay it with a 24h cache header."""
    image_url = (request.args.get('url') or '').strip()
    if not image_url:
        return error_response("Image URL is required", 400)

    parsed = urlparse(image_url)
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return error_response("Invalid URL", 400)

    config = get_config()
    if not is_allowed_host(image_url, config.provider_config.image_allowed_hosts):
        return error_response("Domain not allowed", 403)

    try:
        session = await get_container().session_source.get_session()
        async with session.get(
            image_url,
            timeout=aiohttp.ClientTimeout(total=config.get_timeout('proxy')),
        ) as resp:
            if resp.status != 200:
                current_app.logger.warning(f'Image proxy upstream {parsed.hostname} returned {resp.status}')
                return error_response("Failed to proxy image", 502)
            body = await resp.read()
            content_type = resp.headers.get('Content-Type') or 'image/jpeg'
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        current_app.logger.exception(f'Image proxy failed for {parsed.hostname}: {e}')
        return error_response("Failed to proxy image", 502)

    return Response(
        body,
        status=200,
        content_type=content_type,
        headers={'Cache-Control': PROXY_CACHE_CONTROL},
    )


def register(app):
    """Register media blueprint with app"""
    app.register_blueprint(bp)
