"""
Geocode routes: free-text place search
"""
from quart import Blueprint, request, jsonify, current_app

from nearby_explorer.providers.base import SourceMalformed, SourceUnavailable

from .utils import error_response, get_service

bp = Blueprint('geocode', __name__)


@bp.route('/api/geocode', methods=['GET'])
async def geocode():
    query = (request.args.get('query') or '').strip()
    if not query:
        return error_response("Search query is required", 400)

    try:
        matches = await get_service().geocode(query)
    except (SourceUnavailable, SourceMalformed) as e:
        current_app.logger.exception(f'Geocoding failed for {query!r}: {e}')
        return error_response("Failed to geocode location", 502)

    return jsonify({'success': True, 'data': [m.to_dict() for m in matches]})


def register(app):
    """Register geocode blueprint with app"""
    app.register_blueprint(bp)
