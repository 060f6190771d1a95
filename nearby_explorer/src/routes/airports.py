"""
Airport routes: nearby airports and flight boards
"""
from quart import Blueprint, request, jsonify, current_app

from nearby_explorer.models import pois_to_dicts
from nearby_explorer.providers.base import SourceMalformed, SourceUnavailable
from nearby_explorer.services.aggregation import DEFAULT_AIRPORTS_RADIUS

from .utils import error_response, get_service, parse_location, parse_radius

bp = Blueprint('airports', __name__)


@bp.route('/api/airports/nearby', methods=['GET'])
async def airports_nearby():
    location = parse_location(request.args)
    if location is None:
        return error_response("Latitude and longitude are required", 400)
    radius, radius_error = parse_radius(request.args, DEFAULT_AIRPORTS_RADIUS)
    if radius_error:
        return error_response(radius_error, 400)

    try:
        airports = await get_service().search_airports(location, radius)
    except (SourceUnavailable, SourceMalformed) as e:
        current_app.logger.exception(f'Nearby airports lookup failed: {e}')
        return error_response("Failed to fetch nearby airports", 502)

    return jsonify({'success': True, 'data': pois_to_dicts(airports)})


@bp.route('/api/airports/flights', methods=['GET'])
async def airport_flights():
    code = (request.args.get('code') or '').strip()
    if not code:
        return error_response("Airport code is required", 400)

    flights = await get_service().get_flights(code)
    return jsonify({'success': True, 'data': [f.to_dict() for f in flights]})


def register(app):
    """Register airports blueprint with app"""
    app.register_blueprint(bp)
