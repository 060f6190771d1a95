"""
Places routes: nearby search, place details, place images
"""
from quart import Blueprint, request, jsonify, current_app

from nearby_explorer.models import pois_to_dicts
from nearby_explorer.providers.base import SourceMalformed, SourceUnavailable
from nearby_explorer.services.aggregation import DEFAULT_PLACES_RADIUS

from .utils import error_response, get_service, parse_location, parse_radius

bp = Blueprint('places', __name__)


@bp.route('/api/places/nearby', methods=['GET'])
async def places_nearby():
    location = parse_location(request.args)
    if location is None:
        return error_response("Latitude and longitude are required", 400)
    radius, radius_error = parse_radius(request.args, DEFAULT_PLACES_RADIUS)
    if radius_error:
        return error_response(radius_error, 400)
    category = request.args.get('type') or 'all'

    try:
        pois = await get_service().search_places(location, radius, category)
    except (SourceUnavailable, SourceMalformed) as e:
        current_app.logger.exception(f'Nearby places lookup failed: {e}')
        return error_response("Failed to fetch nearby places", 502)

    return jsonify({'success': True, 'data': pois_to_dicts(pois)})


@bp.route('/api/places/details', methods=['GET'])
async def place_details():
    """Always succeeds for a given id; unresolvable places come back synthesized."""
    place_id = (request.args.get('id') or '').strip()
    if not place_id:
        return error_response("Place ID is required", 400)

    lookup = await get_service().lookup_details(place_id)
    if lookup.degraded:
        current_app.logger.info(f'Serving degraded details for {place_id}')
    return jsonify({'success': True, 'data': lookup.detail.to_dict()})


@bp.route('/api/places/images', methods=['GET'])
async def place_images():
    place_id = (request.args.get('id') or '').strip()
    if not place_id:
        return error_response("Place ID is required", 400)

    resolution = await get_service().resolve_images(place_id)
    if resolution is None:
        return error_response("Place not in current results", 404)
    return jsonify({
        'success': True,
        'data': {'candidates': resolution.candidates, 'source': resolution.source},
    })


def register(app):
    """Register places blueprint with app"""
    app.register_blueprint(bp)
