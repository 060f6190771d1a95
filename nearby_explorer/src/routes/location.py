"""
Location routes: IP geolocation
"""
from quart import Blueprint, jsonify

from .utils import error_response, get_service

bp = Blueprint('location', __name__)


@bp.route('/api/geolocation', methods=['GET'])
async def geolocation():
    location = await get_service().resolve_user_location()
    if location is None:
        return error_response("Failed to determine location from IP", 502)
    return jsonify({'success': True, 'data': location.to_dict()})


def register(app):
    """Register location blueprint with app"""
    app.register_blueprint(bp)
