"""
Helpers shared by the route modules.
"""
from typing import Optional, Tuple

from quart import current_app, jsonify

from nearby_explorer.models import LatLng
from nearby_explorer.services.aggregation import PlaceAggregationService


def get_container():
    return current_app.extensions["nearby_explorer"]


def get_service() -> PlaceAggregationService:
    return get_container().service


def error_response(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def parse_location(args) -> Optional[LatLng]:
    """``lat``/``lng`` query parameters -> LatLng, or None when missing or invalid."""
    return LatLng.parse(args.get("lat"), args.get("lng"))


def parse_radius(args, default: int) -> Tuple[Optional[int], Optional[str]]:
    raw = args.get("radius")
    if raw is None or raw == "":
        return default, None
    try:
        radius = int(float(raw))
    except (ValueError, OverflowError):
        return None, "radius must be a number"
    if radius <= 0:
        return None, "radius must be positive"
    return radius, None
