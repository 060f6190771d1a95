"""
Routes package for the Nearby Explorer API
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """
    Register all route blueprints with the Quart app
    """
    from .admin import register as register_admin
    from .media import register as register_media
    from .places import register as register_places
    from .airports import register as register_airports
    from .location import register as register_location
    from .geocode import register as register_geocode

    register_admin(app)
    register_media(app)
    register_places(app)
    register_airports(app)
    register_location(app)
    register_geocode(app)
