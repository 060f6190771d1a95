"""
Nearby Explorer HTTP API (Quart).
"""

import logging
from typing import Optional

from quart import Quart
from quart_cors import cors

from nearby_explorer.config import get_config, setup_logging
from nearby_explorer.providers.container import ProviderContainer, build_container

from .routes import register_blueprints

logger = logging.getLogger(__name__)

EXTENSION_KEY = "nearby_explorer"


def create_app(container: Optional[ProviderContainer] = None) -> Quart:
    """Create the app. Pass a prebuilt ``container`` to inject fakes in tests."""
    config = get_config()
    app = Quart(__name__)
    app.config["DEBUG"] = config.debug
    cors(app, allow_origin="*", allow_methods=["GET", "OPTIONS"])

    app.extensions[EXTENSION_KEY] = container or build_container(config)
    register_blueprints(app)

    @app.before_serving
    async def startup():
        app.logger.info("Nearby Explorer starting (%s)", config.environment.value)
        app.logger.debug("Configuration: %s", config.to_dict())
        swept = await app.extensions[EXTENSION_KEY].service.sweep_cache()
        if swept:
            app.logger.info("Removed %d expired cache entries", len(swept))

    @app.after_serving
    async def shutdown():
        await app.extensions[EXTENSION_KEY].close_all()

    return app


def main():
    setup_logging()
    config = get_config()
    app = create_app()
    app.run(host="0.0.0.0", port=5010, debug=config.debug)


if __name__ == "__main__":
    main()
