"""
Admin routes: health check
"""
import time

from quart import Blueprint, jsonify, request

from .utils import get_container

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Health endpoint. Upstreams are only contacted with ``?deep=1``."""
    container = get_container()
    status = {
        'app': 'ok',
        'time': time.time(),
        'providers': container.list_providers(),
    }
    status.update(await container.service.stats())

    if request.args.get('deep') in ('1', 'true'):
        results = await container.health_check_all()
        status['provider_health'] = {
            name: {'status': r.status.value, 'latency_ms': round(r.latency_ms, 1), 'message': r.message}
            for name, r in results.items()
        }
    return jsonify(status)


def register(app):
    """Register admin blueprint with app"""
    app.register_blueprint(bp)
