import time
from flask import Blueprint, jsonify, current_app, Response

from .. import metrics

system_bp = Blueprint('system', __name__)

_START_TIME = time.time()


@system_bp.route('/health', methods=['GET'])
def health():
    # lightweight status; never touches the network
    uptime = time.time() - _START_TIME
    adapter = current_app.extensions['pubscan_orchestrator'].capture_adapter
    store = current_app.extensions['pubscan_store']
    return jsonify({
        'status': 'ok',
        'version': current_app.config.get('PUBSCAN_VERSION'),
        'browser_configured': adapter.browser_configured,
        'db_enabled': store.kind != 'memory',
        'uptime_seconds': round(uptime, 2),
    })


@system_bp.route('/metrics/prometheus', methods=['GET'])
def metrics_prometheus():
    return Response(metrics.get_metrics(), content_type=metrics.get_content_type())
