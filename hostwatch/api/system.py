"""System API endpoints."""

import time

from flask import Blueprint, current_app, jsonify

system_bp = Blueprint('system', __name__)


@system_bp.route('/health', methods=['GET'])
def health():
    """Liveness and scheduler status."""
    monitoring = current_app.monitoring
    return jsonify({
        'status': 'ok',
        'timestamp': int(time.time()),
        'scheduler_running': monitoring.scheduler.running,
        'collect_interval': monitoring.scheduler.interval,
        'enabled_collectors': [c.id for c in monitoring.registry.enabled_collectors()],
        'active_alerts': len(monitoring.alert_engine.active_alerts())
    })
