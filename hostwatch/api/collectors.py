"""Collector API endpoints."""

from flask import Blueprint, current_app, jsonify

from hostwatch.monitoring.registry import CollectorNotFoundError

collectors_bp = Blueprint('collectors', __name__)


@collectors_bp.route('', methods=['GET'])
def list_collectors():
    """List every collector with its metric states."""
    try:
        registry = current_app.monitoring.registry
        return jsonify([c.to_dict() for c in registry.list_collectors()])

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@collectors_bp.route('/<collector_id>/enable', methods=['PUT'])
def enable_collector(collector_id):
    """Enable a collector."""
    try:
        current_app.monitoring.registry.enable(collector_id)
        return jsonify({'status': 'enabled', 'id': collector_id})

    except CollectorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@collectors_bp.route('/<collector_id>/disable', methods=['PUT'])
def disable_collector(collector_id):
    """Disable a collector."""
    try:
        current_app.monitoring.registry.disable(collector_id)
        return jsonify({'status': 'disabled', 'id': collector_id})

    except CollectorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@collectors_bp.route('/<collector_id>/metrics/enable', methods=['PUT'])
def enable_collector_metrics(collector_id):
    """Enable every metric of a collector."""
    return _set_collector_metrics(collector_id, True)


@collectors_bp.route('/<collector_id>/metrics/disable', methods=['PUT'])
def disable_collector_metrics(collector_id):
    """Disable every metric of a collector."""
    return _set_collector_metrics(collector_id, False)


def _set_collector_metrics(collector_id, enabled):
    try:
        current_app.monitoring.registry.set_collector_metrics(collector_id, enabled)
        return jsonify({'status': 'enabled' if enabled else 'disabled', 'id': collector_id})

    except CollectorNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500
