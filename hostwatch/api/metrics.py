"""
Metrics API endpoints.

Historical queries, the catalogue of available metrics, and per-metric
enable/disable.
"""

import time
from typing import Dict, List, Any

from flask import Blueprint, current_app, jsonify, request

from hostwatch.monitoring.descriptions import lookup_metric_description
from hostwatch.utils.validators import ValidationError, validate_metric_name

metrics_bp = Blueprint('metrics', __name__)

DEFAULT_QUERY_WINDOW = 3600


def _int_arg(name: str, default: int) -> int:
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@metrics_bp.route('/query', methods=['GET'])
def query_metrics():
    """
    Query stored samples.

    Query parameters:
        name: Comma-separated metric names (required)
        from: Range start, epoch seconds (default: one hour ago)
        to: Range end, epoch seconds (default: now)
        step: Bucket width in seconds for averaging (default: raw samples)
    """
    try:
        name = request.args.get('name', '')
        names = [n.strip() for n in name.split(',') if n.strip()]
        if not names:
            return jsonify({'error': 'name parameter required'}), 400

        now = int(time.time())
        from_ts = _int_arg('from', now - DEFAULT_QUERY_WINDOW)
        to_ts = _int_arg('to', now)
        step = _int_arg('step', 0)
        if step < 0:
            raise ValidationError("step must not be negative")

        samples = current_app.monitoring.store.query_metrics(names, from_ts, to_ts, step)
        return jsonify([s.to_dict() for s in samples])

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


def _metric_info(names: List[str]) -> List[Dict[str, Any]]:
    infos = []
    for name in names:
        desc = lookup_metric_description(name)
        info = {'name': name}
        if desc.description:
            info['description'] = desc.description
        if desc.description_ko:
            info['description_ko'] = desc.description_ko
        if desc.unit:
            info['unit'] = desc.unit
        infos.append(info)
    return infos


def group_available_metrics(collectors, stored: Dict[str, List[str]]) -> List[Dict[str, Any]]:
    """
    Group metric names by collector, then by their second name segment.

    Stored metric names are preferred over a collector's discovered or
    declared names. A collector with a single sub-group lists its metrics
    directly.
    """
    groups = []
    for collector in sorted(collectors, key=lambda c: c.id):
        metrics = sorted(stored.get(collector.id) or collector.metrics)

        sub_groups: Dict[str, List[str]] = {}
        for metric in metrics:
            parts = metric.split('.', 2)
            sub = parts[1] if len(parts) >= 2 else '(root)'
            sub_groups.setdefault(sub, []).append(metric)

        group: Dict[str, Any] = {'label': f"{collector.name} ({collector.id})"}
        if len(sub_groups) == 1:
            group['metrics'] = _metric_info(next(iter(sub_groups.values())))
        else:
            group['children'] = [
                {'label': sub, 'metrics': _metric_info(names)}
                for sub, names in sub_groups.items()
            ]
        groups.append(group)
    return groups


@metrics_bp.route('/available', methods=['GET'])
def available_metrics():
    """List available metrics grouped by collector."""
    try:
        monitoring = current_app.monitoring
        stored: Dict[str, List[str]] = {}
        for row in monitoring.store.get_distinct_metrics():
            stored.setdefault(row['collector'], []).append(row['metric_name'])

        return jsonify(group_available_metrics(monitoring.registry.list_collectors(), stored))

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@metrics_bp.route('/state/<path:name>/enable', methods=['PUT'])
def enable_metric(name):
    """Enable a single metric."""
    try:
        name = validate_metric_name(name)
        current_app.monitoring.registry.enable_metric(name)
        return jsonify({'status': 'enabled', 'metric': name})

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@metrics_bp.route('/state/<path:name>/disable', methods=['PUT'])
def disable_metric(name):
    """Disable a single metric."""
    try:
        name = validate_metric_name(name)
        current_app.monitoring.registry.disable_metric(name)
        return jsonify({'status': 'disabled', 'metric': name})

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@metrics_bp.route('/ensure-enabled', methods=['PUT'])
def ensure_metrics_enabled():
    """Enable the given metrics and the collectors that produce them."""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({'error': 'JSON data required'}), 400

        metrics = data.get('metrics')
        if not isinstance(metrics, list):
            return jsonify({'error': 'metrics must be a list'}), 400
        names = [validate_metric_name(m) for m in metrics]

        current_app.monitoring.registry.ensure_metrics_enabled(names)
        return jsonify({'status': 'ok', 'metrics': names})

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500
