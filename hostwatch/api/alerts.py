"""Alert and alert rule API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from hostwatch.database.store import AlertRuleNotFoundError
from hostwatch.monitoring.alerts import AlertRule
from hostwatch.utils.validators import ValidationError, validate_alert_rule

alerts_bp = Blueprint('alerts', __name__)


@alerts_bp.route('/alerts', methods=['GET'])
def list_active_alerts():
    """Get currently active alerts."""
    try:
        engine = current_app.monitoring.alert_engine
        alerts = sorted(engine.active_alerts(), key=lambda a: a.metric)
        return jsonify([a.to_dict() for a in alerts])

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@alerts_bp.route('/alert-rules', methods=['GET'])
def list_alert_rules():
    """Get all stored alert rules, enabled or not."""
    try:
        rules = current_app.monitoring.store.list_alert_rules()
        return jsonify([r.to_dict() for r in rules])

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@alerts_bp.route('/alert-rules', methods=['POST'])
def create_alert_rule():
    """Create an alert rule and reload the engine."""
    try:
        monitoring = current_app.monitoring
        fields = validate_alert_rule(request.get_json(silent=True))

        rule = monitoring.store.create_alert_rule(AlertRule(**fields))
        monitoring.alert_engine.reload_rules(monitoring.store)

        return jsonify(rule.to_dict()), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@alerts_bp.route('/alert-rules/<int:rule_id>', methods=['PUT'])
def update_alert_rule(rule_id):
    """Replace an alert rule and reload the engine."""
    try:
        monitoring = current_app.monitoring
        fields = validate_alert_rule(request.get_json(silent=True))

        rule = monitoring.store.update_alert_rule(AlertRule(id=rule_id, **fields))
        monitoring.alert_engine.reload_rules(monitoring.store)

        return jsonify(rule.to_dict())

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except AlertRuleNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@alerts_bp.route('/alert-rules/<int:rule_id>', methods=['DELETE'])
def delete_alert_rule(rule_id):
    """Delete an alert rule and reload the engine."""
    try:
        monitoring = current_app.monitoring
        monitoring.store.delete_alert_rule(rule_id)
        monitoring.alert_engine.reload_rules(monitoring.store)

        return jsonify({'status': 'deleted', 'id': rule_id})

    except AlertRuleNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500
