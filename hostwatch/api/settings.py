"""Settings and database maintenance API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from hostwatch.monitoring.collectors import MAX_TOP_N, MIN_TOP_N
from hostwatch.monitoring.service import (
    SETTING_COLLECT_INTERVAL, SETTING_RETENTION_HOURS, SETTING_TOP_PROCESS_COUNT
)
from hostwatch.utils.validators import ValidationError, parse_positive_int

settings_bp = Blueprint('settings', __name__)

# key -> (minimum, maximum)
NUMERIC_SETTINGS = {
    SETTING_COLLECT_INTERVAL: (1, 86400),
    SETTING_RETENTION_HOURS: (1, 24 * 365),
    SETTING_TOP_PROCESS_COUNT: (MIN_TOP_N, MAX_TOP_N),
}


def validate_settings(data) -> dict:
    """Check known numeric settings; other keys are stored as strings."""
    if not isinstance(data, dict) or not data:
        raise ValidationError("JSON object with settings required")

    values = {}
    for key, value in data.items():
        if key in NUMERIC_SETTINGS:
            minimum, maximum = NUMERIC_SETTINGS[key]
            values[key] = parse_positive_int(value, key, minimum, maximum)
        elif isinstance(value, (str, int, float, bool)):
            values[key] = str(value)
        else:
            raise ValidationError(f"Setting '{key}' must be a scalar value")
    return values


@settings_bp.route('', methods=['GET'])
def get_settings():
    """Get runtime settings."""
    try:
        return jsonify(current_app.monitoring.current_settings())

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@settings_bp.route('', methods=['PUT'])
def update_settings():
    """Persist settings and apply them to the running service."""
    try:
        values = validate_settings(request.get_json(silent=True))
        current_app.monitoring.update_settings(values)
        return jsonify({'status': 'updated'})

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@settings_bp.route('/db-info', methods=['GET'])
def get_db_info():
    """Get database location, size and sample statistics."""
    try:
        return jsonify(current_app.monitoring.store.database_info())

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@settings_bp.route('/db-purge', methods=['DELETE'])
def purge_db():
    """Delete every stored sample."""
    try:
        deleted = current_app.monitoring.store.purge_all_samples()
        current_app.logger.info(f"Purged all samples ({deleted} rows)")
        return jsonify({'status': 'purged', 'deleted': deleted})

    except Exception as e:
        return jsonify({'error': str(e)}), 500
