"""Dashboard layout API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from hostwatch.database.store import DashboardLayoutNotFoundError
from hostwatch.utils.validators import ValidationError, validate_layout

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/layouts', methods=['GET'])
def list_layouts():
    """Get all saved layouts."""
    try:
        return jsonify(current_app.monitoring.store.list_layouts())

    except Exception as e:
        return jsonify({'error': str(e)}), 500


@dashboard_bp.route('/layouts', methods=['POST'])
def create_layout():
    """Save a new layout."""
    try:
        fields = validate_layout(request.get_json(silent=True))
        layout = current_app.monitoring.store.create_layout(fields['name'] or 'default', fields['layout'])
        return jsonify(layout), 201

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@dashboard_bp.route('/layouts/<int:layout_id>', methods=['GET'])
def get_layout(layout_id):
    """Get one layout."""
    try:
        return jsonify(current_app.monitoring.store.get_layout(layout_id))

    except DashboardLayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@dashboard_bp.route('/layouts/<int:layout_id>', methods=['PUT'])
def update_layout(layout_id):
    """Rename a layout and/or replace its content."""
    try:
        fields = validate_layout(request.get_json(silent=True), require_layout=False)
        layout = current_app.monitoring.store.update_layout(layout_id, fields['name'], fields['layout'])
        return jsonify(layout)

    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except DashboardLayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500


@dashboard_bp.route('/layouts/<int:layout_id>', methods=['DELETE'])
def delete_layout(layout_id):
    """Delete a layout."""
    try:
        current_app.monitoring.store.delete_layout(layout_id)
        return jsonify({'status': 'deleted', 'id': layout_id})

    except DashboardLayoutNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        return jsonify({'error': str(e)}), 500
