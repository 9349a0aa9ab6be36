"""hostwatch application factory."""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import config


def create_app(config_name=None, collectors=None):
    """
    Create and configure Flask application.

    Args:
        config_name: Key of the configuration class, FLASK_ENV if omitted
        collectors: Collectors to register instead of the built-in set
    """

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Configure logging
    configure_logging(app)

    # Initialize extensions
    CORS(app, resources={
        r"/api/*": {"origins": app.config['CORS_ORIGINS']}
    })

    # Initialize SocketIO
    socketio = SocketIO(app, cors_allowed_origins=app.config['CORS_ORIGINS'])
    app.socketio = socketio

    # Initialize storage and monitoring
    initialize_monitoring(app, collectors)

    # Register blueprints
    register_blueprints(app)

    # Register WebSocket events
    register_socketio_events(app, socketio)

    # Register error handlers
    register_error_handlers(app)

    if app.config.get('MONITORING_AUTOSTART', True):
        app.monitoring.start()

    return app


def configure_logging(app):
    """Configure application logging."""

    log_level = getattr(logging, app.config['LOG_LEVEL'].upper(), logging.INFO)
    formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')
    package_logger = logging.getLogger('hostwatch')

    if not app.debug and not app.testing:
        # Production logging
        file_handler = logging.FileHandler(app.config['LOG_FILE'])
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)

        app.logger.addHandler(file_handler)
        app.logger.setLevel(log_level)
        package_logger.addHandler(file_handler)
        package_logger.setLevel(log_level)
        app.logger.info('hostwatch startup')
    elif app.debug and not app.testing:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        package_logger.addHandler(stream_handler)
        package_logger.setLevel(logging.DEBUG)


def initialize_monitoring(app, collectors=None):
    """Create the store and monitoring service and restore their state."""
    from hostwatch.database.database import DatabaseManager
    from hostwatch.database.store import MetricStore
    from hostwatch.monitoring.service import MonitoringService

    db_manager = DatabaseManager(app.config['DATABASE_URL'], echo=app.config['DATABASE_ECHO'])
    store = MetricStore(db_manager)
    store.initialize()

    monitoring = MonitoringService(store, app.config, collectors=collectors)
    monitoring.bootstrap()

    app.db_manager = db_manager
    app.monitoring = monitoring


def register_blueprints(app):
    """Register application blueprints."""

    from hostwatch.api.alerts import alerts_bp
    from hostwatch.api.collectors import collectors_bp
    from hostwatch.api.dashboard import dashboard_bp
    from hostwatch.api.metrics import metrics_bp
    from hostwatch.api.settings import settings_bp
    from hostwatch.api.system import system_bp

    app.register_blueprint(collectors_bp, url_prefix='/api/v1/collectors')
    app.register_blueprint(metrics_bp, url_prefix='/api/v1/metrics')
    app.register_blueprint(alerts_bp, url_prefix='/api/v1')
    app.register_blueprint(settings_bp, url_prefix='/api/v1/settings')
    app.register_blueprint(dashboard_bp, url_prefix='/api/v1/dashboard')
    app.register_blueprint(system_bp, url_prefix='/api')


def register_socketio_events(app, socketio):
    """Register WebSocket event handlers and the live metrics hub."""
    from hostwatch.websocket.events import MetricsHub, register_events

    hub = MetricsHub(socketio)
    register_events(socketio, hub)
    app.monitoring.attach_hub(hub)
    app.hub = hub


def register_error_handlers(app):
    """Register error handlers."""

    @app.errorhandler(400)
    def bad_request(error):
        return {'error': 'Bad request'}, 400

    @app.errorhandler(404)
    def not_found(error):
        return {'error': 'Resource not found'}, 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return {'error': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f'Server Error: {error}')
        return {'error': 'Internal server error'}, 500
