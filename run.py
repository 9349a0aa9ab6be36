#!/usr/bin/env python3
"""
Application entry point for hostwatch.
"""

import signal
import sys
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from hostwatch import create_app
from hostwatch.utils.env_config import get_server_config


def setup_signal_handlers(monitoring) -> None:
    """Stop the monitoring service on SIGINT/SIGTERM."""

    def signal_handler(sig, frame):
        print(f"Received signal {sig}, shutting down...")
        monitoring.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main():
    """Main application entry point."""

    # Create Flask application
    app = create_app()

    # Setup signal handlers for graceful shutdown
    try:
        setup_signal_handlers(app.monitoring)
    except Exception as e:
        print(f"Warning: Could not setup signal handlers: {e}")

    # Get configuration
    server_config = get_server_config({
        'HOST': app.config['HOST'],
        'PORT': app.config['PORT'],
        'DEBUG': app.debug
    })
    host = server_config['HOST']
    port = server_config['PORT']
    debug = server_config['DEBUG']

    print(f"Starting hostwatch on http://{host}:{port}")
    print(f"Debug mode: {debug}")
    print(f"Database: {app.config['DATABASE_URL']}")
    print(f"Collection interval: {app.monitoring.scheduler.interval}s")

    # Run the application
    try:
        app.socketio.run(
            app,
            host=host,
            port=port,
            debug=debug,
            use_reloader=False,
            allow_unsafe_werkzeug=True
        )
    finally:
        app.monitoring.stop()


if __name__ == '__main__':
    main()
