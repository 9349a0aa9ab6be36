"""Configuration settings for the hostwatch application."""

import os
import secrets


class Config:
    """Base configuration class."""

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

    # Server settings
    HOST = os.environ.get('HOST', '127.0.0.1')
    PORT = int(os.environ.get('PORT', 9923))

    # CORS settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE', 'hostwatch.log')

    # Database settings
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///hostwatch.db')
    DATABASE_ECHO = os.environ.get('DATABASE_ECHO', 'False').lower() == 'true'

    # Collection settings
    COLLECT_INTERVAL = int(os.environ.get('COLLECT_INTERVAL', 5))  # seconds
    COLLECT_TIMEOUT = float(os.environ.get('COLLECT_TIMEOUT', 10))  # seconds per collector call
    TOP_PROCESS_COUNT = int(os.environ.get('TOP_PROCESS_COUNT', 10))
    DEFAULT_COLLECTORS = os.environ.get('DEFAULT_COLLECTORS', 'cpu,memory,disk').split(',')
    MONITORING_AUTOSTART = os.environ.get('MONITORING_AUTOSTART', 'True').lower() == 'true'
    DISCOVER_ON_STARTUP = os.environ.get('DISCOVER_ON_STARTUP', 'True').lower() == 'true'

    # Retention settings
    RETENTION_HOURS = int(os.environ.get('RETENTION_HOURS', 24))
    RETENTION_CHECK_MINUTES = int(os.environ.get('RETENTION_CHECK_MINUTES', 10))

    # Webhook notification settings
    ALERT_WEBHOOK_URL = os.environ.get('ALERT_WEBHOOK_URL')
    WEBHOOK_TIMEOUT = int(os.environ.get('WEBHOOK_TIMEOUT', 10))  # seconds


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    CORS_ORIGINS = ['*']


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DATABASE_URL = 'sqlite:///:memory:'  # In-memory database for testing
    MONITORING_AUTOSTART = False
    DISCOVER_ON_STARTUP = False
    ALERT_WEBHOOK_URL = None


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}
