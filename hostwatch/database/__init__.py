"""Database module for hostwatch."""

from .database import DatabaseManager
from .store import MetricStore, AlertRuleNotFoundError, DashboardLayoutNotFoundError

__all__ = [
    'DatabaseManager',
    'MetricStore',
    'AlertRuleNotFoundError',
    'DashboardLayoutNotFoundError'
]
