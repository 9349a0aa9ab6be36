"""
Host monitoring core for hostwatch.

This package provides:
- Collectors for CPU, memory, disk, network, process, kernel and GPU metrics
- A registry of collector and metric enablement
- Threshold alert evaluation
- The collection scheduler and retention worker
"""

from .metrics_collector import Collector, CollectContext, CollectionError, ImpactLevel, MetricSample
from .alerts import Alert, AlertEngine, AlertRule, AlertSeverity
from .registry import Registry, CollectorNotFoundError
from .scheduler import Scheduler

__all__ = [
    'Collector',
    'CollectContext',
    'CollectionError',
    'ImpactLevel',
    'MetricSample',
    'Alert',
    'AlertEngine',
    'AlertRule',
    'AlertSeverity',
    'Registry',
    'CollectorNotFoundError',
    'Scheduler'
]
