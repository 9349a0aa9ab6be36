"""
Monitoring service.

Owns the registry, alert engine, scheduler, retention worker and optional
webhook notifier, restores their state from the store at startup and
connects the scheduler to the live sinks.
"""

import logging
from typing import Any, Dict, List, Optional

from hostwatch.monitoring.alerts import AlertEngine, default_alert_rules
from hostwatch.monitoring.collectors import DEFAULT_TOP_N, ProcessCollector, default_collectors
from hostwatch.monitoring.metrics_collector import Collector, CollectContext
from hostwatch.monitoring.notifications import WebhookNotifier
from hostwatch.monitoring.registry import CollectorNotFoundError, Registry
from hostwatch.monitoring.retention import RetentionManager
from hostwatch.monitoring.scheduler import Scheduler


logger = logging.getLogger(__name__)

SETTING_COLLECT_INTERVAL = 'collect_interval'
SETTING_RETENTION_HOURS = 'retention_hours'
SETTING_TOP_PROCESS_COUNT = 'top_process_count'

_DEFAULT_WIDGETS = [
    ('w-cpu-usage', 'CPU Usage (%)', ['cpu.total.user', 'cpu.total.system', 'cpu.total.iowait'], 0, 0),
    ('w-cpu-load', 'Load Average', ['cpu.load.1', 'cpu.load.5', 'cpu.load.15'], 6, 0),
    ('w-mem-usage', 'Memory Usage', ['mem.used', 'mem.available', 'mem.cached'], 0, 3),
    ('w-mem-pct', 'Memory %', ['mem.used_pct'], 6, 3),
    ('w-swap', 'Swap Usage', ['mem.swap.used', 'mem.swap.free'], 0, 6),
    ('w-disk-pct', 'Disk Usage %', ['disk.root.used_pct'], 6, 6),
]


def default_dashboard_layout() -> Dict[str, Any]:
    """Grid and widget definitions of the first-run dashboard."""
    return {
        'grid': [
            {'id': wid, 'x': x, 'y': y, 'w': 6, 'h': 3}
            for wid, _, _, x, y in _DEFAULT_WIDGETS
        ],
        'widgets': {
            wid: {'title': title, 'metrics': list(metrics)}
            for wid, title, metrics, _, _ in _DEFAULT_WIDGETS
        }
    }


def _int_setting(settings: Dict[str, str], key: str) -> Optional[int]:
    value = settings.get(key)
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid setting {key}={value!r}")
        return None
    return number if number > 0 else None


class MonitoringService:
    """Wires the monitoring components together for one application."""

    def __init__(self, store, config: Dict[str, Any], collectors: Optional[List[Collector]] = None):
        """
        Args:
            store: MetricStore used for all persistence
            config: Application configuration mapping
            collectors: Collectors to register, all built-in ones if omitted
        """
        self.store = store
        self.config = config

        self.registry = Registry(store)
        for collector in (default_collectors() if collectors is None else collectors):
            self.registry.register(collector)

        self.alert_engine = AlertEngine()
        self.scheduler = Scheduler(
            self.registry,
            store,
            self.alert_engine,
            interval=config.get('COLLECT_INTERVAL', 5),
            collect_timeout=config.get('COLLECT_TIMEOUT')
        )
        self.retention = RetentionManager(
            store,
            retention_hours=config.get('RETENTION_HOURS', 24),
            check_minutes=config.get('RETENTION_CHECK_MINUTES', 10)
        )

        webhook_url = config.get('ALERT_WEBHOOK_URL')
        self.notifier = WebhookNotifier(webhook_url, timeout=config.get('WEBHOOK_TIMEOUT', 10)) if webhook_url else None

        self.hub = None
        self._started = False

    def bootstrap(self):
        """Restore persisted state and prepare components before start."""
        try:
            self.registry.restore_state()
        except Exception as e:
            logger.warning(f"Failed to restore collector state: {e}")
        try:
            self.registry.restore_metric_states()
        except Exception as e:
            logger.warning(f"Failed to restore metric states: {e}")

        if not self.registry.has_any_state():
            self._apply_first_run_defaults()

        try:
            self.seed_default_rules()
        except Exception as e:
            logger.warning(f"Failed to seed default alert rules: {e}")

        self._apply_stored_settings()

        if self.config.get('DISCOVER_ON_STARTUP', True):
            self.registry.discover_metrics(CollectContext(timeout=self.config.get('COLLECT_TIMEOUT')))

        self.alert_engine.load_rules(self.store)

    def _apply_first_run_defaults(self):
        logger.info("No collector state found, applying first-run defaults")
        for collector_id in self.config.get('DEFAULT_COLLECTORS', ['cpu', 'memory', 'disk']):
            collector_id = collector_id.strip()
            if not collector_id:
                continue
            try:
                self.registry.enable(collector_id)
            except CollectorNotFoundError:
                logger.warning(f"Default collector '{collector_id}' is not registered")
            except Exception as e:
                logger.warning(f"Failed to enable default collector {collector_id}: {e}")

        try:
            if self.store.count_layouts() == 0:
                self.store.create_layout('default', default_dashboard_layout())
                logger.info("Created default dashboard layout")
        except Exception as e:
            logger.warning(f"Failed to create default dashboard layout: {e}")

    def seed_default_rules(self) -> int:
        """Write the built-in alert rules when no rule is stored yet."""
        if self.store.count_alert_rules() > 0:
            return 0
        count = self.store.seed_alert_rules(default_alert_rules())
        logger.info(f"Seeded {count} default alert rules")
        return count

    def _apply_stored_settings(self):
        try:
            settings = self.store.get_all_settings()
        except Exception as e:
            logger.warning(f"Failed to read settings: {e}")
            settings = {}

        interval = _int_setting(settings, SETTING_COLLECT_INTERVAL)
        if interval is not None:
            self.scheduler.update_interval(interval)

        retention_hours = _int_setting(settings, SETTING_RETENTION_HOURS)
        if retention_hours is not None:
            self.retention.set_retention_hours(retention_hours)

        top_n = _int_setting(settings, SETTING_TOP_PROCESS_COUNT)
        self.registry.set_process_top_n(top_n or self.config.get('TOP_PROCESS_COUNT', DEFAULT_TOP_N))

    def attach_hub(self, hub):
        """Use a MetricsHub as the live sample and alert sink."""
        self.hub = hub

    def _broadcast_samples(self, samples):
        if self.hub is not None:
            self.hub.on_samples(samples)

    def _broadcast_alerts(self, alerts):
        if self.hub is not None:
            self.hub.on_alerts(alerts)

    def start(self):
        """Start collection, retention, and delivery of live updates."""
        if self._started:
            return
        self.scheduler.set_broadcast(self._broadcast_samples)
        self.scheduler.set_alert_broadcast(self._broadcast_alerts)
        if self.notifier is not None:
            # Fed every pass so cleared alerts are forgotten
            self.scheduler.set_alert_listener(self.notifier.on_alerts)

        if self.hub is not None:
            self.hub.start()
        if self.notifier is not None:
            self.notifier.start()
        self.scheduler.start()
        self.retention.start()
        self._started = True
        logger.info("Monitoring service started")

    def stop(self):
        """Stop all background work. Safe to call more than once."""
        self.scheduler.stop()
        self.retention.stop()
        if self.notifier is not None:
            self.notifier.stop()
        if self.hub is not None:
            self.hub.stop()
        if self._started:
            logger.info("Monitoring service stopped")
        self._started = False

    def current_settings(self) -> Dict[str, Any]:
        """Stored settings merged with the values in effect."""
        try:
            settings: Dict[str, Any] = dict(self.store.get_all_settings())
        except Exception as e:
            logger.warning(f"Failed to read settings: {e}")
            settings = {}

        settings[SETTING_COLLECT_INTERVAL] = str(self.scheduler.interval)
        settings[SETTING_RETENTION_HOURS] = str(self.retention.retention_hours)
        collector = next((c for c in self.registry.all_collectors() if isinstance(c, ProcessCollector)), None)
        if collector is not None:
            settings[SETTING_TOP_PROCESS_COUNT] = str(collector.top_n)
        return settings

    def update_settings(self, values: Dict[str, Any]):
        """
        Persist settings and apply the ones that affect running components.

        Args:
            values: Already validated setting values keyed by name
        """
        for key, value in values.items():
            self.store.set_setting(key, value)

        if SETTING_COLLECT_INTERVAL in values:
            self.scheduler.update_interval(int(values[SETTING_COLLECT_INTERVAL]))
        if SETTING_RETENTION_HOURS in values:
            self.retention.set_retention_hours(int(values[SETTING_RETENTION_HOURS]))
        if SETTING_TOP_PROCESS_COUNT in values:
            self.scheduler.update_top_n(int(values[SETTING_TOP_PROCESS_COUNT]))
