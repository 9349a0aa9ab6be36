"""
Collector registry.

Tracks which collectors exist, which are enabled, which individual metrics
the user opted out of, and which metric names each collector actually
produces on this host. Every state change is written through to the store.
"""

import logging
import threading
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional, Any, Iterable

from hostwatch.monitoring.collectors import ProcessCollector
from hostwatch.monitoring.descriptions import lookup_metric_description
from hostwatch.monitoring.metrics_collector import Collector, CollectContext


logger = logging.getLogger(__name__)


class CollectorNotFoundError(LookupError):
    """Raised when an operation names a collector id that is not registered."""

    def __init__(self, collector_id: str):
        super().__init__(f"Collector not found: {collector_id}")
        self.collector_id = collector_id


@dataclass
class MetricState:
    name: str
    enabled: bool
    description: str = ""
    description_ko: str = ""
    unit: str = ""


@dataclass
class CollectorInfo:
    """Snapshot of one collector for listing."""
    id: str
    name: str
    description: str
    impact: str
    warning: str
    enabled: bool
    metrics: List[str] = field(default_factory=list)
    metric_states: List[MetricState] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Registry:
    """Registered collectors plus their collector-level and metric-level state."""

    def __init__(self, store):
        self._store = store
        self._lock = threading.RLock()
        self._collectors: Dict[str, Collector] = {}
        self._enabled: Dict[str, bool] = {}
        self._disabled_metrics: Dict[str, bool] = {}
        self._discovered: Dict[str, List[str]] = {}

    def register(self, collector: Collector):
        """Add a collector. Registering the same id again replaces it."""
        with self._lock:
            self._collectors[collector.id] = collector

    def restore_state(self):
        """Load collector enabled flags from the store."""
        states = self._store.get_all_collector_states()
        with self._lock:
            self._enabled.update(states)

    def restore_metric_states(self):
        """Load metric opt-out flags from the store."""
        disabled = self._store.get_disabled_metrics()
        with self._lock:
            for name in disabled:
                self._disabled_metrics[name] = True

    def enable(self, collector_id: str):
        """
        Enable a collector and persist the flag.

        Raises:
            CollectorNotFoundError: If no collector has this id
        """
        self._set_enabled(collector_id, True)

    def disable(self, collector_id: str):
        """
        Disable a collector and persist the flag.

        Raises:
            CollectorNotFoundError: If no collector has this id
        """
        self._set_enabled(collector_id, False)

    def _set_enabled(self, collector_id: str, enabled: bool):
        with self._lock:
            if collector_id not in self._collectors:
                raise CollectorNotFoundError(collector_id)
            # Memory is updated first and not rolled back if the write fails
            self._enabled[collector_id] = enabled
            self._store.set_collector_enabled(collector_id, enabled)

    def is_enabled(self, collector_id: str) -> bool:
        with self._lock:
            return self._enabled.get(collector_id, False)

    def is_metric_enabled(self, name: str) -> bool:
        with self._lock:
            return not self._disabled_metrics.get(name, False)

    def get_collector(self, collector_id: str) -> Optional[Collector]:
        with self._lock:
            return self._collectors.get(collector_id)

    def discover_metrics(self, ctx: Optional[CollectContext] = None):
        """
        Run every collector to learn the concrete metric names on this host.

        Each collector is called twice; the first call primes rate state so
        the second call yields the full set. A failing collector keeps its
        previous discovery result.
        """
        with self._lock:
            collectors = list(self._collectors.values())

        for collector in collectors:
            try:
                collector.collect(ctx)
            except Exception as e:
                logger.debug(f"[discover] {collector.id} warm-up error: {e}")

            try:
                samples = collector.collect(ctx)
            except Exception as e:
                logger.warning(f"[discover] collector {collector.id} error: {e}")
                continue

            names = sorted({s.metric_name for s in samples})
            with self._lock:
                self._discovered[collector.id] = names
            logger.info(f"[discover] {collector.id}: {len(names)} metrics found")

    def _collector_metrics(self, collector: Collector) -> List[str]:
        discovered = self._discovered.get(collector.id)
        if discovered:
            return list(discovered)
        return list(collector.metric_names())

    def collector_metrics(self, collector_id: str) -> List[str]:
        """Discovered metric names of a collector, or its declared names."""
        with self._lock:
            collector = self._collectors.get(collector_id)
            if collector is None:
                raise CollectorNotFoundError(collector_id)
            return self._collector_metrics(collector)

    def enable_metric(self, name: str):
        with self._lock:
            self._disabled_metrics.pop(name, None)
            self._store.set_metric_enabled(name, True)

    def disable_metric(self, name: str):
        with self._lock:
            self._disabled_metrics[name] = True
            self._store.set_metric_enabled(name, False)

    def set_collector_metrics(self, collector_id: str, enabled: bool):
        """
        Enable or disable every metric a collector produces.

        Raises:
            CollectorNotFoundError: If no collector has this id
        """
        with self._lock:
            collector = self._collectors.get(collector_id)
            if collector is None:
                raise CollectorNotFoundError(collector_id)
            names = self._collector_metrics(collector)
            for name in names:
                if enabled:
                    self._disabled_metrics.pop(name, None)
                else:
                    self._disabled_metrics[name] = True

        self._store.set_metrics_bulk_enabled(names, enabled)

    def ensure_metrics_enabled(self, names: Iterable[str]):
        """
        Make sure the given metrics will appear in the stream.

        Clears their opt-out flags and enables any disabled collector that
        owns one of them, either by exact name or by first name segment.
        """
        names = list(names)
        with self._lock:
            to_enable = []
            for name in names:
                if self._disabled_metrics.pop(name, False):
                    to_enable.append(name)
            owners = self._find_collectors_for_metrics(names)

        for collector_id in owners:
            try:
                self.enable(collector_id)
            except Exception as e:
                logger.error(f"[registry] failed to auto-enable collector {collector_id}: {e}")
            else:
                logger.info(f"[registry] auto-enabled collector {collector_id} for requested metrics")

        self._store.set_metrics_bulk_enabled(to_enable, True)

    def _find_collectors_for_metrics(self, names: List[str]) -> List[str]:
        """Ids of disabled collectors owning any of the names. Caller holds the lock."""
        requested = set(names)
        prefixes = {n.split('.', 1)[0] for n in names if '.' in n and not n.startswith('.')}

        result = []
        for collector_id, collector in self._collectors.items():
            if self._enabled.get(collector_id, False):
                continue
            for metric in self._collector_metrics(collector):
                if metric in requested:
                    result.append(collector_id)
                    break
                if '.' in metric and metric.split('.', 1)[0] in prefixes:
                    result.append(collector_id)
                    break
        return result

    def list_collectors(self) -> List[CollectorInfo]:
        """Every collector with its per-metric state and description metadata."""
        with self._lock:
            result = []
            for collector in self._collectors.values():
                metrics = self._collector_metrics(collector)
                states = []
                for metric in metrics:
                    desc = lookup_metric_description(metric)
                    states.append(MetricState(
                        name=metric,
                        enabled=not self._disabled_metrics.get(metric, False),
                        description=desc.description,
                        description_ko=desc.description_ko,
                        unit=desc.unit
                    ))
                result.append(CollectorInfo(
                    id=collector.id,
                    name=collector.name,
                    description=collector.description,
                    impact=collector.impact.value,
                    warning=collector.warning,
                    enabled=self._enabled.get(collector.id, False),
                    metrics=metrics,
                    metric_states=states
                ))
            return result

    def enabled_collectors(self) -> List[Collector]:
        with self._lock:
            return [c for cid, c in self._collectors.items() if self._enabled.get(cid, False)]

    def all_collectors(self) -> List[Collector]:
        with self._lock:
            return list(self._collectors.values())

    def has_any_state(self) -> bool:
        """True once any collector flag has been restored or set."""
        with self._lock:
            return len(self._enabled) > 0

    def set_process_top_n(self, n: int):
        """Forward the top-N setting to the process collector, if registered."""
        with self._lock:
            for collector in self._collectors.values():
                if isinstance(collector, ProcessCollector):
                    collector.set_top_n(n)
                    return
