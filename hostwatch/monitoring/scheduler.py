"""
Collection scheduler.

Runs the collect, filter, persist, broadcast and alert pipeline on a
background thread at a configurable interval.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from hostwatch.monitoring.alerts import Alert, AlertEngine
from hostwatch.monitoring.collectors import ProcessCollector
from hostwatch.monitoring.metrics_collector import CollectContext, MetricSample


logger = logging.getLogger(__name__)

MIN_INTERVAL = 1

SampleCallback = Callable[[List[MetricSample]], None]
AlertCallback = Callable[[List[Alert]], None]


class Scheduler:
    """Periodically collects from enabled collectors and fans the batch out."""

    def __init__(self, registry, store, alert_engine: Optional[AlertEngine] = None,
                 interval: int = 5, collect_timeout: Optional[float] = None):
        """
        Args:
            registry: Registry providing enabled collectors and metric flags
            store: Storage receiving each filtered batch
            alert_engine: Engine evaluating each batch, a default one if omitted
            interval: Seconds between collections
            collect_timeout: Per-call deadline handed to collectors
        """
        self._registry = registry
        self._store = store
        self._alert_engine = alert_engine or AlertEngine()
        self._interval = max(MIN_INTERVAL, int(interval))
        self._collect_timeout = collect_timeout

        self._broadcast: Optional[SampleCallback] = None
        self._alert_broadcast: Optional[AlertCallback] = None
        self._alert_listener: Optional[AlertCallback] = None

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        # Loop that outlived stop(), still inside a collector call
        self._stopping: Optional[threading.Thread] = None
        self.stop_timeout = 5
        self._stop_event = threading.Event()
        # Single-slot signal; repeated updates before the loop wakes coalesce
        self._interval_changed = threading.Event()

    @property
    def alert_engine(self) -> AlertEngine:
        return self._alert_engine

    @property
    def interval(self) -> int:
        return self._interval

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def set_broadcast(self, fn: Optional[SampleCallback]):
        """Register the sample sink. It must not block."""
        self._broadcast = fn

    def set_alert_broadcast(self, fn: Optional[AlertCallback]):
        """Register the alert sink. It must not block."""
        self._alert_broadcast = fn

    def set_alert_listener(self, fn: Optional[AlertCallback]):
        """
        Register a sink that receives the active alerts of every evaluated
        pass, including passes where nothing is active. It must not block.
        """
        self._alert_listener = fn

    def start(self):
        """Start the collection loop in a background thread."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            if self._stopping is not None and self._stopping.is_alive():
                logger.warning("Scheduler not started: previous loop is still finishing a collection")
                return
            self._stopping = None
            self._stop_event = threading.Event()
            self._interval_changed.clear()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name='hostwatch-scheduler',
                daemon=True
            )
            self._thread.start()
        logger.info(f"Scheduler started (interval {self._interval}s)")

    def stop(self):
        """Stop the loop and wait for it to exit. Safe to call repeatedly."""
        with self._lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
            self._interval_changed.set()

        if thread is None:
            return
        if thread is threading.current_thread():
            logger.info("Scheduler stopped")
            return

        thread.join(timeout=self.stop_timeout)
        if thread.is_alive():
            with self._lock:
                self._stopping = thread
            logger.warning("Scheduler loop did not exit in time, it will stop after the current collection")
        logger.info("Scheduler stopped")

    def update_interval(self, seconds: int):
        """Change the collection interval, clamped to at least one second."""
        self._interval = max(MIN_INTERVAL, int(seconds))
        self._interval_changed.set()
        logger.info(f"Collection interval set to {self._interval}s")

    def update_top_n(self, n: int):
        """Set the process collector's top-N, enabled or not."""
        for collector in self._registry.enabled_collectors():
            if isinstance(collector, ProcessCollector):
                collector.set_top_n(n)
                return
        for collector in self._registry.all_collectors():
            if isinstance(collector, ProcessCollector):
                collector.set_top_n(n)
                return

    def _run(self, stop_event: threading.Event):
        self._tick(stop_event)
        next_tick = time.monotonic() + self._interval

        while not stop_event.is_set():
            remaining = max(0.0, next_tick - time.monotonic())
            signalled = self._interval_changed.wait(timeout=remaining)
            if stop_event.is_set():
                break

            if signalled:
                # New interval: restart the timer without collecting
                self._interval_changed.clear()
                next_tick = time.monotonic() + self._interval
                continue

            self._tick(stop_event)
            now = time.monotonic()
            next_tick += self._interval
            if next_tick <= now:
                next_tick = now + self._interval

    def _tick(self, stop_event: threading.Event):
        try:
            self.collect_all(CollectContext(stop_event=stop_event, timeout=self._collect_timeout))
        except Exception as e:
            logger.error(f"Error in collection pipeline: {e}")

    def collect_all(self, ctx: Optional[CollectContext] = None):
        """Run one pass of the pipeline."""
        collectors = self._registry.enabled_collectors()
        if not collectors:
            return

        batch: List[MetricSample] = []
        for collector in collectors:
            if ctx is not None and ctx.cancelled:
                return
            try:
                batch.extend(collector.collect(ctx))
            except Exception as e:
                logger.warning(f"[scheduler] collector {collector.id} error: {e}")

        if not batch:
            return

        batch = [s for s in batch if self._registry.is_metric_enabled(s.metric_name)]
        if not batch:
            return

        try:
            self._store.insert_samples(batch)
        except Exception as e:
            logger.error(f"[scheduler] failed to store samples: {e}")

        broadcast = self._broadcast
        if broadcast is not None:
            try:
                broadcast(batch)
            except Exception as e:
                logger.error(f"Error in sample broadcast: {e}")

        alerts = self._alert_engine.evaluate(batch)
        alert_listener = self._alert_listener
        if alert_listener is not None:
            try:
                alert_listener(alerts)
            except Exception as e:
                logger.error(f"Error in alert listener: {e}")

        alert_broadcast = self._alert_broadcast
        if alerts and alert_broadcast is not None:
            try:
                alert_broadcast(alerts)
            except Exception as e:
                logger.error(f"Error in alert broadcast: {e}")
