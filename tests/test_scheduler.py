"""Tests for the collection scheduler pipeline."""

import logging
import threading

import pytest

from hostwatch.monitoring.alerts import AlertEngine, AlertRule
from hostwatch.monitoring.collectors import ProcessCollector
from hostwatch.monitoring.metrics_collector import Collector, ImpactLevel, make_sample
from hostwatch.monitoring.notifications import WebhookNotifier
from hostwatch.monitoring.registry import Registry
from hostwatch.monitoring.scheduler import Scheduler

from conftest import FakeCollector


@pytest.fixture
def engine():
    return AlertEngine([AlertRule(metric_pattern='mem.used_pct', threshold=50,
                                  message_en='mem %.1f', message_ko='mem %.1f')])


@pytest.fixture
def pipeline(fake_store, cpu_collector, memory_collector, engine):
    registry = Registry(fake_store)
    registry.register(cpu_collector)
    registry.register(memory_collector)
    registry.enable('cpu')
    registry.enable('memory')
    scheduler = Scheduler(registry, fake_store, engine, interval=60)
    return registry, scheduler


class Recorder:
    def __init__(self):
        self.batches = []

    def __call__(self, batch):
        self.batches.append(batch)


def test_collect_all_persists_broadcasts_and_alerts(pipeline, fake_store):
    """Test one pass stores, broadcasts and evaluates the batch."""
    _, scheduler = pipeline
    samples, alerts = Recorder(), Recorder()
    scheduler.set_broadcast(samples)
    scheduler.set_alert_broadcast(alerts)

    scheduler.collect_all()

    names = sorted(s.metric_name for s in fake_store.inserted[0])
    assert names == ['cpu.load.1', 'cpu.total.usage', 'mem.total', 'mem.used_pct']
    assert len(samples.batches) == 1
    assert [a.metric for a in alerts.batches[0]] == ['mem.used_pct']


def test_failing_collector_is_isolated(fake_store, memory_collector, caplog):
    registry = Registry(fake_store)
    registry.register(FakeCollector('gpu', error='nvidia-smi timed out'))
    registry.register(memory_collector)
    registry.enable('gpu')
    registry.enable('memory')
    scheduler = Scheduler(registry, fake_store, AlertEngine([]))

    with caplog.at_level(logging.WARNING, logger='hostwatch.monitoring.scheduler'):
        scheduler.collect_all()

    assert len(fake_store.inserted) == 1
    assert {s.collector for s in fake_store.inserted[0]} == {'memory'}
    warnings = [r for r in caplog.records
                if r.name == 'hostwatch.monitoring.scheduler' and r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert 'gpu' in warnings[0].getMessage()


def test_disabled_metrics_are_filtered(pipeline, fake_store):
    registry, scheduler = pipeline
    registry.disable_metric('cpu.load.1')
    recorder = Recorder()
    scheduler.set_broadcast(recorder)

    scheduler.collect_all()

    assert 'cpu.load.1' not in {s.metric_name for s in recorder.batches[0]}
    assert 'cpu.load.1' not in {s.metric_name for s in fake_store.inserted[0]}


def test_persist_failure_still_broadcasts(pipeline, fake_store):
    """Test storage errors do not stop broadcasting or alerting."""
    _, scheduler = pipeline
    fake_store.fail_inserts = True
    samples, alerts = Recorder(), Recorder()
    scheduler.set_broadcast(samples)
    scheduler.set_alert_broadcast(alerts)

    scheduler.collect_all()

    assert len(samples.batches) == 1
    assert len(alerts.batches) == 1


def test_broadcast_error_does_not_stop_alerts(pipeline):
    _, scheduler = pipeline
    alerts = Recorder()

    def broken(batch):
        raise RuntimeError("socket closed")

    scheduler.set_broadcast(broken)
    scheduler.set_alert_broadcast(alerts)

    scheduler.collect_all()

    assert len(alerts.batches) == 1


def test_no_enabled_collectors_is_noop(fake_store, cpu_collector):
    registry = Registry(fake_store)
    registry.register(cpu_collector)
    scheduler = Scheduler(registry, fake_store)
    recorder = Recorder()
    scheduler.set_broadcast(recorder)

    scheduler.collect_all()

    assert fake_store.inserted == []
    assert recorder.batches == []
    assert cpu_collector.calls == 0


def test_empty_batch_after_filtering_is_noop(pipeline, fake_store):
    registry, scheduler = pipeline
    registry.set_collector_metrics('cpu', False)
    registry.set_collector_metrics('memory', False)
    recorder = Recorder()
    scheduler.set_broadcast(recorder)

    scheduler.collect_all()

    assert fake_store.inserted == []
    assert recorder.batches == []


def test_no_alert_callback_when_nothing_triggers(pipeline, engine, memory_collector):
    _, scheduler = pipeline
    memory_collector.values['mem.used_pct'] = 10.0
    alerts = Recorder()
    scheduler.set_alert_broadcast(alerts)

    scheduler.collect_all()

    assert alerts.batches == []
    assert engine.active_alerts() == []


@pytest.mark.parametrize('requested,expected', [(0, 1), (-5, 1), (1, 1), (30, 30)])
def test_update_interval_clamps(fake_store, requested, expected):
    scheduler = Scheduler(Registry(fake_store), fake_store)
    scheduler.update_interval(requested)
    assert scheduler.interval == expected


def test_constructor_clamps_interval(fake_store):
    scheduler = Scheduler(Registry(fake_store), fake_store, interval=0)
    assert scheduler.interval == 1


def test_stop_before_start(fake_store):
    scheduler = Scheduler(Registry(fake_store), fake_store)
    scheduler.stop()
    scheduler.stop()
    assert not scheduler.running


def test_start_runs_immediate_pass(pipeline, fake_store):
    """Test the first collection happens right after start."""
    _, scheduler = pipeline
    collected = threading.Event()
    scheduler.set_broadcast(lambda batch: collected.set())

    scheduler.start()
    try:
        assert collected.wait(timeout=5)
        assert scheduler.running
    finally:
        scheduler.stop()

    assert not scheduler.running
    assert len(fake_store.inserted) >= 1


def test_interval_change_does_not_collect(pipeline, cpu_collector):
    """Test an interval update resets the timer without an extra pass."""
    _, scheduler = pipeline
    collected = threading.Event()
    scheduler.set_broadcast(lambda batch: collected.set())

    scheduler.start()
    try:
        assert collected.wait(timeout=5)
        calls = cpu_collector.calls
        scheduler.update_interval(30)
        scheduler.update_interval(45)
        # Give the loop a moment to consume the signal
        threading.Event().wait(0.2)
        assert cpu_collector.calls == calls
        assert scheduler.interval == 45
    finally:
        scheduler.stop()


def test_restart_after_stop(pipeline):
    _, scheduler = pipeline
    scheduler.start()
    scheduler.stop()
    scheduler.start()
    try:
        assert scheduler.running
    finally:
        scheduler.stop()


def test_update_top_n_reaches_disabled_process_collector(fake_store):
    registry = Registry(fake_store)
    process = ProcessCollector()
    registry.register(process)
    scheduler = Scheduler(registry, fake_store)

    scheduler.update_top_n(3)

    assert process.top_n == 3


def test_alert_listener_sees_every_pass(pipeline, memory_collector):
    """Test the listener also gets empty results while the broadcast does not."""
    _, scheduler = pipeline
    listener, broadcast = Recorder(), Recorder()
    scheduler.set_alert_listener(listener)
    scheduler.set_alert_broadcast(broadcast)

    scheduler.collect_all()
    memory_collector.values['mem.used_pct'] = 10.0
    scheduler.collect_all()

    assert [len(batch) for batch in listener.batches] == [1, 0]
    assert len(broadcast.batches) == 1


def test_webhook_resends_alert_that_cleared_and_returned(pipeline, engine, memory_collector):
    _, scheduler = pipeline
    notifier = WebhookNotifier('http://hooks.example/alerts', repeat_interval_minutes=60)
    scheduler.set_alert_listener(notifier.on_alerts)

    for value in (95.0, 10.0, 95.0):
        memory_collector.values['mem.used_pct'] = value
        scheduler.collect_all()
        if value == 10.0:
            assert engine.active_alerts() == []

    queued = []
    while not notifier._queue.empty():
        queued.append(notifier._queue.get_nowait())
    assert len(queued) == 2
    assert all(batch[0].metric == 'mem.used_pct' for batch in queued)


class BlockingCollector(Collector):
    """Collector whose collect call ignores cancellation until released."""

    id = 'slow'
    name = 'Slow'
    description = 'blocks until released'
    impact = ImpactLevel.NONE

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def metric_names(self):
        return ['slow.value']

    def collect(self, ctx=None):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        self.release.wait(timeout=10)
        with self._lock:
            self.active -= 1
        return [make_sample(1700000000, self.id, 'slow.value', 1.0)]


def test_restart_waits_for_previous_loop(fake_store):
    """Test a loop stuck in a collector keeps a new loop from starting."""
    registry = Registry(fake_store)
    slow = BlockingCollector()
    registry.register(slow)
    registry.enable('slow')
    scheduler = Scheduler(registry, fake_store, AlertEngine([]), interval=60)
    scheduler.stop_timeout = 0.1

    scheduler.start()
    assert slow.entered.wait(timeout=5)
    scheduler.stop()
    assert not scheduler.running

    scheduler.start()
    assert not scheduler.running
    assert slow.max_active == 1

    slow.release.set()
    stale = scheduler._stopping
    stale.join(timeout=5)
    assert not stale.is_alive()

    slow.entered.clear()
    scheduler.start()
    try:
        assert scheduler.running
        assert slow.entered.wait(timeout=5)
    finally:
        scheduler.stop()
    assert slow.max_active == 1
