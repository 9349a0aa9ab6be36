"""Shared fixtures for hostwatch tests."""

import pytest

from hostwatch.monitoring.metrics_collector import Collector, CollectionError, ImpactLevel, make_sample


class FakeStore:
    """In-memory stand-in for MetricStore that records every write."""

    def __init__(self, collector_states=None, disabled_metrics=None, rules=None):
        self.collector_states = dict(collector_states or {})
        self.disabled_metrics = set(disabled_metrics or ())
        self.rules = list(rules or [])
        self.inserted = []
        self.collector_calls = []
        self.metric_calls = []
        self.bulk_calls = []
        self.fail_inserts = False
        self.fail_rules = False

    def get_all_collector_states(self):
        return dict(self.collector_states)

    def get_disabled_metrics(self):
        return set(self.disabled_metrics)

    def set_collector_enabled(self, collector_id, enabled):
        self.collector_calls.append((collector_id, enabled))
        self.collector_states[collector_id] = enabled

    def set_metric_enabled(self, name, enabled):
        self.metric_calls.append((name, enabled))
        if enabled:
            self.disabled_metrics.discard(name)
        else:
            self.disabled_metrics.add(name)

    def set_metrics_bulk_enabled(self, names, enabled):
        self.bulk_calls.append((list(names), enabled))

    def insert_samples(self, samples):
        if self.fail_inserts:
            raise RuntimeError("disk full")
        self.inserted.append(list(samples))

    def list_alert_rules(self):
        if self.fail_rules:
            raise RuntimeError("database is locked")
        return list(self.rules)


class FakeCollector(Collector):
    """Collector returning fixed values, or raising when told to."""

    def __init__(self, collector_id, values=None, declared=None, error=None, impact=ImpactLevel.NONE):
        self.id = collector_id
        self.name = collector_id.upper()
        self.description = f"{collector_id} test collector"
        self.impact = impact
        self.values = dict(values or {})
        self.declared = list(declared) if declared is not None else sorted(self.values)
        self.error = error
        self.calls = 0

    def metric_names(self):
        return list(self.declared)

    def collect(self, ctx=None):
        self.calls += 1
        if self.error is not None:
            raise CollectionError(self.error)
        return [make_sample(1700000000, self.id, name, value) for name, value in self.values.items()]


@pytest.fixture
def fake_store():
    """Empty recording store."""
    return FakeStore()


@pytest.fixture
def cpu_collector():
    return FakeCollector('cpu', {'cpu.total.usage': 42.0, 'cpu.load.1': 0.5})


@pytest.fixture
def memory_collector():
    return FakeCollector('memory', {'mem.used_pct': 55.0, 'mem.total': 8e9})


@pytest.fixture
def app(cpu_collector, memory_collector):
    """Flask app on an in-memory database with fake collectors."""
    from hostwatch import create_app

    app = create_app('testing', collectors=[cpu_collector, memory_collector])
    yield app
    app.monitoring.stop()
    app.db_manager.close()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
