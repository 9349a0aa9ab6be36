"""Tests for the WebSocket metrics hub."""

import pytest

from hostwatch.monitoring.alerts import Alert
from hostwatch.monitoring.metrics_collector import make_sample
from hostwatch.websocket.events import MetricsHub


class FakeSocketIO:
    """Records emit calls."""

    def __init__(self):
        self.emitted = []

    def emit(self, event, data, to=None):
        self.emitted.append((event, data, to))

    def start_background_task(self, target):
        return None


@pytest.fixture
def hub():
    return MetricsHub(FakeSocketIO(), max_queue=2)


def batch(*names):
    return [make_sample(1700000000, 'cpu', name, 1.0) for name in names]


def test_unsubscribed_client_gets_everything(hub):
    hub.add_client('a')

    hub.dispatch('metrics', batch('cpu.total.usage'))

    event, payload, to = hub.socketio.emitted[0]
    assert (event, to) == ('metrics', 'a')
    assert payload['type'] == 'metrics'
    assert payload['samples'][0]['metric_name'] == 'cpu.total.usage'


def test_prefix_subscriptions(hub):
    """Test subscribed clients only get batches with a matching sample."""
    hub.add_client('cpu-only')
    hub.add_client('mem-only')
    assert hub.subscribe('cpu-only', ['cpu.', '']) == ['cpu.']
    hub.subscribe('mem-only', ['mem.'])

    hub.dispatch('metrics', batch('cpu.total.usage', 'cpu.load.1'))

    assert [to for _, _, to in hub.socketio.emitted] == ['cpu-only']


def test_unsubscribe_all_restores_full_stream(hub):
    hub.add_client('a')
    hub.subscribe('a', ['mem.'])
    assert hub.unsubscribe('a', ['mem.']) == []

    hub.dispatch('metrics', batch('cpu.total.usage'))

    assert len(hub.socketio.emitted) == 1


def test_alerts_go_to_everyone(hub):
    hub.add_client('a')
    hub.subscribe('a', ['cpu.'])
    alert = Alert(id='alert-mem.used_pct', timestamp=1, severity='warning', metric='mem.used_pct',
                  value=91.0, threshold=80.0, message_en='m', message_ko='m')

    hub.dispatch('alerts', [alert])

    event, payload, to = hub.socketio.emitted[0]
    assert event == 'alerts'
    assert to is None
    assert payload['alerts'][0]['id'] == 'alert-mem.used_pct'


def test_no_clients_no_emit(hub):
    hub.dispatch('metrics', batch('cpu.total.usage'))
    assert hub.socketio.emitted == []


def test_client_tracking(hub):
    hub.add_client('a')
    hub.add_client('b')
    hub.remove_client('a')
    hub.remove_client('missing')
    assert hub.client_count() == 1


def test_sinks_drop_when_queue_full(hub):
    """Test producers never block on a full queue."""
    hub.on_samples(batch('cpu.total.usage'))
    hub.on_samples(batch('cpu.total.usage'))
    hub.on_samples(batch('cpu.total.usage'))

    assert hub._queue.qsize() == 2


def test_socketio_subscribe_flow(app):
    """Test the subscribe and unsubscribe events over a test client."""
    client = app.socketio.test_client(app)
    assert client.is_connected()
    assert app.hub.client_count() == 1

    client.emit('subscribe', {'metrics': ['cpu.', 'mem.']})
    client.emit('unsubscribe', {'metrics': ['mem.']})
    client.emit('subscribe', {'metrics': 'cpu.'})

    received = [(m['name'], m['args'][0]) for m in client.get_received()]
    assert ('connected', {'status': 'connected'}) in received
    assert ('subscribed', {'metrics': ['cpu.', 'mem.']}) in received
    assert ('unsubscribed', {'metrics': ['cpu.']}) in received
    assert any(name == 'error' for name, _ in received)

    client.disconnect()
    assert app.hub.client_count() == 0
