"""Tests for the alert webhook notifier."""

import pytest
import requests

from hostwatch.monitoring import notifications
from hostwatch.monitoring.alerts import Alert
from hostwatch.monitoring.notifications import WebhookNotifier


def alert(metric='mem.used_pct', severity='warning', timestamp=1000):
    return Alert(id=f'alert-{metric}', timestamp=timestamp, severity=severity, metric=metric,
                 value=91.0, threshold=80.0, message_en='Memory %.1f' % 91.0, message_ko='메모리')


def drain(notifier):
    batches = []
    while not notifier._queue.empty():
        batches.append(notifier._queue.get_nowait())
    return batches


@pytest.fixture
def notifier():
    return WebhookNotifier('http://hooks.example/alerts', repeat_interval_minutes=10)


def test_new_alert_is_queued_once(notifier):
    notifier([alert()])
    notifier([alert(timestamp=1005)])

    batches = drain(notifier)
    assert len(batches) == 1
    assert batches[0][0].id == 'alert-mem.used_pct'


def test_severity_change_is_queued(notifier):
    notifier([alert()])
    notifier([alert(severity='critical', timestamp=1005)])

    assert len(drain(notifier)) == 2


def test_repeat_after_interval(notifier):
    """Test a still-active alert is re-sent after the repeat interval."""
    notifier([alert(timestamp=1000)])
    notifier([alert(timestamp=1000 + 599)])
    notifier([alert(timestamp=1000 + 600)])

    assert len(drain(notifier)) == 2


def test_cleared_alert_is_new_again(notifier):
    notifier([alert()])
    notifier([alert('disk.root.used_pct')])
    notifier([alert(timestamp=1010)])

    assert len(drain(notifier)) == 3


def test_empty_pass_forgets_cleared_alerts(notifier):
    notifier([alert()])
    notifier([])
    notifier([alert(timestamp=1010)])

    assert len(drain(notifier)) == 2


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_send_posts_payload(notifier, monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return FakeResponse(200)

    monkeypatch.setattr(notifications.requests, 'post', fake_post)

    assert notifier.send([alert()])
    url, payload, timeout = calls[0]
    assert url == 'http://hooks.example/alerts'
    assert payload['type'] == 'alerts'
    assert payload['alerts'][0]['metric'] == 'mem.used_pct'
    assert timeout == 10


def test_send_failure_returns_false(notifier, monkeypatch):
    monkeypatch.setattr(notifications.requests, 'post', lambda *a, **kw: FakeResponse(500))
    assert notifier.send([alert()]) is False

    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(notifications.requests, 'post', unreachable)
    assert notifier.send([alert()]) is False


def test_worker_delivers(notifier, monkeypatch):
    sent = []
    monkeypatch.setattr(notifier, 'send', lambda alerts: sent.append(alerts) or True)

    notifier.start()
    notifier([alert()])
    notifier.stop()

    assert len(sent) == 1


def test_stop_without_start(notifier):
    notifier.stop()
