"""
Webhook notification for raised alerts.

The scheduler hands every pass's alerts to an alert sink that must not
block. The notifier queues only alerts that are new, changed severity, or
were last sent longer than the repeat interval ago; a worker thread posts
them.
"""

import logging
import queue
import threading
from typing import Dict, List, Optional, Tuple

import requests

from hostwatch.monitoring.alerts import Alert


logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Posts raised alerts to a webhook URL."""

    def __init__(self, url: str, timeout: int = 10, repeat_interval_minutes: int = 60, max_queue: int = 100):
        self.url = url
        self.timeout = timeout
        self.repeat_seconds = repeat_interval_minutes * 60
        self._queue: "queue.Queue[Optional[List[Alert]]]" = queue.Queue(maxsize=max_queue)
        # alert id -> (severity, timestamp of last notification)
        self._notified: Dict[str, Tuple[str, int]] = {}
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def __call__(self, alerts: List[Alert]):
        self.on_alerts(alerts)

    def on_alerts(self, alerts: List[Alert]):
        """
        Alert listener for the scheduler, called with the active alerts of
        every pass. Alerts missing from the list are forgotten. Never blocks.
        """
        raised = []
        with self._lock:
            notified = {}
            for alert in alerts:
                prev = self._notified.get(alert.id)
                if (prev is None or prev[0] != alert.severity
                        or alert.timestamp - prev[1] >= self.repeat_seconds):
                    raised.append(alert)
                    notified[alert.id] = (alert.severity, alert.timestamp)
                else:
                    notified[alert.id] = prev
            self._notified = notified

        if not raised:
            return
        try:
            self._queue.put_nowait(raised)
        except queue.Full:
            logger.warning(f"Webhook queue full, dropping {len(raised)} alerts")

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._worker, name='hostwatch-webhook', daemon=True)
        self._thread.start()
        logger.info(f"Webhook notifier started for {self.url}")

    def stop(self):
        thread = self._thread
        self._thread = None
        if thread is None:
            return
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        if thread.is_alive():
            thread.join(timeout=5)

    def _worker(self):
        while True:
            batch = self._queue.get()
            if batch is None:
                break
            self.send(batch)

    def send(self, alerts: List[Alert]) -> bool:
        """
        Post a batch of alerts.

        Returns:
            True if the webhook accepted the request
        """
        payload = {
            'type': 'alerts',
            'alerts': [a.to_dict() for a in alerts]
        }
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Sent webhook notification for {len(alerts)} alerts to {self.url}")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to send webhook notification: {e}")
            return False
