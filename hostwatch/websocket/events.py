"""WebSocket hub and event handlers for live metrics and alerts."""

import logging
import queue
import threading
from typing import Dict, List, Optional, Set

from flask import request
from flask_socketio import emit

logger = logging.getLogger(__name__)


class MetricsHub:
    """
    Fans sample and alert batches out to Socket.IO clients.

    Clients may subscribe to metric name prefixes. A client without
    subscriptions receives every batch; a subscribed client receives a batch
    when any sample in it matches one of its prefixes. Alerts go to everyone.
    The scheduler-facing sinks only enqueue; a background task emits.
    """

    def __init__(self, socketio, max_queue: int = 256):
        self.socketio = socketio
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue)
        self._clients: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()
        self._running = False
        self._task = None

    # Client bookkeeping

    def add_client(self, sid: str):
        with self._lock:
            self._clients.setdefault(sid, set())

    def remove_client(self, sid: str):
        with self._lock:
            self._clients.pop(sid, None)

    def subscribe(self, sid: str, prefixes: List[str]) -> List[str]:
        with self._lock:
            subs = self._clients.setdefault(sid, set())
            subs.update(p for p in prefixes if p)
            return sorted(subs)

    def unsubscribe(self, sid: str, prefixes: List[str]) -> List[str]:
        with self._lock:
            subs = self._clients.setdefault(sid, set())
            subs.difference_update(prefixes)
            return sorted(subs)

    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    # Sinks

    def on_samples(self, samples):
        self._enqueue('metrics', samples)

    def on_alerts(self, alerts):
        self._enqueue('alerts', alerts)

    def _enqueue(self, kind: str, batch):
        try:
            self._queue.put_nowait((kind, list(batch)))
        except queue.Full:
            logger.debug(f"Hub queue full, dropping {kind} batch")

    # Delivery

    def start(self):
        """Start the background delivery task."""
        if self._running:
            return
        self._running = True
        self._task = self.socketio.start_background_task(self._dispatch_loop)

    def stop(self):
        self._running = False
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

    def _dispatch_loop(self):
        while self._running:
            try:
                item = self._queue.get(timeout=1)
            except queue.Empty:
                continue
            if item is None:
                break
            kind, batch = item
            try:
                self.dispatch(kind, batch)
            except Exception as e:
                logger.error(f"Error delivering {kind} batch: {e}")

    def dispatch(self, kind: str, batch):
        """Emit one batch to the interested clients."""
        if kind == 'alerts':
            self.socketio.emit('alerts', {
                'type': 'alerts',
                'alerts': [a.to_dict() for a in batch]
            })
            return

        with self._lock:
            clients = {sid: set(prefixes) for sid, prefixes in self._clients.items()}
        if not clients:
            return

        payload = {
            'type': 'metrics',
            'samples': [s.to_dict() for s in batch]
        }
        for sid, prefixes in clients.items():
            if prefixes and not self._matches(batch, prefixes):
                continue
            self.socketio.emit('metrics', payload, to=sid)

    @staticmethod
    def _matches(samples, prefixes: Set[str]) -> bool:
        return any(s.metric_name.startswith(p) for s in samples for p in prefixes)


def _prefixes(data) -> Optional[List[str]]:
    if not isinstance(data, dict):
        return None
    metrics = data.get('metrics')
    if not isinstance(metrics, list) or not all(isinstance(m, str) for m in metrics):
        return None
    return metrics


def register_events(socketio, hub: MetricsHub):
    """Register all WebSocket event handlers."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        """Handle client connection."""
        hub.add_client(request.sid)
        logger.info(f"Client connected: {request.sid}")
        emit('connected', {'status': 'connected'})

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        """Handle client disconnection."""
        hub.remove_client(request.sid)
        logger.info(f"Client disconnected: {request.sid}")

    @socketio.on('subscribe')
    def handle_subscribe(data):
        """Add metric prefixes to the client's subscription."""
        prefixes = _prefixes(data)
        if prefixes is None:
            emit('error', {'message': 'metrics must be a list of strings'})
            return
        current = hub.subscribe(request.sid, prefixes)
        emit('subscribed', {'metrics': current})

    @socketio.on('unsubscribe')
    def handle_unsubscribe(data):
        """Remove metric prefixes from the client's subscription."""
        prefixes = _prefixes(data)
        if prefixes is None:
            emit('error', {'message': 'metrics must be a list of strings'})
            return
        current = hub.unsubscribe(request.sid, prefixes)
        emit('unsubscribed', {'metrics': current})
