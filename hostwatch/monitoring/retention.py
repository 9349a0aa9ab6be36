"""
Data retention for stored metric samples.
"""

import logging
import threading
from typing import Dict, Optional, Any


logger = logging.getLogger(__name__)


class RetentionManager:
    """Periodically deletes samples older than the retention window."""

    def __init__(self, store, retention_hours: int = 24, check_minutes: int = 10):
        """
        Args:
            store: MetricStore to purge
            retention_hours: Age in hours after which samples are deleted
            check_minutes: Minutes between purge runs
        """
        self._store = store
        self.retention_hours = retention_hours
        self.check_minutes = max(1, int(check_minutes))
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def set_retention_hours(self, hours: int):
        self.retention_hours = int(hours)
        logger.info(f"Retention set to {self.retention_hours}h")

    def cleanup_old_data(self) -> Dict[str, Any]:
        """
        Delete samples older than the retention window.

        Returns:
            Dictionary with cleanup statistics
        """
        stats = {
            'samples_deleted': 0,
            'retention_hours': self.retention_hours,
            'errors': []
        }

        if self.retention_hours <= 0:
            return stats

        try:
            stats['samples_deleted'] = self._store.purge_older_than(self.retention_hours)
            if stats['samples_deleted']:
                logger.info(f"Purged {stats['samples_deleted']} samples older than {self.retention_hours}h")
        except Exception as e:
            error_msg = f"Error during data cleanup: {str(e)}"
            logger.error(error_msg)
            stats['errors'].append(error_msg)

        return stats

    def start(self):
        """Start the retention worker thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._cleanup_worker,
            args=(self._stop_event,),
            name='hostwatch-retention',
            daemon=True
        )
        self._thread.start()
        logger.info(f"Retention manager started (every {self.check_minutes}m, keep {self.retention_hours}h)")

    def stop(self):
        """Stop the retention worker."""
        thread = self._thread
        self._thread = None
        self._stop_event.set()
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5)
            logger.info("Retention manager stopped")

    def _cleanup_worker(self, stop_event: threading.Event):
        while not stop_event.wait(self.check_minutes * 60):
            self.cleanup_old_data()
