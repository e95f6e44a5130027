"""Thread-safe forwarding counters and a periodic log reporter."""

import logging
import threading

logger = logging.getLogger(__name__)


class Metrics:
    """Counters shared by every tail worker."""

    def __init__(self):
        self._lock = threading.Lock()
        self._forwarded = 0
        self._excluded = 0
        self._workers_started = 0
        self._workers_stopped = 0

    def record_forwarded(self):
        with self._lock:
            self._forwarded += 1

    def record_excluded(self):
        with self._lock:
            self._excluded += 1

    def record_worker_started(self):
        with self._lock:
            self._workers_started += 1

    def record_worker_stopped(self):
        with self._lock:
            self._workers_stopped += 1

    def snapshot_and_reset(self) -> dict:
        """Atomically read all counters and reset them to zero."""
        with self._lock:
            snapshot = {
                "forwarded": self._forwarded,
                "excluded": self._excluded,
                "workers_started": self._workers_started,
                "workers_stopped": self._workers_stopped,
            }
            self._forwarded = 0
            self._excluded = 0
            self._workers_started = 0
            self._workers_stopped = 0
            return snapshot


class MetricsReporter:
    """Background thread that periodically logs a metrics summary."""

    def __init__(
        self,
        metrics: Metrics,
        interval: float,
        shutdown_event: threading.Event,
        active_workers=None,
    ):
        self._metrics = metrics
        self._interval = interval
        self._shutdown = shutdown_event
        self._active_workers = active_workers
        self._thread: threading.Thread | None = None

    def start(self):
        self._thread = threading.Thread(target=self._report_loop, name="metrics", daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread:
            self._thread.join(timeout=5)

    def report(self) -> dict:
        """Log one summary line and return the snapshot it was built from."""
        snapshot = self._metrics.snapshot_and_reset()
        active = self._active_workers() if self._active_workers else 0
        logger.info(
            "[metrics] forwarded=%d excluded=%d started=%d stopped=%d active=%d",
            snapshot["forwarded"],
            snapshot["excluded"],
            snapshot["workers_started"],
            snapshot["workers_stopped"],
            active,
        )
        return snapshot

    def _report_loop(self):
        while not self._shutdown.is_set():
            self._shutdown.wait(self._interval)
            if self._shutdown.is_set():
                break
            self.report()
