"""GlobScanner: expand file patterns, start a worker for each new file, repeat on an interval."""

import glob
import logging
import queue
import re
import threading
from typing import Callable, Sequence

from remote_syslog.config import LogFileSpec
from remote_syslog.matcher import matches
from remote_syslog.metrics import Metrics
from remote_syslog.registry import WorkerRegistry
from remote_syslog.tailer import FileTail
from remote_syslog.worker import ForwardSettings, TailWorker

logger = logging.getLogger(__name__)


class GlobScanner:
    """Discovers files matching the configured specs and spawns tail workers.

    The scanner only ever adds workers. A worker leaves the registry when
    its own stream ends, which makes the file eligible again on a later
    scan if it comes back.
    """

    def __init__(
        self,
        specs: Sequence[LogFileSpec],
        exclude_files: Sequence[re.Pattern],
        registry: WorkerRegistry,
        sink: queue.Queue,
        settings: ForwardSettings,
        tail_factory: Callable[[str], FileTail],
        metrics: Metrics | None = None,
        log: logging.Logger | None = None,
    ):
        self._specs = list(specs)
        self._exclude_files = tuple(exclude_files)
        self._registry = registry
        self._sink = sink
        self._settings = settings
        self._tail_factory = tail_factory
        self._metrics = metrics
        self._log = log or logger
        self._workers: list[TailWorker] = []

    @property
    def registry(self) -> WorkerRegistry:
        return self._registry

    @property
    def workers(self) -> list[TailWorker]:
        """Workers started by this scanner that are still running."""
        return [w for w in self._workers if w.alive]

    def scan(self, log_missing: bool = False) -> list[str]:
        """Evaluate every file pattern once. Returns the paths that got a new worker."""
        self._log.debug("Evaluating file globs")
        self._workers = [w for w in self._workers if w.alive]
        started = []
        for spec in self._specs:
            try:
                files = sorted(glob.glob(spec.path, include_hidden=True))
            except (OSError, ValueError, re.error) as e:
                self._log.error("Failed to glob %s: %s", spec.path, e)
                continue

            if not files and log_missing:
                self._log.warning("Cannot forward %s, it may not exist", spec.path)

            for path in files:
                if self._registry.exists(path):
                    self._log.debug("Skipping %s because it is already running", path)
                elif matches(path, self._exclude_files):
                    self._log.debug("Skipping %s because it is excluded by regular expression", path)
                else:
                    self._log.info("Forwarding %s", path)
                    if self._spawn(path, spec.tag):
                        started.append(path)
        return started

    def run(self, interval: float, shutdown_event: threading.Event):
        """Scan now, then every *interval* seconds until shutdown.

        Only the first scan reports patterns that match nothing.
        """
        self._log.debug("Evaluating globs every %.1fs", interval)
        log_missing = True
        while not shutdown_event.is_set():
            self.scan(log_missing)
            log_missing = False
            shutdown_event.wait(interval)

    def _spawn(self, path: str, tag: str) -> bool:
        worker = TailWorker(
            path,
            tag,
            self._registry,
            self._sink,
            self._settings,
            self._tail_factory,
            metrics=self._metrics,
        )
        if not worker.start():
            return False
        self._workers.append(worker)
        return True
