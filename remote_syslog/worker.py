"""TailWorker: one thread per file, from the first line read to the end of the stream."""

import logging
import queue
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from remote_syslog.matcher import matches
from remote_syslog.metrics import Metrics
from remote_syslog.packet import Packet
from remote_syslog.registry import WorkerRegistry
from remote_syslog.tailer import FileTail, TailError
from remote_syslog.transform import LineTransformer

logger = logging.getLogger(__name__)

DEFAULT_TAG = "-"


@dataclass(frozen=True)
class ForwardSettings:
    """Values stamped on every packet, plus the line exclusion set."""
    severity: int
    facility: int
    hostname: str
    exclude_patterns: tuple[re.Pattern, ...] = ()


class TailWorker:
    """Tails one file and forwards its transformed lines to the packet sink.

    ``start`` claims the path in the registry before the thread exists and
    ``run`` releases it on every exit path, so a registered path always
    means exactly one live worker.
    """

    def __init__(
        self,
        path: str,
        tag: str,
        registry: WorkerRegistry,
        sink: queue.Queue,
        settings: ForwardSettings,
        tail_factory: Callable[[str], FileTail],
        metrics: Metrics | None = None,
        log: logging.Logger | None = None,
    ):
        self._path = path
        self._tag = tag or DEFAULT_TAG
        self._registry = registry
        self._sink = sink
        self._settings = settings
        self._tail_factory = tail_factory
        self._metrics = metrics
        self._log = log or logger
        self._transform = LineTransformer(path)
        self._thread: threading.Thread | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def tag(self) -> str:
        return self._tag

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Register the path and start the worker thread.

        Returns False, without starting anything, if another worker already
        holds the path.
        """
        if not self._registry.try_add(self._path):
            self._log.debug("Worker for %s is already running", self._path)
            return False
        try:
            self._thread = threading.Thread(
                target=self.run, name=f"tail:{self._path}", daemon=True,
            )
            self._thread.start()
        except RuntimeError:
            self._registry.remove(self._path)
            raise
        if self._metrics:
            self._metrics.record_worker_started()
        return True

    def join(self, timeout: float | None = None):
        if self._thread:
            self._thread.join(timeout)

    def run(self):
        try:
            self._follow()
        except Exception:
            self._log.exception("Tail worker for %s failed", self._path)
        finally:
            self._registry.remove(self._path)
            if self._metrics:
                self._metrics.record_worker_stopped()

    def forward(self, line: str) -> Packet | None:
        """Transform one line and put it on the sink unless it is excluded."""
        text = self._transform(line)
        if matches(text, self._settings.exclude_patterns):
            self._log.debug("Not forwarding: %s", text)
            if self._metrics:
                self._metrics.record_excluded()
            return None

        packet = Packet(
            severity=self._settings.severity,
            facility=self._settings.facility,
            hostname=self._settings.hostname,
            tag=self._tag,
            message=text,
            time=datetime.now(timezone.utc),
        )
        self._sink.put(packet)
        self._log.debug("Forwarding: %s", text)
        if self._metrics:
            self._metrics.record_forwarded()
        return packet

    def _follow(self):
        tail = self._tail_factory(self._path)
        try:
            tail.open()
        except TailError as e:
            self._log.error("%s", e)
            return

        try:
            for line in tail.lines():
                self.forward(line)
        except TailError as e:
            self._log.error("Tail worker for %s stopped: %s", self._path, e)
            return
        finally:
            tail.close()

        if tail.stopped:
            self._log.info("Stopped tailing %s", self._path)
        else:
            self._log.error("Tail worker for %s exited abnormally", self._path)
