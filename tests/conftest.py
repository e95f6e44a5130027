"""Shared pytest fixtures for the remote_syslog test suite."""

import queue
import threading
import time

import pytest

from remote_syslog.metrics import Metrics
from remote_syslog.packet import parse_facility, parse_severity
from remote_syslog.registry import WorkerRegistry
from remote_syslog.tailer import TailError
from remote_syslog.worker import ForwardSettings


class FakeTail:
    """Stands in for FileTail: replays canned lines, then blocks until released."""

    def __init__(self, path, lines=(), fail_open=False, error=None, release=None):
        self.path = path
        self._lines = list(lines)
        self._fail_open = fail_open
        self._error = error
        self._release = release
        self.stopped = False
        self.closed = False

    def open(self):
        if self._fail_open:
            raise TailError(f"cannot open {self.path}: permission denied")

    def lines(self):
        yield from self._lines
        if self._release is not None:
            self._release.wait(5)
        if self._error is not None:
            raise self._error

    def close(self):
        self.closed = True


class FakeTailFactory:
    """Records every path handed to the tailing primitive."""

    def __init__(self, lines=None, blocking=True):
        self.opened: list[str] = []
        self.release = threading.Event()
        self._lines = lines or {}
        self._blocking = blocking
        self._lock = threading.Lock()

    def __call__(self, path):
        with self._lock:
            self.opened.append(path)
        return FakeTail(
            path,
            lines=self._lines.get(path, ()),
            release=self.release if self._blocking else None,
        )


@pytest.fixture()
def registry() -> WorkerRegistry:
    return WorkerRegistry()


@pytest.fixture()
def sink() -> queue.Queue:
    return queue.Queue()


@pytest.fixture()
def metrics() -> Metrics:
    return Metrics()


@pytest.fixture()
def settings() -> ForwardSettings:
    return ForwardSettings(
        severity=parse_severity("notice"),
        facility=parse_facility("user"),
        hostname="test-host",
    )


@pytest.fixture()
def tail_factory():
    factory = FakeTailFactory()
    yield factory
    factory.release.set()


@pytest.fixture()
def wait_for():
    """Poll a predicate until it holds or the timeout passes."""
    def _wait(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait


def drain(q: queue.Queue) -> list:
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture()
def drain_queue():
    return drain
