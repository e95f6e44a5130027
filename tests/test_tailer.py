"""Tests for tailer module."""

import os
import threading
import time

import pytest

from remote_syslog.notifier import ChangeNotifier
from remote_syslog.tailer import FileTail, TailError


def _append(path, text):
    with open(path, "a") as fh:
        fh.write(text)
        fh.flush()


class _Collector:
    """Runs FileTail.lines() on a thread and records what it yields."""

    def __init__(self, tail):
        self.tail = tail
        self.lines: list[str] = []
        self.error = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        try:
            for line in self.tail.lines():
                self.lines.append(line)
        except TailError as e:
            self.error = e

    def start(self):
        self.tail.open()
        self._thread.start()
        return self

    def join(self, timeout=2):
        self._thread.join(timeout)

    @property
    def alive(self):
        return self._thread.is_alive()


class TestOpen:
    def test_missing_file_raises(self, tmp_path):
        tail = FileTail(str(tmp_path / "nope.log"))
        with pytest.raises(TailError):
            tail.open()

    def test_event_mode_needs_notifier(self, tmp_path):
        with pytest.raises(ValueError):
            FileTail(str(tmp_path / "a.log"), poll=False)


class TestPollMode:
    def test_only_new_lines(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("existing line\n")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        _append(f, "new line 1\nnew line 2\n")
        assert wait_for(lambda: len(c.lines) >= 2)
        shutdown.set()
        c.join()

        assert c.lines == ["new line 1", "new line 2"]
        assert not c.alive

    def test_partial_line_held_until_newline(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        _append(f, "half a ")
        time.sleep(0.1)
        assert c.lines == []
        _append(f, "line\n")
        assert wait_for(lambda: c.lines == ["half a line"])
        shutdown.set()
        c.join()

    def test_multibyte_character_split_across_writes(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_bytes(b"")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        with open(f, "ab") as fh:
            fh.write(b"new \xc3")
        time.sleep(0.2)
        with open(f, "ab") as fh:
            fh.write(b"\xa9\n")
        assert wait_for(lambda: len(c.lines) >= 1)
        shutdown.set()
        c.join()
        assert c.lines == ["new é"]

    def test_invalid_utf8_replaced(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_bytes(b"")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        with open(f, "ab") as fh:
            fh.write(b"bad \xff byte\n")
        assert wait_for(lambda: len(c.lines) >= 1)
        shutdown.set()
        c.join()
        assert c.lines == ["bad � byte"]

    def test_blank_lines_kept(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        _append(f, "a\n\nb\n")
        assert wait_for(lambda: len(c.lines) >= 3)
        shutdown.set()
        c.join()
        assert c.lines == ["a", "", "b"]

    def test_truncation(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("original content that is long\n")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        _append(f, "before truncation\n")
        assert wait_for(lambda: "before truncation" in c.lines)
        with open(f, "w") as fh:
            fh.write("after\n")
        assert wait_for(lambda: "after" in c.lines)
        shutdown.set()
        c.join()

    def test_rotation(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02)).start()

        _append(f, "old 1\n")
        assert wait_for(lambda: "old 1" in c.lines)
        os.rename(f, tmp_path / "app.log.1")
        _append(tmp_path / "app.log.1", "old 2\n")
        f.write_text("new 1\n")

        assert wait_for(lambda: "new 1" in c.lines)
        shutdown.set()
        c.join()
        assert c.lines == ["old 1", "old 2", "new 1"]

    def test_removed_file_ends_stream(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        tail = FileTail(str(f), poll_interval=0.02, reopen_grace=0.1)
        c = _Collector(tail).start()

        os.remove(f)
        assert wait_for(lambda: not c.alive)
        assert c.error is None
        assert tail.stopped is False

    def test_removed_file_without_reopen(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        c = _Collector(FileTail(str(f), poll_interval=0.02, reopen=False)).start()
        os.remove(f)
        assert wait_for(lambda: not c.alive, timeout=1.0)

    def test_recreated_within_grace(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        shutdown = threading.Event()
        c = _Collector(FileTail(str(f), shutdown, poll_interval=0.02, reopen_grace=5.0)).start()

        os.remove(f)
        time.sleep(0.1)
        f.write_text("back again\n")
        assert wait_for(lambda: "back again" in c.lines)
        assert c.alive
        shutdown.set()
        c.join()

    def test_shutdown_responsiveness(self, tmp_path):
        f = tmp_path / "app.log"
        f.write_text("")
        shutdown = threading.Event()
        tail = FileTail(str(f), shutdown, poll_interval=0.05)
        c = _Collector(tail).start()

        time.sleep(0.1)
        shutdown.set()
        c.join(timeout=1)
        assert not c.alive
        assert tail.stopped is True


class TestEventMode:
    def test_wakes_on_change(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        notifier = ChangeNotifier()
        notifier.start()
        shutdown = threading.Event()
        try:
            c = _Collector(FileTail(str(f), shutdown, poll=False, notifier=notifier)).start()
            _append(f, "event line\n")
            assert wait_for(lambda: c.lines == ["event line"])
        finally:
            shutdown.set()
            notifier.stop()
        c.join()
        assert not c.alive

    def test_unsubscribes_on_end(self, tmp_path, wait_for):
        f = tmp_path / "app.log"
        f.write_text("")
        notifier = ChangeNotifier()
        notifier.start()
        try:
            tail = FileTail(str(f), poll=False, notifier=notifier, reopen=False, event_timeout=0.1)
            c = _Collector(tail).start()
            assert notifier.subscriber_count(str(f)) == 1
            os.remove(f)
            assert wait_for(lambda: not c.alive)
            assert notifier.subscriber_count(str(f)) == 0
        finally:
            notifier.stop()
