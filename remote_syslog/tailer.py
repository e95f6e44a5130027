"""FileTail: follow a file from its current end, surviving rotation and truncation."""

import logging
import os
import threading
import time
from typing import Iterator

from remote_syslog.notifier import ChangeNotifier

logger = logging.getLogger(__name__)


class TailError(Exception):
    """The file could not be opened or read."""


def _decode(raw: bytes) -> str:
    # Whole lines only: a multibyte character may arrive split over two writes.
    return raw.decode("utf-8", errors="replace")


class FileTail:
    """Yields lines appended to a file after it was opened.

    Handles:
    - Log rotation (inode change): finish the old file, reopen the new one
      from the start
    - File truncation (seek back to start)
    - File removal: wait ``reopen_grace`` seconds for it to come back, then
      end the stream

    In poll mode the file is checked every ``poll_interval`` seconds. In
    event mode a ``ChangeNotifier`` wakes the tail when the file changes,
    with ``event_timeout`` as a fallback.
    """

    def __init__(
        self,
        path: str,
        shutdown_event: threading.Event | None = None,
        poll: bool = True,
        poll_interval: float = 0.25,
        notifier: ChangeNotifier | None = None,
        reopen: bool = True,
        reopen_grace: float = 5.0,
        event_timeout: float = 1.0,
    ):
        if not poll and notifier is None:
            raise ValueError("event-driven tailing needs a ChangeNotifier")
        self._path = path
        self._shutdown = shutdown_event or threading.Event()
        self._poll = poll
        self._poll_interval = poll_interval
        self._notifier = notifier
        self._reopen = reopen
        self._reopen_grace = reopen_grace
        self._event_timeout = event_timeout
        self._file = None
        self._inode = None
        self._pending = b""
        self._changed: threading.Event | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def stopped(self) -> bool:
        return self._shutdown.is_set()

    def open(self):
        """Open the file positioned at its end. Raises TailError."""
        try:
            self._open_file(seek_end=True)
        except OSError as e:
            raise TailError(f"cannot open {self._path}: {e}") from e
        if not self._poll:
            try:
                self._changed = self._notifier.subscribe(self._path)
            except OSError as e:
                self._close_file()
                raise TailError(f"cannot watch {self._path}: {e}") from e

    def close(self):
        self._close_file()
        if self._changed is not None:
            self._notifier.unsubscribe(self._path, self._changed)
            self._changed = None

    def lines(self) -> Iterator[str]:
        """Yield new lines without their newline until the stream ends.

        The generator returns when the file is gone for good or shutdown is
        requested, and raises TailError on read failures.
        """
        if self._file is None:
            self.open()
        missing_since = None
        try:
            while not self.stopped:
                line = self._readline()
                if line is not None:
                    yield line
                    continue

                try:
                    stat = os.stat(self._path)
                except FileNotFoundError:
                    if not self._reopen:
                        logger.info("File %s was removed", self._path)
                        return
                    now = time.monotonic()
                    if missing_since is None:
                        missing_since = now
                        logger.info("File %s disappeared, waiting for it to reappear", self._path)
                    elif now - missing_since >= self._reopen_grace:
                        logger.info("File %s did not reappear within %.1fs", self._path, self._reopen_grace)
                        return
                    self._wait()
                    continue
                except OSError as e:
                    raise TailError(f"cannot stat {self._path}: {e}") from e
                missing_since = None

                if self._file is None or stat.st_ino != self._inode:
                    logger.info("File rotation detected for %s", self._path)
                    yield from self._drain()
                    self._close_file()
                    try:
                        self._open_file(seek_end=False)
                    except FileNotFoundError:
                        continue
                    except OSError as e:
                        raise TailError(f"cannot reopen {self._path}: {e}") from e
                    continue

                if stat.st_size < self._file.tell():
                    logger.info("File truncation detected for %s", self._path)
                    self._file.seek(0)
                    self._pending = b""
                    continue

                self._wait()
        finally:
            self.close()

    def _open_file(self, seek_end: bool = False):
        self._file = open(self._path, "rb")
        self._inode = os.fstat(self._file.fileno()).st_ino
        self._pending = b""
        if seek_end:
            self._file.seek(0, os.SEEK_END)
        logger.debug("Opened %s (inode=%d)", self._path, self._inode)

    def _close_file(self):
        if self._file:
            self._file.close()
            self._file = None

    def _readline(self) -> str | None:
        """Next complete line, or None at EOF. Partial lines are held back."""
        if self._file is None:
            return None
        try:
            chunk = self._file.readline()
        except (OSError, ValueError) as e:
            raise TailError(f"cannot read {self._path}: {e}") from e
        if not chunk:
            return None
        if not chunk.endswith(b"\n"):
            self._pending += chunk
            return None
        line = self._pending + chunk[:-1]
        self._pending = b""
        return _decode(line)

    def _drain(self) -> Iterator[str]:
        """Yield whatever is left in the current handle, including a trailing partial line."""
        while True:
            line = self._readline()
            if line is None:
                break
            yield line
        if self._pending:
            yield _decode(self._pending)
            self._pending = b""

    def _wait(self):
        if self._poll:
            self._shutdown.wait(self._poll_interval)
            return
        self._changed.wait(self._event_timeout)
        self._changed.clear()
