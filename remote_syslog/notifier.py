"""ChangeNotifier: watchdog handler that wakes event-driven tails."""

import logging
import os
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class ChangeNotifier(FileSystemEventHandler):
    """Maps filesystem events to per-path ``threading.Event`` flags.

    Each tailed file subscribes once; the parent directory is scheduled on
    the observer while at least one of its files has a subscriber.
    """

    def __init__(self, observer=None):
        super().__init__()
        self._observer = observer or Observer()
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[threading.Event]] = {}
        self._watches: dict[str, list] = {}  # dir -> [watch, refcount]
        self._stopped = False

    def start(self):
        self._observer.start()

    def stop(self):
        """Stop the observer and wake every subscriber."""
        with self._lock:
            self._stopped = True
            events = [ev for evs in self._subscribers.values() for ev in evs]
        for ev in events:
            ev.set()
        self._observer.stop()
        self._observer.join(timeout=5)

    def subscribe(self, path: str) -> threading.Event:
        """Return an event set whenever *path* is created, changed or moved."""
        abs_path = os.path.abspath(path)
        directory = os.path.dirname(abs_path)
        changed = threading.Event()
        with self._lock:
            if self._stopped:
                changed.set()
                return changed
            entry = self._watches.get(directory)
            if entry is None:
                watch = self._observer.schedule(self, directory, recursive=False)
                self._watches[directory] = [watch, 1]
                logger.debug("Watching directory %s", directory)
            else:
                entry[1] += 1
            self._subscribers.setdefault(abs_path, []).append(changed)
        return changed

    def unsubscribe(self, path: str, changed: threading.Event):
        abs_path = os.path.abspath(path)
        directory = os.path.dirname(abs_path)
        with self._lock:
            events = self._subscribers.get(abs_path, [])
            if changed not in events:
                return
            events.remove(changed)
            if not events:
                del self._subscribers[abs_path]
            entry = self._watches.get(directory)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                del self._watches[directory]
                if not self._stopped:
                    try:
                        self._observer.unschedule(entry[0])
                    except KeyError:
                        pass
                logger.debug("Stopped watching directory %s", directory)

    def subscriber_count(self, path: str) -> int:
        with self._lock:
            return len(self._subscribers.get(os.path.abspath(path), ()))

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = {event.src_path, getattr(event, "dest_path", "")}
        with self._lock:
            for p in paths:
                if not p:
                    continue
                if isinstance(p, bytes):
                    p = os.fsdecode(p)
                for changed in self._subscribers.get(os.path.abspath(p), ()):
                    changed.set()
