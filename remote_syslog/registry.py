"""Worker registry: the set of file paths that currently have a live tailer."""

import threading


class WorkerRegistry:
    """Thread-safe set of tailed paths.

    A path is present iff exactly one tail worker is running for it. The
    scanner thread adds entries and every worker removes its own on exit,
    so all access goes through one lock held only for the set operation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._paths: set[str] = set()

    def add(self, path: str):
        with self._lock:
            self._paths.add(path)

    def try_add(self, path: str) -> bool:
        """Add *path* unless present. Returns True if this call added it."""
        with self._lock:
            if path in self._paths:
                return False
            self._paths.add(path)
            return True

    def remove(self, path: str):
        """Forget *path*. Removing an absent path is a no-op."""
        with self._lock:
            self._paths.discard(path)

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._paths

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._paths)

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
