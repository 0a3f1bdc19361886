"""Set of start URLs currently being indexed."""

from __future__ import annotations

import threading


class IndexingQueue:
    """Per-URL indexing slots.

    ``try_acquire()`` checks and claims a slot in one step, so two callers can
    never both believe they own the same URL.
    """

    def __init__(self) -> None:
        self._urls: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, start_url: str) -> bool:
        """Claim *start_url*; return False if it is already being indexed."""
        with self._lock:
            if start_url in self._urls:
                return False
            self._urls.add(start_url)
            return True

    def release(self, start_url: str) -> None:
        """Free the slot for *start_url* (no-op if not held)."""
        with self._lock:
            self._urls.discard(start_url)

    def __contains__(self, start_url: object) -> bool:
        with self._lock:
            return start_url in self._urls
