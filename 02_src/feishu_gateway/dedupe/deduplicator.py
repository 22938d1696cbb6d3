"""Deduplicator implementation."""

import threading
from typing import Protocol

DEFAULT_DEDUPE_MAX_SIZE = 1000
DEFAULT_DEDUPE_CLEANUP_THRESHOLD = 800


class IDeduplicator(Protocol):
    """Bounded cache of recently seen event ids."""

    def is_processed(self, event_id: str) -> bool:
        """Check membership without side effects."""
        ...

    def mark_processed(self, event_id: str) -> None:
        """Remember an id, evicting the oldest ids when full."""
        ...

    def check_and_mark(self, event_id: str) -> bool:
        """Atomically mark an id. Return True only on first sighting."""
        ...

    def size(self) -> int:
        """Number of ids currently remembered."""
        ...

    def clear(self) -> None:
        """Forget all ids."""
        ...


class Deduplicator:
    """
    Insertion-ordered set of processed event ids.

    Eviction is FIFO by insertion, not by access: is_processed() never
    refreshes an id. When the cache reaches max_size, the oldest ids are
    dropped down to cleanup_threshold before the new id is added.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_DEDUPE_MAX_SIZE,
        cleanup_threshold: int = DEFAULT_DEDUPE_CLEANUP_THRESHOLD,
    ):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._max_size = max_size
        self._cleanup_threshold = min(max(cleanup_threshold, 0), max_size - 1)
        # dict keeps insertion order; values unused
        self._seen: dict[str, None] = {}
        self._lock = threading.Lock()

    def is_processed(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._seen

    def mark_processed(self, event_id: str) -> None:
        with self._lock:
            self._mark(event_id)

    def check_and_mark(self, event_id: str) -> bool:
        with self._lock:
            if event_id in self._seen:
                return False
            self._mark(event_id)
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._seen)

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()

    def _mark(self, event_id: str) -> None:
        if event_id in self._seen:
            return

        if len(self._seen) >= self._max_size:
            to_delete = len(self._seen) - self._cleanup_threshold
            for old_id in list(self._seen)[:to_delete]:
                del self._seen[old_id]

        self._seen[event_id] = None
