"""HistoryBuffer implementation."""

import threading
from collections import OrderedDict, deque

from ..models import HistoryEntry

DEFAULT_GROUP_HISTORY_LIMIT = 10
DEFAULT_MAX_GROUPS = 100


class HistoryBuffer:
    """
    Pending unaddressed messages per group conversation.

    Entries accumulate while the responder is not addressed and are handed
    over as context once it is; the orchestrator then clears them. Each
    conversation keeps at most history_limit entries (oldest dropped first),
    and at most max_groups conversations are tracked. record() marks a
    conversation as most recent; get() and clear() do not.
    """

    def __init__(
        self,
        history_limit: int = DEFAULT_GROUP_HISTORY_LIMIT,
        max_groups: int = DEFAULT_MAX_GROUPS,
    ):
        self._history_limit = history_limit
        self._max_groups = max_groups
        self._histories: OrderedDict[str, deque[HistoryEntry]] = OrderedDict()
        self._lock = threading.Lock()

    def record(self, conversation_id: str, entry: HistoryEntry) -> None:
        """Append an entry and refresh the conversation's recency."""
        with self._lock:
            history = self._histories.get(conversation_id)
            if history is None:
                history = deque(maxlen=self._history_limit)
                self._histories[conversation_id] = history
            history.append(entry)
            self._histories.move_to_end(conversation_id)
            self._evict()

    def _evict(self) -> None:
        while len(self._histories) > self._max_groups:
            self._histories.popitem(last=False)

    def get(self, conversation_id: str) -> list[HistoryEntry]:
        """Get a copy of pending entries, oldest first."""
        with self._lock:
            return list(self._histories.get(conversation_id, ()))

    def clear(self, conversation_id: str) -> None:
        """
        Empty a conversation's entries, keeping it tracked.

        An unknown conversation becomes tracked (as most recent) with no
        entries; a known one keeps its position.
        """
        with self._lock:
            history = self._histories.get(conversation_id)
            if history is not None:
                history.clear()
                return

            self._histories[conversation_id] = deque(maxlen=self._history_limit)
            self._evict()

    def forget(self, conversation_id: str) -> None:
        """Stop tracking a conversation entirely."""
        with self._lock:
            self._histories.pop(conversation_id, None)

    def group_count(self) -> int:
        """Number of tracked conversations."""
        with self._lock:
            return len(self._histories)

    def clear_all(self) -> None:
        """Drop all conversations."""
        with self._lock:
            self._histories.clear()
