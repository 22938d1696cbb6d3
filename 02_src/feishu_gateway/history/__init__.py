"""Group history module."""

from .buffer import DEFAULT_GROUP_HISTORY_LIMIT, DEFAULT_MAX_GROUPS, HistoryBuffer

__all__ = ["DEFAULT_GROUP_HISTORY_LIMIT", "DEFAULT_MAX_GROUPS", "HistoryBuffer"]
