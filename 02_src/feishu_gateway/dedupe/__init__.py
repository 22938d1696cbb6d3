"""Deduplication module."""

from .deduplicator import (
    DEFAULT_DEDUPE_CLEANUP_THRESHOLD,
    DEFAULT_DEDUPE_MAX_SIZE,
    Deduplicator,
    IDeduplicator,
)

__all__ = [
    "DEFAULT_DEDUPE_CLEANUP_THRESHOLD",
    "DEFAULT_DEDUPE_MAX_SIZE",
    "Deduplicator",
    "IDeduplicator",
]
