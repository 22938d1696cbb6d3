"""Event normalization module."""

from .content import replace_mention_placeholders, strip_mentions
from .normalizer import (
    EVENT_BOT_ADDED,
    EVENT_BOT_REMOVED,
    EVENT_MESSAGE_RECEIVE,
    EventNormalizer,
)

__all__ = [
    "EVENT_BOT_ADDED",
    "EVENT_BOT_REMOVED",
    "EVENT_MESSAGE_RECEIVE",
    "EventNormalizer",
    "replace_mention_placeholders",
    "strip_mentions",
]
