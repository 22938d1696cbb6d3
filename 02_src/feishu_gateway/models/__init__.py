"""Core data models for the gateway."""

from .bus import BusMessage, Topic
from .connection import AccountStatus, ConnectionState
from .dispatch import (
    ContextPayload,
    FetchedMessage,
    FragmentKind,
    ReplyFragment,
    SendResult,
)
from .events import (
    BotIdentity,
    ConversationKind,
    InboundEvent,
    Mention,
    MessageKind,
    NormalizationResult,
    ResultKind,
)
from .history import HistoryEntry
from .policy import AccountPolicy, DmPolicy, GroupConfig, GroupPolicy, RenderMode
from .tracing import TraceEvent

__all__ = [
    # Events
    "BotIdentity",
    "ConversationKind",
    "InboundEvent",
    "Mention",
    "MessageKind",
    "NormalizationResult",
    "ResultKind",
    # History
    "HistoryEntry",
    # Policy
    "AccountPolicy",
    "DmPolicy",
    "GroupConfig",
    "GroupPolicy",
    "RenderMode",
    # Connection
    "AccountStatus",
    "ConnectionState",
    # Dispatch
    "ContextPayload",
    "FetchedMessage",
    "FragmentKind",
    "ReplyFragment",
    "SendResult",
    # Bus
    "BusMessage",
    "Topic",
    # Tracing
    "TraceEvent",
]
