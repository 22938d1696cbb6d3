"""Inbound event data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ConversationKind(str, Enum):
    """Kind of conversation an event belongs to."""

    DIRECT = "direct"
    GROUP = "group"


class MessageKind(str, Enum):
    """Normalized message kinds."""

    TEXT = "text"
    POST = "post"
    IMAGE = "image"
    FILE = "file"
    AUDIO = "audio"
    VIDEO = "video"
    STICKER = "sticker"
    CARD = "card"
    SHARED_CHAT = "shared-chat"
    SHARED_USER = "shared-user"
    OTHER = "other"


@dataclass(frozen=True)
class Mention:
    """A participant referenced by a placeholder token in message text."""

    placeholder: str  # e.g. "@_user_1"
    target_id: str
    display_name: str


@dataclass(frozen=True)
class InboundEvent:
    """One chat message, independent of the transport that delivered it."""

    event_id: str
    conversation_id: str
    conversation_kind: ConversationKind
    sender_id: str
    message_kind: MessageKind
    raw_content: str
    created_at_ms: int
    text: str | None = None
    display_text: str | None = None  # placeholders replaced by @name
    mentions: tuple[Mention, ...] = ()
    parent_event_id: str | None = None
    root_event_id: str | None = None
    sender_open_id: str | None = None
    sender_user_id: str | None = None
    sender_union_id: str | None = None
    tenant_key: str | None = None
    # Media references
    image_key: str | None = None
    file_key: str | None = None
    file_name: str | None = None
    # Reply context, filled by ReplyContextResolver
    reply_to_id: str | None = None
    reply_to_body: str | None = None
    reply_to_sender_id: str | None = None

    @property
    def is_group(self) -> bool:
        return self.conversation_kind == ConversationKind.GROUP

    @property
    def body(self) -> str:
        """Best human-readable text for logs and context."""
        return self.display_text or self.text or ""


class ResultKind(str, Enum):
    """Outcome of normalizing one transport payload."""

    CHALLENGE = "challenge"
    INBOUND_EVENT = "inbound_event"
    MEMBERSHIP_ADDED = "membership_added"
    MEMBERSHIP_REMOVED = "membership_removed"
    UNRECOGNIZED = "unrecognized"
    MALFORMED = "malformed"


@dataclass
class NormalizationResult:
    """Result of EventNormalizer.normalize()."""

    kind: ResultKind
    event: InboundEvent | None = None
    challenge: str | None = None
    conversation_id: str | None = None  # membership events
    event_type: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BotIdentity:
    """The responder's own identity on the platform, used for mention checks."""

    open_id: str | None = None
    name: str | None = None

    @property
    def resolved(self) -> bool:
        return bool(self.open_id or self.name)
