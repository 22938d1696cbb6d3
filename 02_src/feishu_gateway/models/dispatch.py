"""Models exchanged with the responder and the platform API."""

from dataclasses import dataclass, field
from enum import Enum

from .events import ConversationKind


@dataclass
class ContextPayload:
    """Everything the responder gets for one gated event."""

    account_id: str
    conversation_id: str
    conversation_kind: ConversationKind
    sender_id: str
    event_id: str
    body: str  # history block + message + reply block
    raw_body: str
    command_body: str  # mention placeholders stripped
    timestamp_ms: int
    was_mentioned: bool = False
    reply_to_id: str | None = None
    reply_to_body: str | None = None
    reply_to_sender_id: str | None = None
    image_key: str | None = None
    file_key: str | None = None
    file_name: str | None = None
    history: list[dict] = field(default_factory=list)


class FragmentKind(str, Enum):
    """Reply fragment kinds produced by the responder."""

    INTERIM = "interim"
    FINAL = "final"


@dataclass
class ReplyFragment:
    """One piece of responder output."""

    text: str
    kind: FragmentKind = FragmentKind.FINAL
    media_url: str | None = None


@dataclass
class SendResult:
    """Outcome of a send/reply call."""

    ok: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class FetchedMessage:
    """A message looked up by id."""

    ok: bool
    sender_id: str | None = None
    text: str | None = None
    error: str | None = None
