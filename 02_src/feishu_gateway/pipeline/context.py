"""Builds the ContextPayload handed to the responder."""

from ..models import ContextPayload, HistoryEntry, InboundEvent
from ..normalizer.content import strip_mentions

HISTORY_OPEN = "[Recent conversation context]"
HISTORY_CLOSE = "[/Recent conversation context]"


def sender_label(event: InboundEvent) -> str:
    return event.sender_open_id or event.sender_id


def build_history_entry(event: InboundEvent) -> HistoryEntry:
    return HistoryEntry(
        sender_id=sender_label(event),
        body=event.body,
        timestamp_ms=event.created_at_ms,
        event_id=event.event_id,
    )


def format_history_block(entries: list[HistoryEntry], message: str) -> str:
    """Prefix message with pending group chatter, if any."""
    if not entries:
        return message
    lines = "\n".join(f"[{entry.sender_id}]: {entry.body}" for entry in entries)
    return f"{HISTORY_OPEN}\n{lines}\n{HISTORY_CLOSE}\n\n{message}"


def format_reply_block(event: InboundEvent) -> str:
    if not event.reply_to_body:
        return ""
    sender = event.reply_to_sender_id or "unknown"
    return f"\n\n[Replying to {sender}]\n{event.reply_to_body}\n[/Replying]"


def build_context_payload(
    account_id: str,
    event: InboundEvent,
    history: list[HistoryEntry],
    was_mentioned: bool = False,
) -> ContextPayload:
    raw_body = event.body
    if event.is_group:
        command_body = strip_mentions(event.text or "", event.mentions)
    else:
        command_body = raw_body

    body = command_body + format_reply_block(event)
    if event.is_group:
        body = format_history_block(history, body)

    return ContextPayload(
        account_id=account_id,
        conversation_id=event.conversation_id,
        conversation_kind=event.conversation_kind,
        sender_id=sender_label(event),
        event_id=event.event_id,
        body=body,
        raw_body=raw_body,
        command_body=command_body,
        timestamp_ms=event.created_at_ms,
        was_mentioned=was_mentioned,
        reply_to_id=event.reply_to_id,
        reply_to_body=event.reply_to_body,
        reply_to_sender_id=event.reply_to_sender_id,
        image_key=event.image_key,
        file_key=event.file_key,
        file_name=event.file_name,
        history=[
            {"sender_id": e.sender_id, "body": e.body, "timestamp_ms": e.timestamp_ms}
            for e in history
        ],
    )
