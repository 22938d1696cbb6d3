"""Group history data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HistoryEntry:
    """A group message that was not addressed to the responder."""

    sender_id: str
    body: str
    timestamp_ms: int = 0
    event_id: str | None = None
