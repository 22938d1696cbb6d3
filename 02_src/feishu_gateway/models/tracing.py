"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single pipeline observation kept for the operator API."""

    id: str
    event_type: str  # e.g. "event_gated", "reply_sent"
    actor: str  # component that produced it
    data: dict  # self-contained data for display
    timestamp: datetime
    account_id: str | None = None
