"""EventBus data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics."""

    INBOUND = "inbound"  # events accepted, gated or dropped
    OUTBOUND = "outbound"  # replies sent or failed
    STATUS = "status"  # account status transitions


@dataclass
class BusMessage:
    """A message exchanged through EventBus."""

    id: str
    topic: Topic
    payload: dict  # varies by topic
    source: str  # component that published
    timestamp: datetime
