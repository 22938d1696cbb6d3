"""Tracker implementation for recording TraceEvents."""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import IEventBus
from ..models import BusMessage, Topic, TraceEvent

DEFAULT_MAX_EVENTS = 5000


class ITracker(Protocol):
    """Records TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(
        self,
        event_type: str,
        actor: str,
        data: dict,
        account_id: str | None = None,
    ) -> None:
        """Create a TraceEvent."""
        ...


class Tracker:
    """Keeps a bounded in-memory ring of TraceEvents for the operator API."""

    def __init__(self, event_bus: IEventBus, max_events: int = DEFAULT_MAX_EVENTS):
        self._event_bus = event_bus
        self._events: deque[TraceEvent] = deque(maxlen=max_events)

    async def start(self) -> None:
        """Subscribe to all EventBus topics."""
        for topic in Topic:
            self._event_bus.subscribe(topic, self._handle_bus_message)

    async def stop(self) -> None:
        for topic in Topic:
            self._event_bus.unsubscribe(topic, self._handle_bus_message)

    async def _handle_bus_message(self, bus_message: BusMessage) -> None:
        payload = bus_message.payload
        await self.track(
            event_type=f"{bus_message.topic.value}_published",
            actor=bus_message.source,
            data={
                "topic": bus_message.topic.value,
                "payload_summary": str(payload)[:100],
            },
            account_id=payload.get("account_id"),
        )

    async def track(
        self,
        event_type: str,
        actor: str,
        data: dict,
        account_id: str | None = None,
    ) -> None:
        self._events.append(
            TraceEvent(
                id=str(uuid.uuid4()),
                event_type=event_type,
                actor=actor,
                data=data,
                timestamp=datetime.now(timezone.utc),
                account_id=account_id,
            )
        )

    def get_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        account_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Filtered events, oldest first, at most `limit`."""
        result = []
        for event in self._events:
            if after is not None and event.timestamp <= after:
                continue
            if event_types and event.event_type not in event_types:
                continue
            if actor is not None and event.actor != actor:
                continue
            if account_id is not None and event.account_id != account_id:
                continue
            result.append(event)
            if len(result) >= limit:
                break
        return result

    def clear(self) -> None:
        self._events.clear()
