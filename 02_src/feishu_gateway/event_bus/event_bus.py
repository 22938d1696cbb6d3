"""EventBus implementation for in-process pub/sub."""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..logging_config import get_logger
from ..models import BusMessage, Topic

logger = get_logger(__name__)


TopicHandler = Callable[[BusMessage], Awaitable[None]]


class IEventBus(Protocol):
    """In-memory pub/sub for exchanging BusMessages."""

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Subscribe a handler to a topic."""
        ...

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        """Remove a handler from a topic."""
        ...

    async def publish(self, message: BusMessage) -> None:
        """Publish BusMessage to every subscriber of its topic."""
        ...


class EventBus:
    """In-memory pub/sub event bus. Nothing is persisted."""

    def __init__(self):
        self._subscribers: dict[Topic, list[TopicHandler]] = {
            topic: [] for topic in Topic
        }

    def subscribe(self, topic: Topic, handler: TopicHandler) -> None:
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: Topic, handler: TopicHandler) -> None:
        if handler in self._subscribers[topic]:
            self._subscribers[topic].remove(handler)

    async def publish(self, message: BusMessage) -> None:
        """Call every subscriber concurrently; handler errors are logged only."""
        if not message.id:
            message.id = str(uuid.uuid4())

        handlers = list(self._subscribers.get(message.topic, []))
        if not handlers:
            return

        results = await asyncio.gather(
            *[handler(message) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Error in %s handler %s: %s",
                    message.topic.value,
                    getattr(handler, "__qualname__", handler),
                    result,
                    exc_info=result,
                )

    async def emit(self, topic: Topic, payload: dict, source: str) -> None:
        """Build a BusMessage and publish it."""
        await self.publish(
            BusMessage(
                id=str(uuid.uuid4()),
                topic=topic,
                payload=payload,
                source=source,
                timestamp=datetime.now(timezone.utc),
            )
        )
