"""ReplyContextResolver implementation."""

import asyncio
import dataclasses

from ..interfaces import IMessageFetcher
from ..logging_config import get_logger
from ..models import InboundEvent

logger = get_logger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0


class ReplyContextResolver:
    """Attaches the parent message to threaded replies, best effort."""

    def __init__(
        self,
        fetcher: IMessageFetcher,
        timeout: float | None = DEFAULT_FETCH_TIMEOUT,
    ):
        self._fetcher = fetcher
        self._timeout = timeout

    async def resolve(self, event: InboundEvent) -> InboundEvent:
        """Return the event enriched with parent text/sender, or unchanged."""
        if not event.parent_event_id:
            return event

        try:
            result = await asyncio.wait_for(
                self._fetcher.get_message_by_id(event.parent_event_id),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "Failed to fetch parent message %s: %s", event.parent_event_id, e
            )
            return event

        if not result.ok or result.text is None:
            logger.warning(
                "Parent message %s unavailable: %s",
                event.parent_event_id,
                result.error or "empty body",
            )
            return event

        return dataclasses.replace(
            event,
            reply_to_id=event.parent_event_id,
            reply_to_body=result.text,
            reply_to_sender_id=result.sender_id,
        )
