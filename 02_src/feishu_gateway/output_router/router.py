"""OutputRouter implementation."""

from datetime import datetime, timezone

from ..event_bus import IEventBus
from ..interfaces import IMessageSender
from ..logging_config import get_logger
from ..models import AccountStatus, InboundEvent, ReplyFragment, SendResult, Topic
from ..render import RenderFormat, RenderPolicy
from ..tracker import ITracker

logger = get_logger(__name__)


def receive_id_type_for(conversation_id: str) -> str:
    """Direct sends address users by open_id, everything else by chat_id."""
    return "open_id" if conversation_id.startswith("ou_") else "chat_id"


class OutputRouter:
    """Renders reply fragments and hands them to the sender."""

    def __init__(
        self,
        sender: IMessageSender,
        render_policy: RenderPolicy,
        status: AccountStatus,
        event_bus: IEventBus | None = None,
        tracker: ITracker | None = None,
    ):
        self._sender = sender
        self._render_policy = render_policy
        self._status = status
        self._event_bus = event_bus
        self._tracker = tracker

    @property
    def account_id(self) -> str:
        return self._status.account_id

    async def deliver(
        self, event: InboundEvent, fragment: ReplyFragment
    ) -> SendResult | None:
        """
        Send one fragment in reply to `event`.

        Groups get a quote-reply to the triggering message; direct chats get
        a plain send to the conversation. Returns None for empty fragments.
        """
        text = fragment.text or ""
        if fragment.media_url:
            text = f"{text}\n\n{fragment.media_url}" if text.strip() else fragment.media_url
        if not text.strip():
            logger.debug("Skipping empty %s fragment", fragment.kind.value)
            return None

        rendered = self._render_policy.render(text)
        rich = rendered.format == RenderFormat.RICH

        try:
            if event.is_group:
                result = await self._sender.reply_to_message(
                    event.event_id,
                    text=None if rich else rendered.text,
                    card=rendered.card if rich else None,
                )
            else:
                receive_id_type = receive_id_type_for(event.conversation_id)
                if rich:
                    result = await self._sender.send_card(
                        event.conversation_id, rendered.card, receive_id_type
                    )
                else:
                    result = await self._sender.send_text(
                        event.conversation_id, rendered.text, receive_id_type
                    )
        except Exception as e:
            logger.error("Sender raised: %s", e, exc_info=True)
            result = SendResult(ok=False, error=str(e))

        await self._record(event, fragment, rendered.format, result)
        return result

    async def _record(
        self,
        event: InboundEvent,
        fragment: ReplyFragment,
        fmt: RenderFormat,
        result: SendResult,
    ) -> None:
        if result.ok:
            self._status.last_outbound_at = datetime.now(timezone.utc)
            logger.info(
                "Sent %s reply %s to %s",
                fmt.value, result.message_id, event.conversation_id,
                extra={"account_id": self.account_id},
            )
        else:
            self._status.last_error = f"send failed: {result.error}"
            logger.error(
                "Failed to send reply to %s: %s",
                event.conversation_id, result.error,
                extra={"account_id": self.account_id},
            )

        data = {
            "account_id": self.account_id,
            "conversation_id": event.conversation_id,
            "reply_to": event.event_id,
            "format": fmt.value,
            "fragment_kind": fragment.kind.value,
            "ok": result.ok,
            "message_id": result.message_id,
            "error": result.error,
        }
        if self._tracker:
            await self._tracker.track(
                "reply_sent" if result.ok else "reply_failed",
                "output_router",
                data,
                account_id=self.account_id,
            )
        if self._event_bus:
            await self._event_bus.emit(Topic.OUTBOUND, data, "output_router")
