"""EventNormalizer implementation."""

import json
from typing import Any

from ..config import AccountConfig
from ..logging_config import get_logger
from ..models import (
    ConversationKind,
    InboundEvent,
    MessageKind,
    NormalizationResult,
    ResultKind,
)
from .content import (
    MESSAGE_KINDS,
    extract_content,
    parse_mentions,
    replace_mention_placeholders,
    resolve_platform_id,
)

logger = get_logger(__name__)

EVENT_MESSAGE_RECEIVE = "im.message.receive_v1"
EVENT_BOT_ADDED = "im.chat.member.bot.added_v1"
EVENT_BOT_REMOVED = "im.chat.member.bot.deleted_v1"


class EventNormalizer:
    """Turns stream frames and webhook bodies into one canonical shape."""

    def normalize(self, payload: Any, account: AccountConfig) -> NormalizationResult:
        """
        Classify a transport payload and, for messages, build an InboundEvent.

        Args:
            payload: Decoded dict, or a JSON str/bytes body
            account: Account the payload was delivered to

        Returns:
            NormalizationResult; never raises
        """
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                return NormalizationResult(
                    kind=ResultKind.MALFORMED, error=f"undecodable payload: {e}"
                )

        if not isinstance(payload, dict):
            return NormalizationResult(
                kind=ResultKind.MALFORMED, error="payload is not an object"
            )

        try:
            if payload.get("type") == "url_verification":
                return self._handle_challenge(payload, account)

            if "encrypt" in payload:
                return NormalizationResult(
                    kind=ResultKind.MALFORMED,
                    error="encrypted payloads are not supported",
                    raw=payload,
                )

            if "schema" in payload and isinstance(payload.get("header"), dict):
                return self._handle_callback(payload)

            return NormalizationResult(kind=ResultKind.UNRECOGNIZED, raw=payload)

        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed event payload: %s", e)
            return NormalizationResult(
                kind=ResultKind.MALFORMED, error=str(e), raw=payload
            )

    def _handle_challenge(
        self, payload: dict[str, Any], account: AccountConfig
    ) -> NormalizationResult:
        if (
            account.verification_token
            and payload.get("token") != account.verification_token
        ):
            return NormalizationResult(
                kind=ResultKind.MALFORMED,
                error="invalid verification token",
            )
        return NormalizationResult(
            kind=ResultKind.CHALLENGE, challenge=str(payload.get("challenge", ""))
        )

    def _handle_callback(self, payload: dict[str, Any]) -> NormalizationResult:
        event_type = payload["header"].get("event_type")
        body = payload.get("event") or {}

        if event_type == EVENT_MESSAGE_RECEIVE:
            return NormalizationResult(
                kind=ResultKind.INBOUND_EVENT,
                event=self._build_event(body),
                event_type=event_type,
            )

        if event_type in (EVENT_BOT_ADDED, EVENT_BOT_REMOVED):
            kind = (
                ResultKind.MEMBERSHIP_ADDED
                if event_type == EVENT_BOT_ADDED
                else ResultKind.MEMBERSHIP_REMOVED
            )
            return NormalizationResult(
                kind=kind,
                conversation_id=body.get("chat_id"),
                event_type=event_type,
            )

        return NormalizationResult(
            kind=ResultKind.UNRECOGNIZED, event_type=event_type, raw=payload
        )

    def _build_event(self, body: dict[str, Any]) -> InboundEvent:
        message = body["message"]
        sender = body.get("sender") or {}
        sender_ids = sender.get("sender_id") or {}

        event_id = message.get("message_id")
        if not event_id:
            raise ValueError("message_id missing")

        raw_content = message.get("content") or ""
        message_type = message.get("message_type") or "text"
        extracted = extract_content(message_type, raw_content)
        mentions = parse_mentions(message.get("mentions"))

        try:
            created_at_ms = int(message.get("create_time") or 0)
        except (TypeError, ValueError):
            created_at_ms = 0

        return InboundEvent(
            event_id=event_id,
            conversation_id=message.get("chat_id") or "",
            conversation_kind=(
                ConversationKind.DIRECT
                if message.get("chat_type", "p2p") == "p2p"
                else ConversationKind.GROUP
            ),
            sender_id=resolve_platform_id(sender_ids),
            message_kind=MESSAGE_KINDS.get(message_type, MessageKind.OTHER),
            raw_content=raw_content,
            created_at_ms=created_at_ms,
            text=extracted.text,
            display_text=replace_mention_placeholders(extracted.text, mentions),
            mentions=mentions,
            parent_event_id=message.get("parent_id") or None,
            root_event_id=message.get("root_id") or None,
            sender_open_id=sender_ids.get("open_id"),
            sender_user_id=sender_ids.get("user_id"),
            sender_union_id=sender_ids.get("union_id"),
            tenant_key=sender.get("tenant_key"),
            image_key=extracted.image_key,
            file_key=extracted.file_key,
            file_name=extracted.file_name,
        )
