"""Protocols for the collaborators the pipeline consumes."""

from typing import Any, Awaitable, Callable, Protocol

from .models import (
    BotIdentity,
    ContextPayload,
    FetchedMessage,
    ReplyFragment,
    SendResult,
)

DeliverCallback = Callable[[ReplyFragment], Awaitable[SendResult | None]]


class ITokenProvider(Protocol):
    """Access token source for one or more accounts."""

    async def get_access_token(self, account_id: str) -> str:
        """Return a valid token, refreshing if needed."""
        ...

    def invalidate(self, account_id: str) -> None:
        """Drop any cached token."""
        ...


class IMessageSender(Protocol):
    """Outbound message API."""

    async def send_text(
        self, receive_id: str, text: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        ...

    async def send_card(
        self, receive_id: str, card: dict[str, Any], receive_id_type: str = "chat_id"
    ) -> SendResult:
        ...

    async def send_image(
        self, receive_id: str, image_key: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        ...

    async def send_file(
        self, receive_id: str, file_key: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        ...

    async def reply_to_message(
        self,
        message_id: str,
        text: str | None = None,
        card: dict[str, Any] | None = None,
    ) -> SendResult:
        """Quote-reply with either text or a card."""
        ...


class IMessageFetcher(Protocol):
    """Message lookup API."""

    async def get_message_by_id(self, message_id: str) -> FetchedMessage:
        ...


class IIdentityProvider(Protocol):
    """Resolves the responder's own identity."""

    async def get_bot_identity(self) -> BotIdentity:
        ...


class IResponder(Protocol):
    """Turns a gated event into zero or more reply fragments."""

    async def respond(self, payload: ContextPayload, deliver: DeliverCallback) -> None:
        """Produce replies by awaiting deliver(fragment) for each one."""
        ...


class ISignatureVerifier(Protocol):
    """Webhook request authenticity check."""

    def verify(self, timestamp: str, nonce: str, body: bytes, signature: str) -> bool:
        ...


class AllowAllVerifier:
    """Accepts every request. Used until real verification is configured."""

    def verify(self, timestamp: str, nonce: str, body: bytes, signature: str) -> bool:
        return True
