"""httpx client for the messaging platform's REST API."""

import asyncio
import json
import time
import uuid
from typing import Any

import httpx

from ..config import AccountConfig
from ..errors import ConfigurationError, GatewayError, HandshakeError, PlatformAPIError
from ..logging_config import get_logger
from ..models import BotIdentity, FetchedMessage, SendResult
from ..normalizer.content import extract_content

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
TOKEN_REFRESH_BUFFER = 300.0  # seconds before expiry
TOKEN_EXPIRED_CODES = frozenset({99991663, 99991664})


class PlatformClient:
    """
    REST calls for one account.

    Implements ITokenProvider, IMessageSender, IMessageFetcher and
    IIdentityProvider, plus the stream endpoint lookup used by
    WebSocketConnector.
    """

    def __init__(
        self,
        account: AccountConfig,
        http: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._account = account
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._tokens: dict[str, tuple[str, float]] = {}
        self._token_lock = asyncio.Lock()
        self._identity: BotIdentity | None = None

    @property
    def account_id(self) -> str:
        return self._account.account_id

    def _url(self, path: str) -> str:
        return f"{self._account.api_base}{path}"

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # ---- tokens ----------------------------------------------------------

    async def get_access_token(self, account_id: str | None = None) -> str:
        """Tenant access token, cached until shortly before it expires."""
        key = account_id or self.account_id
        async with self._token_lock:
            cached = self._tokens.get(key)
            if cached and time.monotonic() < cached[1] - TOKEN_REFRESH_BUFFER:
                return cached[0]

            token, expire = await self._fetch_token()
            self._tokens[key] = (token, time.monotonic() + expire)
            return token

    def invalidate(self, account_id: str | None = None) -> None:
        self._tokens.pop(account_id or self.account_id, None)

    async def _fetch_token(self) -> tuple[str, float]:
        if not self._account.configured:
            raise ConfigurationError(
                f"Account {self.account_id} has no appId/appSecret"
            )

        response = await self._http.post(
            self._url("/auth/v3/tenant_access_token/internal"),
            json={
                "app_id": self._account.app_id,
                "app_secret": self._account.app_secret,
            },
        )
        if response.status_code >= 400:
            raise PlatformAPIError(
                f"Token request failed: HTTP {response.status_code}"
            )

        data = response.json()
        if data.get("code") != 0:
            raise PlatformAPIError(
                f"Token request failed: {data.get('code')} - {data.get('msg')}",
                code=data.get("code"),
            )
        token = data.get("tenant_access_token")
        expire = data.get("expire")
        if not token or not expire:
            raise PlatformAPIError("Invalid token response")
        return token, float(expire)

    # ---- requests --------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        retry_on_auth_error: bool = True,
    ) -> dict[str, Any]:
        token = await self.get_access_token()
        response = await self._http.request(
            method,
            self._url(path),
            json=body,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        try:
            data = response.json()
        except ValueError as e:
            raise PlatformAPIError(
                f"Non-JSON response from {path}: HTTP {response.status_code}"
            ) from e

        if data.get("code") in TOKEN_EXPIRED_CODES and retry_on_auth_error:
            logger.info("Access token expired, refreshing")
            self.invalidate()
            return await self._request(method, path, body, params, False)

        return data

    async def _send(
        self,
        receive_id: str,
        msg_type: str,
        content: dict[str, Any],
        receive_id_type: str = "chat_id",
        reply_to_id: str | None = None,
    ) -> SendResult:
        body = {
            "receive_id": receive_id,
            "msg_type": msg_type,
            "content": json.dumps(content, ensure_ascii=False),
            "uuid": str(uuid.uuid4()),
        }
        if reply_to_id:
            path, params = f"/im/v1/messages/{reply_to_id}/reply", None
        else:
            path, params = "/im/v1/messages", {"receive_id_type": receive_id_type}

        try:
            data = await self._request("POST", path, body, params)
        except (httpx.HTTPError, GatewayError) as e:
            return SendResult(ok=False, error=str(e))

        if data.get("code") != 0:
            return SendResult(
                ok=False,
                error=f"API error: {data.get('code')} - {data.get('msg')}",
            )
        return SendResult(ok=True, message_id=(data.get("data") or {}).get("message_id"))

    # ---- IMessageSender --------------------------------------------------

    async def send_text(
        self, receive_id: str, text: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        return await self._send(receive_id, "text", {"text": text}, receive_id_type)

    async def send_card(
        self, receive_id: str, card: dict[str, Any], receive_id_type: str = "chat_id"
    ) -> SendResult:
        return await self._send(receive_id, "interactive", card, receive_id_type)

    async def send_image(
        self, receive_id: str, image_key: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        return await self._send(
            receive_id, "image", {"image_key": image_key}, receive_id_type
        )

    async def send_file(
        self, receive_id: str, file_key: str, receive_id_type: str = "chat_id"
    ) -> SendResult:
        return await self._send(
            receive_id, "file", {"file_key": file_key}, receive_id_type
        )

    async def reply_to_message(
        self,
        message_id: str,
        text: str | None = None,
        card: dict[str, Any] | None = None,
    ) -> SendResult:
        if card is not None:
            return await self._send(message_id, "interactive", card, reply_to_id=message_id)
        return await self._send(
            message_id, "text", {"text": text or ""}, reply_to_id=message_id
        )

    # ---- IMessageFetcher -------------------------------------------------

    async def get_message_by_id(self, message_id: str) -> FetchedMessage:
        try:
            data = await self._request("GET", f"/im/v1/messages/{message_id}")
        except (httpx.HTTPError, GatewayError) as e:
            return FetchedMessage(ok=False, error=str(e))

        if data.get("code") != 0:
            return FetchedMessage(
                ok=False,
                error=f"Failed to get message: {data.get('code')} - {data.get('msg')}",
            )

        items = (data.get("data") or {}).get("items") or []
        if not items:
            return FetchedMessage(ok=False, error="Message not found")

        message = items[0]
        content = (message.get("body") or {}).get("content") or ""
        extracted = extract_content(message.get("msg_type") or "text", content)
        return FetchedMessage(
            ok=True,
            sender_id=(message.get("sender") or {}).get("id"),
            text=extracted.text,
        )

    # ---- IIdentityProvider -----------------------------------------------

    async def get_bot_identity(self) -> BotIdentity:
        """Own identity; an unresolved identity is returned, never raised."""
        if self._identity is not None:
            return self._identity

        try:
            data = await self._request("GET", "/bot/v3/info")
        except (httpx.HTTPError, GatewayError) as e:
            logger.warning("Cannot resolve bot identity: %s", e)
            return BotIdentity()

        info = data.get("bot") or data.get("data") or {}
        if data.get("code") != 0 or not info.get("open_id"):
            logger.warning(
                "Cannot resolve bot identity: %s - %s", data.get("code"), data.get("msg")
            )
            return BotIdentity()

        self._identity = BotIdentity(
            open_id=info["open_id"], name=info.get("app_name")
        )
        return self._identity

    async def check_credentials(self) -> BotIdentity:
        """
        Verify credentials and look up the bot identity.

        Raises:
            GatewayError: credentials missing or rejected, or the API unreachable

        Returns:
            The bot identity; unresolved when only the identity lookup failed
        """
        try:
            await self.get_access_token()
        except httpx.HTTPError as e:
            raise PlatformAPIError(f"Token request failed: {e}") from e
        return await self.get_bot_identity()

    # ---- stream endpoint -------------------------------------------------

    async def get_ws_endpoint(self) -> str:
        """URL for the streaming connection."""
        try:
            data = await self._request("POST", "/callback/ws/endpoint", body={})
        except (httpx.HTTPError, GatewayError) as e:
            raise HandshakeError(f"Endpoint lookup failed: {e}") from e

        url = (data.get("data") or {}).get("url") or (data.get("data") or {}).get("URL")
        if data.get("code") != 0 or not url:
            raise HandshakeError(
                f"Endpoint lookup failed: {data.get('code')} - {data.get('msg')}"
            )
        return url
