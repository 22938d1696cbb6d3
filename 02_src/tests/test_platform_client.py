"""Tests for PlatformClient against a mocked platform API."""

import json

import httpx
import pytest

from feishu_gateway.config import AccountConfig
from feishu_gateway.errors import ConfigurationError, HandshakeError, PlatformAPIError
from feishu_gateway.platform_api import PlatformClient

from conftest import FakePlatform


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def client(account, platform):
    return platform.client_factory(account)


class TestTokens:
    """Tests for access token handling."""

    @pytest.mark.asyncio
    async def test_token_cached(self, client, platform):
        """Test the token is fetched once and reused."""
        assert await client.get_access_token() == "t-1"
        assert await client.get_access_token() == "t-1"
        assert platform.token_calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_refetches(self, client, platform):
        """Test invalidate forces a new token."""
        await client.get_access_token()
        client.invalidate()
        assert await client.get_access_token() == "t-2"

    @pytest.mark.asyncio
    async def test_unconfigured_account(self, platform):
        """Test missing credentials raise ConfigurationError."""
        http = httpx.AsyncClient(transport=httpx.MockTransport(platform.handler))
        client = PlatformClient(AccountConfig(account_id="empty"), http=http)

        with pytest.raises(ConfigurationError):
            await client.get_access_token()

    @pytest.mark.asyncio
    async def test_expired_token_retried_once(self, client, platform):
        """Test a token-expired response refreshes and retries."""
        platform.add(
            "POST",
            "/im/v1/messages",
            {"code": 99991663, "msg": "token expired"},
            {"code": 0, "data": {"message_id": "om_new"}},
        )

        result = await client.send_text("oc_dm", "hi")

        assert result.ok is True
        assert result.message_id == "om_new"
        assert platform.token_calls == 2
        sends = platform.calls_to("/im/v1/messages")
        assert sends[1].headers["Authorization"] == "Bearer t-2"


class TestSending:
    """Tests for IMessageSender methods."""

    @pytest.mark.asyncio
    async def test_send_text(self, client, platform):
        """Test send_text posts a text message with receive_id_type."""
        platform.add("POST", "/im/v1/messages", {"code": 0, "data": {"message_id": "om_x"}})

        result = await client.send_text("ou_bob", "hello", "open_id")

        assert result.ok is True
        request = platform.calls_to("/im/v1/messages")[0]
        assert request.url.params["receive_id_type"] == "open_id"
        body = json.loads(request.content)
        assert body["receive_id"] == "ou_bob"
        assert body["msg_type"] == "text"
        assert json.loads(body["content"]) == {"text": "hello"}

    @pytest.mark.asyncio
    async def test_reply_with_card(self, client, platform):
        """Test reply_to_message posts to the reply endpoint."""
        platform.add("POST", "/im/v1/messages/om_1/reply", {"code": 0, "data": {"message_id": "om_r"}})
        card = {"elements": [{"tag": "markdown", "content": "x"}]}

        result = await client.reply_to_message("om_1", card=card)

        assert result.message_id == "om_r"
        body = json.loads(platform.calls_to("/im/v1/messages/om_1/reply")[0].content)
        assert body["msg_type"] == "interactive"
        assert json.loads(body["content"]) == card

    @pytest.mark.asyncio
    async def test_api_error_is_result(self, client, platform):
        """Test API errors come back as a failed SendResult."""
        platform.add("POST", "/im/v1/messages", {"code": 230001, "msg": "bad chat"})

        result = await client.send_image("oc_dm", "img_1")

        assert result.ok is False
        assert "230001" in result.error

    @pytest.mark.asyncio
    async def test_transport_error_is_result(self, account):
        """Test network failures come back as a failed SendResult."""

        def handler(request):
            raise httpx.ConnectError("unreachable")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = PlatformClient(account, http=http)

        result = await client.send_file("oc_dm", "file_1")

        assert result.ok is False
        assert "unreachable" in result.error


class TestLookups:
    """Tests for message, identity and endpoint lookups."""

    @pytest.mark.asyncio
    async def test_get_message_by_id(self, client, platform):
        """Test the message text and sender are extracted."""
        platform.add(
            "GET",
            "/im/v1/messages/om_parent",
            {
                "code": 0,
                "data": {
                    "items": [
                        {
                            "msg_type": "text",
                            "body": {"content": json.dumps({"text": "earlier"})},
                            "sender": {"id": "ou_carol"},
                        }
                    ]
                },
            },
        )

        message = await client.get_message_by_id("om_parent")

        assert message.ok is True
        assert message.text == "earlier"
        assert message.sender_id == "ou_carol"

    @pytest.mark.asyncio
    async def test_get_message_not_found(self, client, platform):
        """Test an empty item list is reported as not found."""
        platform.add("GET", "/im/v1/messages/om_gone", {"code": 0, "data": {"items": []}})

        message = await client.get_message_by_id("om_gone")

        assert message.ok is False

    @pytest.mark.asyncio
    async def test_bot_identity_cached(self, client, platform):
        """Test the identity is resolved once."""
        platform.add(
            "GET", "/bot/v3/info", {"code": 0, "bot": {"open_id": "ou_bot", "app_name": "Helper"}}
        )

        first = await client.get_bot_identity()
        second = await client.get_bot_identity()

        assert first.open_id == "ou_bot"
        assert first.name == "Helper"
        assert second is first
        assert len(platform.calls_to("/bot/v3/info")) == 1

    @pytest.mark.asyncio
    async def test_bot_identity_failure_unresolved(self, client, platform):
        """Test lookup failures yield an unresolved identity."""
        platform.add("GET", "/bot/v3/info", {"code": 500, "msg": "boom"})

        identity = await client.get_bot_identity()

        assert identity.resolved is False

    @pytest.mark.asyncio
    async def test_ws_endpoint(self, client, platform):
        """Test the streaming URL is returned."""
        platform.add("POST", "/callback/ws/endpoint", {"code": 0, "data": {"url": "wss://x/ws"}})

        assert await client.get_ws_endpoint() == "wss://x/ws"

    @pytest.mark.asyncio
    async def test_ws_endpoint_failure(self, client, platform):
        """Test endpoint failures raise HandshakeError."""
        platform.add("POST", "/callback/ws/endpoint", {"code": 1000040, "msg": "denied"})

        with pytest.raises(HandshakeError):
            await client.get_ws_endpoint()


class TestCheckCredentials:
    """Tests for the startup credential check."""

    @pytest.mark.asyncio
    async def test_returns_identity(self, client, platform):
        """Test a successful check yields the bot identity."""
        platform.add(
            "GET", "/bot/v3/info", {"code": 0, "bot": {"open_id": "ou_bot", "app_name": "Helper"}}
        )

        identity = await client.check_credentials()

        assert identity.open_id == "ou_bot"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, client, platform):
        """Test rejected credentials raise PlatformAPIError."""
        platform.token_error = {"code": 10014, "msg": "app secret invalid"}

        with pytest.raises(PlatformAPIError, match="app secret invalid"):
            await client.check_credentials()

    @pytest.mark.asyncio
    async def test_unreachable(self, account):
        """Test network failures raise PlatformAPIError."""

        def handler(request):
            raise httpx.ConnectError("unreachable")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = PlatformClient(account, http=http)

        with pytest.raises(PlatformAPIError, match="unreachable"):
            await client.check_credentials()

    @pytest.mark.asyncio
    async def test_without_identity(self, client, platform):
        """Test a failed identity lookup still passes the check."""
        platform.add("GET", "/bot/v3/info", {"code": 500, "msg": "boom"})

        identity = await client.check_credentials()

        assert identity.resolved is False
