"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from feishu_gateway.config import AccountConfig  # noqa: E402
from feishu_gateway.platform_api import PlatformClient  # noqa: E402
from feishu_gateway.models import (  # noqa: E402
    AccountPolicy,
    AccountStatus,
    BotIdentity,
    ConversationKind,
    DmPolicy,
    GroupPolicy,
    InboundEvent,
    Mention,
    MessageKind,
    SendResult,
)

BOT_OPEN_ID = "ou_bot"
BOT_NAME = "Helper"


def make_event(
    event_id: str = "om_1",
    conversation_id: str = "oc_dm",
    kind: ConversationKind = ConversationKind.DIRECT,
    sender_id: str = "ou_alice",
    text: str = "hello",
    mentions: tuple[Mention, ...] = (),
    parent_event_id: str | None = None,
    created_at_ms: int = 1700000000000,
) -> InboundEvent:
    """Build an InboundEvent for tests."""
    return InboundEvent(
        event_id=event_id,
        conversation_id=conversation_id,
        conversation_kind=kind,
        sender_id=sender_id,
        message_kind=MessageKind.TEXT,
        raw_content=json.dumps({"text": text}),
        created_at_ms=created_at_ms,
        text=text,
        display_text=text,
        mentions=mentions,
        parent_event_id=parent_event_id,
        sender_open_id=sender_id,
    )


def bot_mention(placeholder: str = "@_user_1") -> Mention:
    return Mention(placeholder=placeholder, target_id=BOT_OPEN_ID, display_name=BOT_NAME)


def message_callback(
    message_id: str = "om_1",
    chat_id: str = "oc_dm",
    chat_type: str = "p2p",
    message_type: str = "text",
    content: dict | str | None = None,
    sender_open_id: str = "ou_alice",
    mentions: list[dict] | None = None,
    parent_id: str | None = None,
) -> dict:
    """Build an im.message.receive_v1 callback body."""
    if content is None:
        content = {"text": "hello"}
    message = {
        "message_id": message_id,
        "chat_id": chat_id,
        "chat_type": chat_type,
        "message_type": message_type,
        "content": content if isinstance(content, str) else json.dumps(content),
        "create_time": "1700000000000",
    }
    if mentions is not None:
        message["mentions"] = mentions
    if parent_id:
        message["parent_id"] = parent_id
    return {
        "schema": "2.0",
        "header": {"event_id": f"evt_{message_id}", "event_type": "im.message.receive_v1"},
        "event": {
            "sender": {
                "sender_id": {"open_id": sender_open_id, "user_id": "u_1"},
                "sender_type": "user",
                "tenant_key": "tenant",
            },
            "message": message,
        },
    }


class FakeSender:
    """Records every send call and answers ok."""

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.calls: list[tuple] = []

    def _result(self) -> SendResult:
        if self.ok:
            return SendResult(ok=True, message_id=f"om_sent_{len(self.calls)}")
        return SendResult(ok=False, error="rate limited")

    async def send_text(self, receive_id, text, receive_id_type="chat_id"):
        self.calls.append(("send_text", receive_id, text, receive_id_type))
        return self._result()

    async def send_card(self, receive_id, card, receive_id_type="chat_id"):
        self.calls.append(("send_card", receive_id, card, receive_id_type))
        return self._result()

    async def send_image(self, receive_id, image_key, receive_id_type="chat_id"):
        self.calls.append(("send_image", receive_id, image_key, receive_id_type))
        return self._result()

    async def send_file(self, receive_id, file_key, receive_id_type="chat_id"):
        self.calls.append(("send_file", receive_id, file_key, receive_id_type))
        return self._result()

    async def reply_to_message(self, message_id, text=None, card=None):
        self.calls.append(("reply", message_id, text, card))
        return self._result()


class RecordingResponder:
    """Collects payloads and optionally answers with a fixed reply."""

    def __init__(self, reply: str | None = "ok"):
        self.reply = reply
        self.payloads = []

    async def respond(self, payload, deliver):
        self.payloads.append(payload)
        if self.reply is not None:
            from feishu_gateway.models import ReplyFragment

            await deliver(ReplyFragment(text=self.reply))


class FakeConnection:
    """Scripted IConnection: frames are fed through a queue."""

    def __init__(self):
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False

    async def send_json(self, data):
        self.sent.append(data)

    async def receive(self):
        if self.closed:
            return None
        frame = await self.frames.get()
        return frame

    async def close(self):
        if not self.closed:
            self.closed = True
            self.frames.put_nowait(None)

    def push(self, frame) -> None:
        self.frames.put_nowait(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate an unsolicited close."""
        self.frames.put_nowait(None)


class FakeConnector:
    """Hands out FakeConnections; outcomes are scripted per attempt."""

    def __init__(self, failures: int = 0, always_fail: bool = False):
        self.failures = failures
        self.always_fail = always_fail
        self.attempts = 0
        self.connections: list[FakeConnection] = []
        self.opened = asyncio.Event()

    async def open(self):
        self.attempts += 1
        if self.always_fail or self.attempts <= self.failures:
            raise ConnectionError("handshake refused")
        connection = FakeConnection()
        self.connections.append(connection)
        self.opened.set()
        return connection


@pytest.fixture
def policy():
    return AccountPolicy(
        dm_policy=DmPolicy.OPEN,
        group_policy=GroupPolicy.OPEN,
        require_mention=True,
    )


@pytest.fixture
def account(policy):
    return AccountConfig(
        account_id="default",
        app_id="cli_app",
        app_secret="secret",
        policy=policy,
    )


@pytest.fixture
def status():
    return AccountStatus(account_id="default", configured=True, running=True)


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from feishu_gateway.event_bus import EventBus

    return EventBus()


@pytest.fixture
def tracker(event_bus):
    """Create Tracker with event bus."""
    from feishu_gateway.tracker import Tracker

    return Tracker(event_bus=event_bus)


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def responder():
    return RecordingResponder()


@pytest.fixture
def identity_provider():
    provider = Mock()
    provider.get_bot_identity = AsyncMock(
        return_value=BotIdentity(open_id=BOT_OPEN_ID, name=BOT_NAME)
    )
    return provider


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.complete = AsyncMock(return_value="Test response")
    return llm


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate until true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakePlatform:
    """Scripted platform REST API for httpx.MockTransport."""

    TOKEN_PATH = "/open-apis/auth/v3/tenant_access_token/internal"

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.routes: dict[tuple[str, str], list[dict]] = {}
        self.token_error: dict | None = None  # answer token requests with this

    def add(self, method: str, path: str, *responses: dict) -> None:
        """Script responses; the last one repeats."""
        self.routes[(method, "/open-apis" + path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == self.TOKEN_PATH:
            self.token_calls += 1
            if self.token_error is not None:
                return httpx.Response(200, json=self.token_error)
            return httpx.Response(
                200,
                json={
                    "code": 0,
                    "tenant_access_token": f"t-{self.token_calls}",
                    "expire": 7200,
                },
            )
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return httpx.Response(404, json={"code": 404, "msg": "not found"})
        body = responses.pop(0) if len(responses) > 1 else responses[0]
        return httpx.Response(200, json=body)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/open-apis" + path]

    def client_factory(self, config: AccountConfig) -> PlatformClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return PlatformClient(config, http=http)
