"""Tests for OutputRouter."""

import pytest

from feishu_gateway.models import (
    ConversationKind,
    ReplyFragment,
    RenderMode,
    Topic,
)
from feishu_gateway.output_router import OutputRouter, receive_id_type_for
from feishu_gateway.render import RenderPolicy, build_markdown_card

from conftest import FakeSender, make_event


def group_event():
    return make_event(
        event_id="om_g", conversation_id="oc_group", kind=ConversationKind.GROUP
    )


class TestRouting:
    """Tests for target selection."""

    @pytest.mark.asyncio
    async def test_group_quote_replies(self, sender, status):
        """Test group replies quote the triggering message."""
        router = OutputRouter(sender, RenderPolicy(), status)
        result = await router.deliver(group_event(), ReplyFragment(text="hi"))

        assert result.ok is True
        assert sender.calls == [("reply", "om_g", "hi", None)]

    @pytest.mark.asyncio
    async def test_direct_sends_to_conversation(self, sender, status):
        """Test direct replies go to the conversation id."""
        router = OutputRouter(sender, RenderPolicy(), status)
        await router.deliver(make_event(conversation_id="oc_dm"), ReplyFragment(text="hi"))

        assert sender.calls == [("send_text", "oc_dm", "hi", "chat_id")]

    def test_receive_id_type(self):
        """Test open ids are addressed as open_id."""
        assert receive_id_type_for("ou_123") == "open_id"
        assert receive_id_type_for("oc_123") == "chat_id"


class TestRendering:
    """Tests for render policy integration."""

    @pytest.mark.asyncio
    async def test_rich_text_sent_as_card(self, sender, status):
        """Test rich replies become markdown cards."""
        router = OutputRouter(sender, RenderPolicy(), status)
        text = "```\ncode\n```"
        await router.deliver(make_event(), ReplyFragment(text=text))

        assert sender.calls == [("send_card", "oc_dm", build_markdown_card(text), "chat_id")]

    @pytest.mark.asyncio
    async def test_rich_group_reply_uses_card(self, sender, status):
        """Test rich group replies carry the card."""
        router = OutputRouter(sender, RenderPolicy(RenderMode.CARD), status)
        await router.deliver(group_event(), ReplyFragment(text="hi"))

        assert sender.calls == [("reply", "om_g", None, build_markdown_card("hi"))]

    @pytest.mark.asyncio
    async def test_media_url_appended(self, sender, status):
        """Test media fragments are sent as text with the URL."""
        router = OutputRouter(sender, RenderPolicy(), status)
        await router.deliver(
            make_event(),
            ReplyFragment(text="chart", media_url="https://example.com/a.png"),
        )

        assert sender.calls[0][2] == "chart\n\nhttps://example.com/a.png"

    @pytest.mark.asyncio
    async def test_empty_fragment_skipped(self, sender, status):
        """Test whitespace-only fragments are not sent."""
        router = OutputRouter(sender, RenderPolicy(), status)
        assert await router.deliver(make_event(), ReplyFragment(text="  ")) is None
        assert sender.calls == []


class TestStatusAndTracing:
    """Tests for status updates and observability."""

    @pytest.mark.asyncio
    async def test_success_sets_last_outbound(self, sender, status, tracker):
        """Test a successful send records time and a trace event."""
        router = OutputRouter(sender, RenderPolicy(), status, tracker=tracker)
        await router.deliver(make_event(), ReplyFragment(text="hi"))

        assert status.last_outbound_at is not None
        events = tracker.get_events(event_types=["reply_sent"])
        assert len(events) == 1
        assert events[0].account_id == "default"

    @pytest.mark.asyncio
    async def test_failure_sets_last_error(self, status, event_bus):
        """Test failed sends are reported, not raised."""
        published = []

        async def handler(msg):
            published.append(msg)

        event_bus.subscribe(Topic.OUTBOUND, handler)
        router = OutputRouter(FakeSender(ok=False), RenderPolicy(), status, event_bus)

        result = await router.deliver(make_event(), ReplyFragment(text="hi"))

        assert result.ok is False
        assert status.last_error == "send failed: rate limited"
        assert published[0].payload["ok"] is False

    @pytest.mark.asyncio
    async def test_sender_exception_becomes_failed_result(self, status):
        """Test a raising sender is contained."""

        class Exploding(FakeSender):
            async def send_text(self, *args, **kwargs):
                raise RuntimeError("socket closed")

        router = OutputRouter(Exploding(), RenderPolicy(), status)
        result = await router.deliver(make_event(), ReplyFragment(text="hi"))

        assert result.ok is False
        assert "socket closed" in status.last_error
