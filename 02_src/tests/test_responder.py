"""Tests for LLMProvider and the responders."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from feishu_gateway.models import ContextPayload, ConversationKind, ReplyFragment
from feishu_gateway.responder import EchoResponder, LLMProvider, LLMResponder


def make_payload(body="hello", command_body="hello", kind=ConversationKind.DIRECT):
    return ContextPayload(
        account_id="default",
        conversation_id="oc_dm",
        conversation_kind=kind,
        sender_id="ou_alice",
        event_id="om_1",
        body=body,
        raw_body=body,
        command_body=command_body,
        timestamp_ms=1700000000000,
    )


class Collector:
    def __init__(self):
        self.fragments: list[ReplyFragment] = []

    async def __call__(self, fragment):
        self.fragments.append(fragment)
        return None


class TestLLMProviderInit:
    """Tests for LLMProvider initialization."""

    def test_init_with_api_key(self, monkeypatch):
        """Test initialization with API key."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        with patch("feishu_gateway.responder.llm_provider.anthropic.AsyncAnthropic"):
            provider = LLMProvider()
            assert provider is not None

    def test_init_without_api_key(self, monkeypatch):
        """Test initialization without API key raises error."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with patch("feishu_gateway.responder.llm_provider.anthropic.AsyncAnthropic"):
            with pytest.raises(ValueError):
                LLMProvider()


class TestLLMProviderComplete:
    """Tests for LLMProvider.complete() method."""

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self, monkeypatch):
        """Test that complete() returns the concatenated text blocks."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        mock_client = Mock()
        mock_response = Mock()
        mock_response.content = [
            Mock(type="text", text="Test "),
            Mock(type="tool_use", text="ignored"),
            Mock(type="text", text="response"),
        ]
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        with patch(
            "feishu_gateway.responder.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = LLMProvider(model="test-model")
            response = await provider.complete(
                messages=[{"role": "user", "content": "Hello"}],
                system="Be brief",
            )

        assert response == "Test response"
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["system"] == "Be brief"


class TestLLMResponder:
    """Tests for LLMResponder."""

    @pytest.mark.asyncio
    async def test_delivers_completion(self, mock_llm):
        """Test the completion is delivered as one fragment."""
        deliver = Collector()
        await LLMResponder(mock_llm).respond(make_payload(), deliver)

        assert [f.text for f in deliver.fragments] == ["Test response"]
        messages = mock_llm.complete.call_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_group_prompt(self, mock_llm):
        """Test group conversations extend the system prompt."""
        await LLMResponder(mock_llm, system_prompt="Base.").respond(
            make_payload(kind=ConversationKind.GROUP), Collector()
        )

        system = mock_llm.complete.call_args.kwargs["system"]
        assert system.startswith("Base.")
        assert "group chat" in system

    @pytest.mark.asyncio
    async def test_empty_body_skipped(self, mock_llm):
        """Test whitespace-only bodies are not sent to the LLM."""
        deliver = Collector()
        await LLMResponder(mock_llm).respond(make_payload(body="  "), deliver)

        mock_llm.complete.assert_not_called()
        assert deliver.fragments == []


class TestEchoResponder:
    """Tests for EchoResponder."""

    @pytest.mark.asyncio
    async def test_echoes_command_body(self):
        """Test the command body is echoed."""
        deliver = Collector()
        await EchoResponder().respond(make_payload(command_body="ping"), deliver)

        assert deliver.fragments[0].text == "Echo: ping"

    @pytest.mark.asyncio
    async def test_empty_command_body(self):
        """Test nothing is delivered for an empty command body."""
        deliver = Collector()
        await EchoResponder().respond(make_payload(command_body=""), deliver)

        assert deliver.fragments == []
