"""Responder implementations: the component that turns gated input into replies."""

from ..interfaces import DeliverCallback
from ..logging_config import get_logger
from ..models import ContextPayload, ConversationKind, ReplyFragment
from .llm_provider import ILLMProvider

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a helpful assistant in a team chat. "
    "Answer the latest message concisely. "
    "Blocks marked [Recent conversation context] or [Replying to ...] "
    "are background, not questions addressed to you."
)


class LLMResponder:
    """Answers every gated event with one LLM completion."""

    def __init__(
        self,
        llm_provider: ILLMProvider,
        system_prompt: str = SYSTEM_PROMPT,
        max_tokens: int = 1024,
    ):
        self._llm = llm_provider
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens

    async def respond(self, payload: ContextPayload, deliver: DeliverCallback) -> None:
        if not payload.body.strip():
            logger.debug("Empty body for %s, nothing to answer", payload.event_id)
            return

        system = self._system_prompt
        if payload.conversation_kind == ConversationKind.GROUP:
            system += " You are in a group chat; several people may be talking."

        text = await self._llm.complete(
            messages=[{"role": "user", "content": payload.body}],
            system=system,
            max_tokens=self._max_tokens,
        )
        logger.info(
            "LLM reply for %s: %d chars", payload.event_id, len(text),
            extra={"account_id": payload.account_id},
        )
        await deliver(ReplyFragment(text=text))


class EchoResponder:
    """Minimal echo responder for testing data flow."""

    async def respond(self, payload: ContextPayload, deliver: DeliverCallback) -> None:
        if payload.command_body:
            await deliver(ReplyFragment(text=f"Echo: {payload.command_body}"))
