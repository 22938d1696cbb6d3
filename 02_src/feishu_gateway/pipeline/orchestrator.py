"""GatewayPipeline: per-account event control flow."""

import asyncio
from datetime import datetime, timezone
from typing import Any

from ..config import AccountConfig
from ..dedupe import Deduplicator, IDeduplicator
from ..event_bus import IEventBus
from ..gate import AccessGate, GateDecision, GateReason
from ..history import HistoryBuffer
from ..interfaces import IIdentityProvider, IResponder
from ..logging_config import get_logger
from ..models import (
    AccountStatus,
    BotIdentity,
    InboundEvent,
    NormalizationResult,
    ReplyFragment,
    ResultKind,
    SendResult,
    Topic,
)
from ..normalizer import EventNormalizer
from ..output_router import OutputRouter
from ..reply_context import ReplyContextResolver
from ..tracker import ITracker
from .context import build_context_payload, build_history_entry

logger = get_logger(__name__)

ACTOR = "pipeline"


class GatewayPipeline:
    """
    Normalize, dedupe, gate, enrich and dispatch events for one account.

    Owns its Deduplicator and HistoryBuffer. Events of one conversation are
    processed one at a time in arrival order; different conversations run
    concurrently.
    """

    def __init__(
        self,
        account: AccountConfig,
        responder: IResponder,
        output_router: OutputRouter,
        status: AccountStatus,
        identity_provider: IIdentityProvider | None = None,
        identity: BotIdentity | None = None,
        reply_resolver: ReplyContextResolver | None = None,
        normalizer: EventNormalizer | None = None,
        gate: AccessGate | None = None,
        deduplicator: IDeduplicator | None = None,
        history: HistoryBuffer | None = None,
        event_bus: IEventBus | None = None,
        tracker: ITracker | None = None,
    ):
        self._account = account
        self._responder = responder
        self._output_router = output_router
        self._status = status
        self._identity_provider = identity_provider
        self._reply_resolver = reply_resolver
        self._normalizer = normalizer or EventNormalizer()
        self._gate = gate or AccessGate()
        self.deduplicator = deduplicator or Deduplicator()
        self.history = history or HistoryBuffer()
        self._event_bus = event_bus
        self._tracker = tracker

        # Set when checked at account start; otherwise looked up lazily
        self._identity: BotIdentity | None = identity
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def account_id(self) -> str:
        return self._account.account_id

    @property
    def pending(self) -> int:
        """Events accepted but not finished."""
        return len(self._tasks)

    # ---- ingestion -------------------------------------------------------

    async def handle_payload(self, payload: Any) -> NormalizationResult:
        """Normalize one frame or webhook body and act on it."""
        result = self._normalizer.normalize(payload, self._account)

        if result.kind == ResultKind.INBOUND_EVENT:
            self.submit(result.event)

        elif result.kind in (ResultKind.MEMBERSHIP_ADDED, ResultKind.MEMBERSHIP_REMOVED):
            if result.kind == ResultKind.MEMBERSHIP_REMOVED and result.conversation_id:
                self.history.forget(result.conversation_id)
            logger.info(
                "Bot %s conversation %s",
                "added to" if result.kind == ResultKind.MEMBERSHIP_ADDED else "removed from",
                result.conversation_id,
                extra={"account_id": self.account_id},
            )
            await self._track(
                "membership_changed",
                {"kind": result.kind.value, "conversation_id": result.conversation_id},
            )

        elif result.kind == ResultKind.MALFORMED:
            logger.warning(
                "Dropping malformed payload: %s", result.error,
                extra={"account_id": self.account_id},
            )
            await self._track("payload_dropped", {"error": result.error})

        elif result.kind == ResultKind.UNRECOGNIZED:
            logger.debug("Ignoring unrecognized event type %s", result.event_type)

        return result

    def submit(self, event: InboundEvent) -> bool:
        """
        Accept an event for processing unless it was already seen.

        Returns:
            False for duplicates, True when a processing task was scheduled
        """
        if not self.deduplicator.check_and_mark(event.event_id):
            logger.debug("Duplicate event %s dropped", event.event_id)
            return False

        conversation_id = event.conversation_id
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1

        task = asyncio.create_task(
            self._process_in_order(event, lock), name=f"event-{event.event_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # Runs even when the task is cancelled before it starts
        task.add_done_callback(lambda _: self._release_lock(conversation_id))
        return True

    async def consume(self, queue: asyncio.Queue) -> None:
        """Feed frames from the connection channel until cancelled."""
        while True:
            frame = await queue.get()
            try:
                await self.handle_payload(frame)
            except Exception as e:
                logger.error("Error handling frame: %s", e, exc_info=True)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait for every accepted event to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight events."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ---- processing ------------------------------------------------------

    async def _process_in_order(self, event: InboundEvent, lock: asyncio.Lock) -> None:
        async with lock:
            await self.process_event(event)

    def _release_lock(self, conversation_id: str) -> None:
        remaining = self._lock_users[conversation_id] - 1
        if remaining:
            self._lock_users[conversation_id] = remaining
        else:
            del self._lock_users[conversation_id]
            del self._locks[conversation_id]

    async def process_event(self, event: InboundEvent) -> GateDecision | None:
        """
        Gate one event and, when allowed, dispatch it to the responder.

        Never raises; failures are logged and recorded as last_error.

        Returns:
            The gate decision, or None if processing failed
        """
        self._status.last_inbound_at = datetime.now(timezone.utc)
        try:
            identity = await self._resolve_identity() if event.is_group else None
            decision = self._gate.evaluate(event, self._account.policy, identity)
            await self._publish_decision(event, decision)

            if not decision.allow:
                self._on_denied(event, decision)
                return decision

            await self._dispatch(event, decision)
            return decision

        except Exception as e:
            logger.error(
                "Error processing event %s: %s", event.event_id, e,
                exc_info=True,
                extra={"account_id": self.account_id},
            )
            self._status.last_error = f"processing failed: {e}"
            await self._track(
                "event_failed", {"event_id": event.event_id, "error": str(e)}
            )
            return None

    def _on_denied(self, event: InboundEvent, decision: GateDecision) -> None:
        if event.is_group and decision.reason == GateReason.NOT_MENTIONED:
            self.history.record(event.conversation_id, build_history_entry(event))
            logger.debug(
                "Recorded unaddressed message %s in %s",
                event.event_id, event.conversation_id,
            )
            return
        logger.info(
            "Event %s from %s denied: %s",
            event.event_id, event.sender_id, decision.reason.value,
            extra={"account_id": self.account_id},
        )

    async def _dispatch(self, event: InboundEvent, decision: GateDecision) -> None:
        if self._reply_resolver is not None:
            event = await self._reply_resolver.resolve(event)

        pending = self.history.get(event.conversation_id) if event.is_group else []
        payload = build_context_payload(
            self.account_id, event, pending, was_mentioned=decision.was_mentioned
        )

        async def deliver(fragment: ReplyFragment) -> SendResult | None:
            return await self._output_router.deliver(event, fragment)

        await self._track(
            "event_dispatched",
            {
                "event_id": event.event_id,
                "conversation_id": event.conversation_id,
                "history_entries": len(pending),
                "has_reply_context": event.reply_to_body is not None,
            },
        )
        await self._responder.respond(payload, deliver)

        if event.is_group:
            self.history.clear(event.conversation_id)

    async def _resolve_identity(self) -> BotIdentity | None:
        if self._identity is not None:
            return self._identity
        if self._identity_provider is None:
            return None
        try:
            identity = await self._identity_provider.get_bot_identity()
        except Exception as e:
            logger.warning("Bot identity lookup failed: %s", e)
            return None
        if identity.resolved:
            self._identity = identity
        return identity

    # ---- observability ---------------------------------------------------

    async def _publish_decision(
        self, event: InboundEvent, decision: GateDecision
    ) -> None:
        data = {
            "account_id": self.account_id,
            "event_id": event.event_id,
            "conversation_id": event.conversation_id,
            "conversation_kind": event.conversation_kind.value,
            "sender_id": event.sender_id,
            "allow": decision.allow,
            "reason": decision.reason.value,
        }
        await self._track("event_gated", data)
        if self._event_bus:
            await self._event_bus.emit(Topic.INBOUND, data, ACTOR)

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(
                event_type, ACTOR, data, account_id=self.account_id
            )
