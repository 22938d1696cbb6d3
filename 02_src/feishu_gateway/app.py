"""Application bootstrap and per-account lifecycle management."""

import asyncio
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from .config import AccountConfig, load_account_configs
from .connection import ConnectionSupervisor, IConnector, WebSocketConnector
from .connection.supervisor import (
    DEFAULT_BASE_DELAY,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_MAX_ATTEMPTS,
)
from .errors import GatewayError
from .event_bus import EventBus
from .interfaces import AllowAllVerifier, IResponder, ISignatureVerifier
from .logging_config import get_logger
from .models import AccountStatus, ConnectionState, NormalizationResult, Topic
from .output_router import OutputRouter
from .pipeline import GatewayPipeline
from .platform_api import PlatformClient
from .render import RenderPolicy
from .reply_context import ReplyContextResolver
from .responder import EchoResponder, LLMProvider, LLMResponder
from .tracker import Tracker

logger = get_logger(__name__)

ClientFactory = Callable[[AccountConfig], PlatformClient]
ConnectorFactory = Callable[[PlatformClient], IConnector]


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Start every enabled account."""
        ...

    async def stop(self) -> None:
        """Stop every account."""
        ...

    async def start_account(self, config: AccountConfig) -> AccountStatus:
        ...

    async def stop_account(self, account_id: str) -> AccountStatus:
        ...


@dataclass
class AccountRuntime:
    """Live components of one started account."""

    config: AccountConfig
    status: AccountStatus
    client: PlatformClient
    pipeline: GatewayPipeline
    supervisor: ConnectionSupervisor | None = None
    consumer: asyncio.Task | None = None


def default_responder() -> IResponder:
    """LLM responder when an API key is configured, else echo."""
    if os.getenv("ANTHROPIC_API_KEY"):
        return LLMResponder(LLMProvider())
    logger.warning("ANTHROPIC_API_KEY not set, using echo responder")
    return EchoResponder()


def default_connector(client: PlatformClient) -> IConnector:
    return WebSocketConnector(client.get_ws_endpoint)


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        accounts: list[AccountConfig] | None = None,
        responder: IResponder | None = None,
        client_factory: ClientFactory = PlatformClient,
        connector_factory: ConnectorFactory = default_connector,
        verifier: ISignatureVerifier | None = None,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        reconnect_delay: float = DEFAULT_BASE_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self._accounts = accounts
        self._responder = responder
        self._client_factory = client_factory
        self._connector_factory = connector_factory
        self.verifier: ISignatureVerifier = verifier or AllowAllVerifier()
        self._heartbeat_interval = heartbeat_interval
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts

        self._configs: dict[str, AccountConfig] = {}
        self._runtimes: dict[str, AccountRuntime] = {}
        self._statuses: dict[str, AccountStatus] = {}

        self.event_bus = EventBus()
        self.tracker = Tracker(self.event_bus)

    async def start(self) -> None:
        """Initialize shared components, then start every enabled account."""
        logger.info("Starting application")
        await self.tracker.start()

        if self._accounts is None:
            self._accounts = load_account_configs()
        if self._responder is None:
            self._responder = default_responder()

        for config in self._accounts:
            self._configs[config.account_id] = config
            self._statuses.setdefault(
                config.account_id,
                AccountStatus(
                    account_id=config.account_id,
                    configured=config.configured,
                    connection_mode=config.connection_mode,
                ),
            )
            if config.enabled:
                await self.start_account(config)

        logger.info("Application started with %d account(s)", len(self._runtimes))

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for account_id in list(self._runtimes):
            await self.stop_account(account_id)
        await self.tracker.stop()
        logger.info("Application stopped")

    def get_config(self, account_id: str) -> AccountConfig:
        """Known account config; raises KeyError for unknown accounts."""
        return self._configs[account_id]

    def get_runtime(self, account_id: str) -> AccountRuntime:
        """Running account; raises KeyError when not started."""
        return self._runtimes[account_id]

    def statuses(self) -> list[AccountStatus]:
        return list(self._statuses.values())

    async def start_account(self, config: AccountConfig) -> AccountStatus:
        """Start one account. Starting a running account is a no-op."""
        self._configs[config.account_id] = config
        runtime = self._runtimes.get(config.account_id)
        if runtime is not None:
            if runtime.status.running:
                return runtime.status
            # Supervisor gave up; tear down before restarting
            await self.stop_account(config.account_id)

        status = AccountStatus(
            account_id=config.account_id,
            configured=config.configured,
            connection_mode=config.connection_mode,
        )
        self._statuses[config.account_id] = status

        if not config.configured:
            status.last_error = "appId/appSecret not configured"
            logger.warning(
                "Account %s is not configured, not starting", config.account_id
            )
            await self._publish_status(status)
            return status

        if self._responder is None:
            self._responder = default_responder()

        client = self._client_factory(config)
        try:
            identity = await client.check_credentials()
        except GatewayError as e:
            await client.aclose()
            status.last_error = f"credential check failed: {e}"
            logger.error(
                "Account %s credential check failed, not starting: %s", config.account_id, e,
                extra={"account_id": config.account_id},
            )
            await self._publish_status(status)
            return status
        if not identity.resolved:
            logger.warning(
                "Bot identity unavailable for %s; mention detection is limited",
                config.account_id,
                extra={"account_id": config.account_id},
            )

        router = OutputRouter(
            sender=client,
            render_policy=RenderPolicy(config.render_mode),
            status=status,
            event_bus=self.event_bus,
            tracker=self.tracker,
        )
        pipeline = GatewayPipeline(
            account=config,
            responder=self._responder,
            output_router=router,
            status=status,
            identity=identity,
            reply_resolver=ReplyContextResolver(client),
            event_bus=self.event_bus,
            tracker=self.tracker,
        )
        runtime = AccountRuntime(
            config=config, status=status, client=client, pipeline=pipeline
        )
        self._runtimes[config.account_id] = runtime

        status.running = True
        status.last_start_at = datetime.now(timezone.utc)
        status.last_error = None

        if config.connection_mode == "websocket":
            supervisor = ConnectionSupervisor(
                self._connector_factory(client),
                account_id=config.account_id,
                heartbeat_interval=self._heartbeat_interval,
                base_delay=self._reconnect_delay,
                max_attempts=self._max_reconnect_attempts,
                on_state_change=lambda state: self._on_state_change(runtime, state),
            )
            runtime.supervisor = supervisor
            runtime.consumer = asyncio.create_task(
                pipeline.consume(supervisor.queue),
                name=f"consumer-{config.account_id}",
            )
            await supervisor.start()

        logger.info(
            "Account %s started (%s)", config.account_id, config.connection_mode,
            extra={"account_id": config.account_id},
        )
        await self._publish_status(status)
        return status

    async def stop_account(self, account_id: str) -> AccountStatus:
        """Stop one account; raises KeyError for unknown accounts."""
        runtime = self._runtimes.pop(account_id, None)
        if runtime is None:
            return self._statuses[account_id]

        if runtime.supervisor is not None:
            await runtime.supervisor.stop()
        if runtime.consumer is not None:
            runtime.consumer.cancel()
            await asyncio.gather(runtime.consumer, return_exceptions=True)
        await runtime.pipeline.close()
        await runtime.client.aclose()

        status = runtime.status
        status.running = False
        status.connection_state = ConnectionState.DISCONNECTED
        status.last_stop_at = datetime.now(timezone.utc)
        logger.info("Account %s stopped", account_id, extra={"account_id": account_id})
        await self._publish_status(status)
        return status

    async def handle_webhook(self, account_id: str, body: bytes) -> NormalizationResult:
        """Hand a webhook body to the account's pipeline."""
        runtime = self.get_runtime(account_id)
        return await runtime.pipeline.handle_payload(body)

    async def _on_state_change(
        self, runtime: AccountRuntime, state: ConnectionState
    ) -> None:
        status = runtime.status
        status.connection_state = state
        supervisor = runtime.supervisor
        if state == ConnectionState.DISCONNECTED and supervisor and supervisor.exhausted:
            status.running = False
            status.last_error = supervisor.last_error or "reconnect attempts exhausted"
        await self._publish_status(status)

    async def _publish_status(self, status: AccountStatus) -> None:
        await self.event_bus.emit(Topic.STATUS, status.snapshot(), "application")
