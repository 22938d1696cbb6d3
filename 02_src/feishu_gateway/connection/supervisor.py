"""ConnectionSupervisor: owns the streaming connection of one account."""

import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Protocol

from ..errors import ConnectionClosedError
from ..logging_config import get_logger
from ..models import ConnectionState

logger = get_logger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_ATTEMPTS = 10

PING_FRAME = {"type": "ping"}

StateCallback = Callable[[ConnectionState], Awaitable[None] | None]


class IConnection(Protocol):
    """One open stream."""

    async def send_json(self, data: dict[str, Any]) -> None:
        ...

    async def receive(self) -> str | bytes | None:
        """Next frame, or None once the stream is closed."""
        ...

    async def close(self) -> None:
        ...


class IConnector(Protocol):
    """Opens a stream: endpoint lookup plus handshake."""

    async def open(self) -> IConnection:
        ...


class ConnectionSupervisor:
    """
    Connect, heartbeat, detect loss and reconnect with exponential backoff.

    Event frames are put on `queue`; the consumer side normalizes them.
    State transitions:

        disconnected -> connecting -> connected
        connected -> reconnecting -> connected
        reconnecting -> disconnected   (attempts exhausted)
        any -> disconnected            (stop)
    """

    def __init__(
        self,
        connector: IConnector,
        queue: asyncio.Queue | None = None,
        account_id: str = "default",
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        heartbeat_timeout: float | None = None,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_state_change: StateCallback | None = None,
    ):
        self._connector = connector
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()
        self.account_id = account_id
        self._heartbeat_interval = heartbeat_interval
        self._heartbeat_timeout = (
            heartbeat_timeout
            if heartbeat_timeout is not None
            else heartbeat_interval + 10.0
        )
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._on_state_change = on_state_change

        self._state = ConnectionState.DISCONNECTED
        self._attempts = 0
        self._stopping = False
        self._run_task: asyncio.Task | None = None
        self._connection: IConnection | None = None

        self.exhausted = False
        self.last_error: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        """Consecutive reconnect attempts since the last successful connect."""
        return self._attempts

    @property
    def running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.info(
            "Connection %s -> %s", previous.value, state.value,
            extra={"account_id": self.account_id},
        )
        if self._on_state_change is None:
            return
        try:
            result = self._on_state_change(state)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("State change callback failed: %s", e, exc_info=True)

    async def start(self) -> asyncio.Task:
        """Start the run loop. Calling start on a running supervisor is a no-op."""
        if self.running:
            return self._run_task

        self._stopping = False
        self._attempts = 0
        self.exhausted = False
        self.last_error = None
        await self._set_state(ConnectionState.CONNECTING)
        self._run_task = asyncio.create_task(
            self._run(), name=f"supervisor-{self.account_id}"
        )
        return self._run_task

    async def stop(self) -> None:
        """Tear down timers, the run task and the stream. Safe to call twice."""
        self._stopping = True
        task, self._run_task = self._run_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._close_connection()
        await self._set_state(ConnectionState.DISCONNECTED)

    async def wait(self) -> None:
        """Wait for the run loop to end on its own."""
        if self._run_task is not None:
            await asyncio.gather(self._run_task, return_exceptions=True)

    async def _run(self) -> None:
        try:
            while not self._stopping:
                try:
                    self._connection = await self._connector.open()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._record_error(f"handshake failed: {e}")
                    if not await self._backoff():
                        return
                    continue

                self._attempts = 0
                await self._set_state(ConnectionState.CONNECTED)

                try:
                    await self._session(self._connection)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._record_error(f"connection lost: {e}")
                finally:
                    await self._close_connection()

                if self._stopping or not await self._backoff():
                    return
        finally:
            self._connection = None

    async def _backoff(self) -> bool:
        """Sleep before the next attempt; False once attempts are exhausted."""
        if self._attempts >= self._max_attempts:
            logger.error(
                "Giving up after %d reconnect attempts", self._attempts,
                extra={"account_id": self.account_id},
            )
            self.exhausted = True
            await self._set_state(ConnectionState.DISCONNECTED)
            return False

        await self._set_state(ConnectionState.RECONNECTING)
        delay = self._base_delay * 2 ** self._attempts
        self._attempts += 1
        logger.info(
            "Reconnect attempt %d/%d in %.1fs",
            self._attempts, self._max_attempts, delay,
            extra={"account_id": self.account_id},
        )
        await asyncio.sleep(delay)
        return True

    async def _session(self, connection: IConnection) -> None:
        heartbeat = asyncio.create_task(self._heartbeat(connection))
        try:
            while not self._stopping:
                try:
                    frame = await asyncio.wait_for(
                        connection.receive(), timeout=self._heartbeat_timeout
                    )
                except asyncio.TimeoutError:
                    raise ConnectionClosedError("heartbeat timeout")
                if frame is None:
                    raise ConnectionClosedError("closed by remote")
                await self._handle_frame(frame)
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)

    async def _heartbeat(self, connection: IConnection) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                await connection.send_json(PING_FRAME)
            except Exception as e:
                logger.warning("Heartbeat send failed: %s", e)
                await connection.close()
                return

    async def _handle_frame(self, frame: str | bytes) -> None:
        try:
            data = json.loads(frame)
        except (TypeError, ValueError) as e:
            logger.warning("Dropping undecodable frame: %s", e)
            return

        if not isinstance(data, dict):
            logger.warning("Dropping non-object frame")
            return

        if data.get("type") == "pong":
            return

        header = data.get("header")
        if isinstance(header, dict) and header.get("event_type"):
            await self.queue.put(data)
            return

        logger.debug("Ignoring frame of type %s", data.get("type"))

    async def _close_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as e:
            logger.debug("Error while closing connection: %s", e)

    def _record_error(self, message: str) -> None:
        self.last_error = message
        logger.warning(message, extra={"account_id": self.account_id})
