"""aiohttp websocket transport for ConnectionSupervisor."""

from typing import Any, Awaitable, Callable

import aiohttp

from ..errors import HandshakeError
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0

EndpointProvider = Callable[[], Awaitable[str]]

_CLOSED_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
)


class WebSocketConnection:
    """IConnection over an aiohttp client websocket."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        ws: aiohttp.ClientWebSocketResponse,
    ):
        self._session = session
        self._ws = ws

    async def send_json(self, data: dict[str, Any]) -> None:
        await self._ws.send_json(data)

    async def receive(self) -> str | bytes | None:
        while True:
            msg = await self._ws.receive()
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                return msg.data
            if msg.type in _CLOSED_TYPES:
                if msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("Websocket error: %s", self._ws.exception())
                return None

    async def close(self) -> None:
        try:
            if not self._ws.closed:
                await self._ws.close()
        finally:
            await self._session.close()


class WebSocketConnector:
    """Looks up the stream URL, then performs the websocket handshake."""

    def __init__(
        self,
        endpoint_provider: EndpointProvider,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        self._endpoint_provider = endpoint_provider
        self._connect_timeout = connect_timeout

    async def open(self) -> WebSocketConnection:
        url = await self._endpoint_provider()
        session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None, connect=self._connect_timeout)
        )
        try:
            ws = await session.ws_connect(url)
        except (aiohttp.ClientError, OSError) as e:
            await session.close()
            raise HandshakeError(f"websocket handshake failed: {e}") from e

        logger.info("Websocket connected")
        return WebSocketConnection(session, ws)
