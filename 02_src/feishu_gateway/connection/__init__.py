"""Streaming connection module."""

from .supervisor import (
    ConnectionSupervisor,
    IConnection,
    IConnector,
    PING_FRAME,
)
from .transport import WebSocketConnection, WebSocketConnector

__all__ = [
    "ConnectionSupervisor",
    "IConnection",
    "IConnector",
    "PING_FRAME",
    "WebSocketConnection",
    "WebSocketConnector",
]
