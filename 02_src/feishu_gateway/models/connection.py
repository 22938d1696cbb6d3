"""Connection and account status models."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum


class ConnectionState(str, Enum):
    """States of the streaming connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class AccountStatus:
    """Operator-visible runtime status of one account."""

    account_id: str
    configured: bool = False
    running: bool = False
    connection_mode: str = "websocket"
    connection_state: ConnectionState = ConnectionState.DISCONNECTED
    last_inbound_at: datetime | None = None
    last_outbound_at: datetime | None = None
    last_error: str | None = None
    last_start_at: datetime | None = None
    last_stop_at: datetime | None = None

    def snapshot(self) -> dict:
        """Serializable copy for status events and the HTTP API."""
        data = asdict(self)
        data["connection_state"] = self.connection_state.value
        for key in (
            "last_inbound_at",
            "last_outbound_at",
            "last_start_at",
            "last_stop_at",
        ):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data
