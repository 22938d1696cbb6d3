"""Shared response models."""

from pydantic import BaseModel


class AccountStatusResponse(BaseModel):
    """Response model for account status."""

    account_id: str
    configured: bool
    running: bool
    connection_mode: str
    connection_state: str
    last_inbound_at: str | None = None
    last_outbound_at: str | None = None
    last_error: str | None = None
    last_start_at: str | None = None
    last_stop_at: str | None = None
