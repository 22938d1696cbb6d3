"""Observability API routes."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from .schemas import AccountStatusResponse


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime
    account_id: str | None = None


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/status", response_model=list[AccountStatusResponse])
    async def get_status() -> list[dict]:
        """Runtime status of every known account."""
        return [status.snapshot() for status in app.statuses()]

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="ISO timestamp filter"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: str | None = Query(None, description="Filter by event type"),
        actor: str | None = Query(None, description="Filter by actor"),
        account_id: str | None = Query(None, description="Filter by account"),
    ) -> list[dict]:
        """Get trace events with optional filters."""
        after_dt = None
        if after:
            try:
                after_dt = datetime.fromisoformat(after)
            except ValueError:
                raise HTTPException(
                    status_code=400, detail="Invalid after timestamp format"
                )
            if after_dt.tzinfo is None:
                after_dt = after_dt.replace(tzinfo=timezone.utc)

        events = app.tracker.get_events(
            after=after_dt,
            event_types=[event_type] if event_type else None,
            actor=actor,
            account_id=account_id,
            limit=limit,
        )
        return [
            {
                "id": e.id,
                "event_type": e.event_type,
                "actor": e.actor,
                "data": e.data,
                "timestamp": e.timestamp.isoformat(),
                "account_id": e.account_id,
            }
            for e in events
        ]

    return router
