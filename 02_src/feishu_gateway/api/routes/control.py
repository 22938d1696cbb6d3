"""Control API routes."""

from fastapi import APIRouter, HTTPException

from ...app import Application
from ...logging_config import get_logger
from .schemas import AccountStatusResponse

logger = get_logger(__name__)


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/accounts/{account_id}/start", response_model=AccountStatusResponse)
    async def start_account(account_id: str) -> dict:
        """Start (or restart after exhaustion) a configured account."""
        try:
            config = app.get_config(account_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown account {account_id}")
        try:
            status = await app.start_account(config)
        except Exception as e:
            logger.error("Failed to start %s: %s", account_id, e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        return status.snapshot()

    @router.post("/accounts/{account_id}/stop", response_model=AccountStatusResponse)
    async def stop_account(account_id: str) -> dict:
        """Stop a running account."""
        try:
            status = await app.stop_account(account_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown account {account_id}")
        except Exception as e:
            logger.error("Failed to stop %s: %s", account_id, e, exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        return status.snapshot()

    return router
