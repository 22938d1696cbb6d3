"""Webhook delivery route."""

from fastapi import APIRouter, HTTPException, Request

from ...app import Application
from ...logging_config import get_logger
from ...models import ResultKind

logger = get_logger(__name__)


def create_webhook_router(app: Application) -> APIRouter:
    """Create webhook router."""
    router = APIRouter(prefix="/feishu", tags=["webhook"])

    @router.post("/webhook/{account_id}")
    async def receive_event(account_id: str, request: Request) -> dict:
        """Receive one event callback or URL verification request."""
        body = await request.body()

        if not app.verifier.verify(
            request.headers.get("X-Lark-Request-Timestamp", ""),
            request.headers.get("X-Lark-Request-Nonce", ""),
            body,
            request.headers.get("X-Lark-Signature", ""),
        ):
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            result = await app.handle_webhook(account_id, body)
        except KeyError:
            raise HTTPException(
                status_code=404, detail=f"Account {account_id} is not running"
            )

        if result.kind == ResultKind.CHALLENGE:
            return {"challenge": result.challenge}
        # Dropped payloads are acknowledged too
        return {"code": 0}

    return router
