"""
DMN / webhook routes.

  GET|POST /api/v1/webhook         - gateway notifications, always answered 200 "OK"
  GET      /api/v1/webhooks        - stored notifications, newest first
  POST     /api/v1/webhooks/clear  - empty the store
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from app.api.deps import get_webhook_store
from app.schemas.webhook import WebhookClearResponse, WebhookListResponse
from app.services.webhook_service import WebhookStore, ingest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.api_route(
    "/webhook",
    methods=["GET", "POST"],
    response_class=PlainTextResponse,
    summary="Receive gateway DMNs",
)
async def receive_webhook(
    request: Request,
    store: WebhookStore = Depends(get_webhook_store),
):
    """
    The gateway retries until it sees a 200, so every outcome (including a
    body that cannot be parsed) is acknowledged with ``OK``.
    """
    try:
        raw_body = (await request.body()).decode("utf-8", errors="replace")
        ingest(
            store,
            request.method,
            request.headers.get("content-type", ""),
            dict(request.query_params),
            raw_body,
        )
    except Exception as e:
        logger.error(f"[webhook] failed to store notification: {e}")

    return PlainTextResponse("OK", status_code=200)


@router.get("/webhooks", response_model=WebhookListResponse)
async def list_webhooks(store: WebhookStore = Depends(get_webhook_store)):
    webhooks = store.list()
    return WebhookListResponse(webhooks=webhooks, count=len(webhooks))


@router.post("/webhooks/clear", response_model=WebhookClearResponse)
async def clear_webhooks(store: WebhookStore = Depends(get_webhook_store)):
    cleared = store.clear()
    logger.info(f"[webhook] cleared {cleared} stored notifications")
    return WebhookClearResponse(success=True, cleared=cleared)
