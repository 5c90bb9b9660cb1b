"""
3-D Secure routes.

  POST /api/v1/3ds/authorize            - MPI-only: getSessionToken → authorize3d
  POST /api/v1/3ds/verify               - MPI-only: verify3d after the challenge
  GET  /api/v1/3ds-challenge            - HTML page auto-posting the CReq to the ACS
  POST /api/v1/3ds-notify               - challenge result; HTML page posting it to the opener
  POST /api/v1/3ds-method-notify        - method (fingerprint) completion ack
  POST /api/v1/3ds-challenge-notify     - challenge completion ack
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from app.api.deps import get_gateway_client, get_webhook_store
from app.api.errors import guarded
from app.core.templates import templates
from app.schemas.nuvei import Authorize3dRequest, Verify3dRequest
from app.schemas.scenario import FlowRunResult
from app.services import payment_service
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import (
    WebhookStore,
    ingest,
    is_authenticated,
    parse_challenge_result,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS_COLOR = "#10b981"
FAILURE_COLOR = "#ef4444"


@router.post("/3ds/authorize", response_model=FlowRunResult)
async def authorize_3d(
    body: Authorize3dRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Authorize3d", payment_service.authorize_3d(body, client))


@router.post("/3ds/verify", response_model=FlowRunResult)
async def verify_3d(
    body: Verify3dRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Verify3d", payment_service.verify_3d(body, client))


@router.get("/3ds-challenge", response_class=HTMLResponse)
async def challenge_redirect(
    request: Request,
    acs_url: Optional[str] = Query(None, alias="acsUrl"),
    creq: Optional[str] = Query(None),
):
    if not acs_url or not creq:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing acsUrl or creq"},
        )

    return templates.TemplateResponse(
        request,
        "challenge_redirect.html",
        {"acs_url": acs_url, "creq": creq},
    )


@router.post("/3ds-notify", response_class=HTMLResponse)
async def three_ds_notify(
    request: Request,
    store: WebhookStore = Depends(get_webhook_store),
):
    """
    The ACS posts the final CRes here inside the challenge popup. The
    notification is stored like any DMN and the parsed result is handed to
    the opener window.
    """
    raw_body = (await request.body()).decode("utf-8", errors="replace")
    record = ingest(
        store,
        request.method,
        request.headers.get("content-type", ""),
        dict(request.query_params),
        raw_body,
    )

    payload = {k: v for k, v in record.payload.items() if not k.startswith("_")}
    result = parse_challenge_result(payload)
    success = is_authenticated(result)

    logger.info(f"[webhook] 3DS notify transStatus={result.get('transStatus')}")

    return templates.TemplateResponse(
        request,
        "three_ds_complete.html",
        {
            "success": success,
            "color": SUCCESS_COLOR if success else FAILURE_COLOR,
            "result": result,
            "payload": payload,
        },
    )


@router.post("/3ds-method-notify", response_class=PlainTextResponse)
async def three_ds_method_notify():
    return PlainTextResponse("OK")


@router.post("/3ds-challenge-notify", response_class=PlainTextResponse)
async def three_ds_challenge_notify():
    return PlainTextResponse("OK")
