"""
Alternative payment method routes.

  POST /api/v1/apms         - merchant APMs (card methods filtered out)
  POST /api/v1/apm/payment  - APM payment; returns the redirect URL for the popup
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import (
    get_gateway_client,
    get_public_base_url,
    get_webhook_store,
    get_webhook_url,
)
from app.api.errors import guarded
from app.schemas.nuvei import ApmListRequest, ApmPaymentRequest
from app.schemas.scenario import FlowRunResult
from app.services import apm_service
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/apms", response_model=FlowRunResult)
async def list_apms(
    body: ApmListRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Get APMs", apm_service.list_apms(body, client))


@router.post(
    "/apm/payment",
    response_model=FlowRunResult,
    summary="Start an APM payment",
    description=(
        "Validates the method's country, currency and required fields "
        "before contacting the gateway."
    ),
)
async def apm_payment(
    body: ApmPaymentRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
    public_base_url: str = Depends(get_public_base_url),
    webhook_url: str = Depends(get_webhook_url),
):
    return await guarded(
        "APM Payment",
        apm_service.run_apm_payment(body, client, store, public_base_url, webhook_url),
    )
