"""
Follow-up operations on an existing transaction.

  POST /api/v1/operations/settle
  POST /api/v1/operations/void
  POST /api/v1/operations/refund
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client, get_webhook_store
from app.api.errors import guarded
from app.schemas.nuvei import OperationRequest
from app.schemas.scenario import FlowRunResult
from app.services import operations_service
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/settle", response_model=FlowRunResult)
async def settle(
    body: OperationRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded("Settle", operations_service.settle(body, client, store))


@router.post("/void", response_model=FlowRunResult)
async def void(
    body: OperationRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded("Void", operations_service.void(body, client, store))


@router.post("/refund", response_model=FlowRunResult)
async def refund(
    body: OperationRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded("Refund", operations_service.refund(body, client, store))
