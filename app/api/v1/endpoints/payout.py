"""
Payout and multi-currency routes.

  POST /api/v1/payout         - payout.do to a stored payment option
  POST /api/v1/payout/status  - getPayoutStatus
  POST /api/v1/mcp/rates      - getMcpRates
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client, get_webhook_store
from app.api.errors import guarded
from app.schemas.nuvei import McpRatesRequest, PayoutRequest, PayoutStatusRequest
from app.schemas.scenario import FlowRunResult
from app.services import payout_service
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payout", response_model=FlowRunResult)
async def payout(
    body: PayoutRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded("Payout", payout_service.run_payout(body, client, store))


@router.post("/payout/status", response_model=FlowRunResult)
async def payout_status(
    body: PayoutStatusRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Payout status", payout_service.get_payout_status(body, client))


@router.post("/mcp/rates", response_model=FlowRunResult)
async def mcp_rates(
    body: McpRatesRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("MCP rates", payout_service.get_mcp_rates(body, client))
