"""
Card payment routes.

  POST /api/v1/payment/3ds              - getSessionToken → initPayment → payment.do
  POST /api/v1/payment/liability-shift  - payment.do after a completed challenge
  POST /api/v1/payment/status           - getPaymentStatus
  POST /api/v1/transaction/details      - getTransactionDetails
  POST /api/v1/card/details             - getCardDetails (BIN lookup)
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client, get_notification_url, get_webhook_store
from app.api.errors import guarded
from app.schemas.nuvei import (
    CardDetailsRequest,
    LiabilityShiftRequest,
    PaymentStatusRequest,
    ThreeDSPaymentRequest,
    TransactionDetailsRequest,
)
from app.schemas.scenario import FlowRunResult
from app.services import payment_service
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/payment/3ds",
    response_model=FlowRunResult,
    summary="Run a 3-D Secure card payment",
    description=(
        "Session token, initPayment, then payment.do. Stops with "
        "status=challenge_required when the issuer asks for a challenge."
    ),
)
async def payment_3ds(
    body: ThreeDSPaymentRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
    notification_url: str = Depends(get_notification_url),
):
    if not body.notification_url:
        body = body.model_copy(update={"notification_url": notification_url})
    return await guarded(
        "3DS payment",
        payment_service.run_3ds_payment(body, client, store),
    )


@router.post("/payment/liability-shift", response_model=FlowRunResult)
async def payment_liability_shift(
    body: LiabilityShiftRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    """Completes a challenged payment with the session and initPayment transaction."""
    return await guarded(
        "Liability shift payment",
        payment_service.run_liability_shift(body, client, store),
    )


@router.post("/payment/status", response_model=FlowRunResult)
async def payment_status(
    body: PaymentStatusRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded(
        "Payment status",
        payment_service.get_payment_status(body, client, store),
    )


@router.post("/transaction/details", response_model=FlowRunResult)
async def transaction_details(
    body: TransactionDetailsRequest,
    client: GatewayClient = Depends(get_gateway_client),
    store: WebhookStore = Depends(get_webhook_store),
):
    return await guarded(
        "Transaction details",
        payment_service.get_transaction_details(body, client, store),
    )


@router.post("/card/details", response_model=FlowRunResult)
async def card_details(
    body: CardDetailsRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded(
        "Card details",
        payment_service.get_card_details(body, client),
    )
