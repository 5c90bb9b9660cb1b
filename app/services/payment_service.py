"""
Card payment flows.

3DS payment:      getSessionToken -> initPayment -> payment.do
Liability shift:  payment.do with the session and init transaction of a
                  completed challenge
MPI-only:         getSessionToken -> authorize3d, then verify3d
Lookups:          getPaymentStatus, getTransactionDetails, getCardDetails

A redirect from payment.do / authorize3d halts the flow and returns the
challenge; nothing here waits for the cardholder.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from app.core.config import settings
from app.core.exceptions import FlowValidationError
from app.schemas.nuvei import (
    Authorize3dRequest,
    CardDetails,
    CardDetailsRequest,
    EnvTestRequest,
    EnvTestResponse,
    LiabilityShiftRequest,
    PaymentStatusRequest,
    ThreeDOptions,
    ThreeDSPaymentRequest,
    TransactionDetailsRequest,
    Verify3dRequest,
)
from app.schemas.scenario import FlowRunResult, FlowStatus
from app.services.flow_runner import FlowRunner, require_credentials, require_fields
from app.services.gateway_client import GatewayClient
from app.services.step_executor import extract_path
from app.services.webhook_service import WebhookStore
from app.utils.ids import generate_unique_id
from app.utils.masking import mask_pan

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════
# Constants
# ══════════════════════════════════════════════════════════════════════

DEVICE_IP = "192.168.1.1"
MERCHANT_URL = "https://example.com"

BROWSER_DETAILS_FULL: Dict[str, str] = {
    "acceptHeader": "text/html,application/xhtml+xml",
    "ip": DEVICE_IP,
    "javaEnabled": "TRUE",
    "javaScriptEnabled": "TRUE",
    "language": "EN",
    "colorDepth": "24",
    "screenHeight": "1080",
    "screenWidth": "1920",
    "timeZone": "0",
    "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

BROWSER_DETAILS_MINIMAL: Dict[str, str] = {
    k: BROWSER_DETAILS_FULL[k]
    for k in ("acceptHeader", "ip", "language", "screenHeight", "screenWidth", "userAgent")
}


# ══════════════════════════════════════════════════════════════════════
# Body helpers
# ══════════════════════════════════════════════════════════════════════


def card_block(card: CardDetails, three_d: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    block: Dict[str, Any] = {
        "cardNumber": card.number,
        "cardHolderName": card.holder_name,
        "expirationMonth": card.exp_month,
        "expirationYear": card.exp_year,
        "CVV": card.cvv,
    }
    if three_d is not None:
        block["threeD"] = three_d
    return block


def billing_address(holder_name: str) -> Dict[str, str]:
    parts = (holder_name or "").split()
    return {
        "firstName": parts[0] if parts else "Test",
        "lastName": " ".join(parts[1:]) or "User",
        "address": "123 Main St",
        "city": "London",
        "country": "GB",
        "email": "test@example.com",
    }


def browser_details(mode: str) -> Optional[Dict[str, str]]:
    if mode == "omit":
        return None
    if mode == "minimal":
        return dict(BROWSER_DETAILS_MINIMAL)
    return dict(BROWSER_DETAILS_FULL)


def resolve_method_completion_ind(option: Optional[str], method_url: Optional[str]) -> str:
    """Explicit Y/N/U wins; otherwise Y when the issuer exposed a 3DS method URL."""
    if option in ("Y", "N", "U"):
        return option
    return "Y" if method_url else "U"


def method_notification_url(notification_url: str) -> str:
    return notification_url.replace("/3ds-notify", "/3ds-method-notify")


def challenge_url(acs_url: str, c_req: str) -> str:
    query = urlencode({"acsUrl": acs_url, "creq": c_req})
    return f"{settings.API_V1_PREFIX}/3ds-challenge?{query}"


def _attach_challenge_url(runner: FlowRunner) -> Dict[str, Any]:
    challenge = runner.challenge
    url = challenge_url(challenge.acs_url, challenge.c_req)
    runner.challenge = challenge.model_copy(update={"challenge_url": url})
    return {"challengeUrl": url, "acsUrl": challenge.acs_url, "cReq": challenge.c_req}


# ══════════════════════════════════════════════════════════════════════
# Flows
# ══════════════════════════════════════════════════════════════════════


async def test_connection(
    request: EnvTestRequest,
    client: GatewayClient,
) -> EnvTestResponse:
    env = require_credentials(request.env)
    runner = FlowRunner("env-test", "Connection Test", env, client)

    body = runner.merchant_fields()
    data = await runner.call("getSessionToken", body, "getSessionToken", "Get Session Token")
    success = data.get("status") == "SUCCESS"

    if success:
        message = "Connection successful"
    else:
        message = str(data.get("reason") or runner.error or "Connection failed")

    return EnvTestResponse(
        success=success,
        message=message,
        session_token=data.get("sessionToken"),
        debug={
            "timestamp": body["timeStamp"],
            "clientRequestId": body["clientRequestId"],
            "nuveiResponse": runner.last_response,
        },
    )


async def run_3ds_payment(
    request: ThreeDSPaymentRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    env = require_credentials(request.env)
    card = request.card or CardDetails()
    require_fields(
        "Missing required fields: card, amount, currency",
        cardNumber=card.number,
        amount=request.amount,
        currency=request.currency,
    )
    options = request.three_d or ThreeDOptions()
    notification_url = request.notification_url or ""
    logger.info(
        f"[nuvei] 3DS payment {request.amount} {request.currency} "
        f"challengePreference={options.challenge_preference}"
    )

    runner = FlowRunner(
        "3ds-payment",
        "3DS Payment",
        env,
        client,
        store,
        seed={
            "amount": request.amount,
            "currency": request.currency,
            "cardNumber": card.number,
            "cardHolder": card.holder_name,
            "sessionToken": request.session_token,
        },
    )

    # Step 1: session
    session_token = await runner.ensure_session_token()
    if session_token is None:
        return runner.finish()

    # Step 2: initPayment
    user_token_id = generate_unique_id("user")
    init_three_d: Dict[str, Any] = {"platformType": options.platform_type}
    if options.method_notification != "off" and notification_url:
        init_three_d["methodNotificationUrl"] = method_notification_url(notification_url)

    init_body = {
        **runner.merchant_fields(),
        "sessionToken": session_token,
        "currency": request.currency,
        "amount": request.amount,
        "userTokenId": user_token_id,
        "paymentOption": {"card": card_block(card, init_three_d)},
        "deviceDetails": {"ipAddress": DEVICE_IP},
    }
    init_data = await runner.call("initPayment", init_body, "initPayment", "Initialize Payment (3DS)")
    if runner.halted:
        runner.error = "Failed to initialize payment"
        return runner.finish()

    init_transaction_id = init_data.get("transactionId")
    three_d_version = extract_path(init_data, "paymentOption.card.threeD.version")
    method_url = extract_path(init_data, "paymentOption.card.threeD.methodUrl")
    method_payload = extract_path(init_data, "paymentOption.card.threeD.methodPayload")
    completion_ind = resolve_method_completion_ind(options.method_completion_ind, method_url)

    ctx = runner.context
    ctx.set("initTransactionId", init_transaction_id)
    ctx.set("threeDVersion", three_d_version)
    ctx.set("methodUrl", method_url)
    ctx.set("methodPayload", method_payload)
    ctx.set("userTokenId", user_token_id)
    ctx.set("methodCompletionInd", completion_ind)
    ctx.set("platformType", options.platform_type)
    ctx.set("challengePreference", options.challenge_preference)
    ctx.set("challengeWindowSize", options.challenge_window_size)
    ctx.set("notificationUrlKeys", [options.notification_url_key])
    ctx.set("methodNotificationUrlMode", options.method_notification)
    ctx.set("browserDetailsMode", options.browser_details_mode)

    # Step 3: payment.do with 3DS data
    three_d: Dict[str, Any] = {
        "methodCompletionInd": completion_ind,
        "version": three_d_version,
        "merchantURL": MERCHANT_URL,
        "platformType": options.platform_type,
        "v2AdditionalParams": {
            "challengePreference": options.challenge_preference,
            "challengeWindowSize": options.challenge_window_size,
        },
    }
    details = browser_details(options.browser_details_mode)
    if details is not None:
        three_d["browserDetails"] = details
    if notification_url:
        three_d[options.notification_url_key] = notification_url

    payment_body: Dict[str, Any] = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "currency": request.currency,
        "amount": request.amount,
        "relatedTransactionId": init_transaction_id,
        "transactionType": "Auth",
        "paymentOption": {"card": card_block(card, three_d)},
        "billingAddress": billing_address(card.holder_name),
        "deviceDetails": {"ipAddress": DEVICE_IP},
        "urlDetails": {"notificationUrl": notification_url},
    }
    payment_data = await runner.call("payment.do", payment_body, "payment", "Payment (3DS)")
    runner.remember(
        payment_data,
        {
            "transactionId": "paymentTransactionId",
            "transactionStatus": "transactionStatus",
            "authCode": "authCode",
        },
    )
    runner.mirror("Payment (3DS)", "payment.do")

    if runner.status is FlowStatus.CHALLENGE_REQUIRED:
        return runner.finish(success=False, data=_attach_challenge_url(runner))
    if runner.halted:
        return runner.finish()

    transaction_status = payment_data.get("transactionStatus")
    final = FlowStatus.COMPLETED if transaction_status == "APPROVED" else FlowStatus.FAILED
    if final is FlowStatus.FAILED:
        runner.error = f"Payment not approved: {transaction_status or 'unknown'}"

    return runner.finish(
        status=final,
        data={
            "transactionId": payment_data.get("transactionId"),
            "transactionStatus": transaction_status,
            "authCode": payment_data.get("authCode"),
        },
    )


async def run_liability_shift(
    request: LiabilityShiftRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    require_fields(
        "Missing sessionToken or relatedTransactionId",
        sessionToken=request.session_token,
        relatedTransactionId=request.related_transaction_id,
    )
    env = require_credentials(request.env)
    card = request.card or CardDetails()

    runner = FlowRunner(
        "liability-shift",
        "Payment (Post 3DS)",
        env,
        client,
        store,
        seed={
            "sessionToken": request.session_token,
            "relatedTransactionId": request.related_transaction_id,
        },
    )

    body = {
        "sessionToken": request.session_token,
        **runner.merchant_fields(),
        "relatedTransactionId": request.related_transaction_id,
        "currency": request.currency,
        "amount": request.amount,
        "transactionType": "Auth",
        "paymentOption": {"card": card_block(card)},
        "billingAddress": billing_address(card.holder_name),
        "deviceDetails": {"ipAddress": DEVICE_IP},
    }
    data = await runner.call("payment.do", body, "payment", "Payment (Post 3DS)")
    runner.mirror("Payment (Post 3DS)", "payment.do")

    success = data.get("status") == "SUCCESS" and data.get("transactionStatus") == "APPROVED"
    if not success and runner.error is None:
        runner.error = f"Payment not approved: {data.get('transactionStatus') or 'unknown'}"

    return runner.finish(
        success=success,
        status=FlowStatus.COMPLETED if success else FlowStatus.FAILED,
        data={
            "transactionId": data.get("transactionId"),
            "authCode": data.get("authCode"),
            "transactionStatus": data.get("transactionStatus"),
        },
    )


async def get_payment_status(
    request: PaymentStatusRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    require_fields("Missing sessionToken", sessionToken=request.session_token)
    env = require_credentials(request.env)
    runner = FlowRunner("payment-status", "Payment Status", env, client, store)

    body = {
        "merchantId": env.merchant_id,
        "merchantSiteId": env.merchant_site_id,
        "sessionToken": request.session_token,
    }
    await runner.call("getPaymentStatus", body, "getPaymentStatus", "Payment Status")
    runner.mirror("Payment Status", "getPaymentStatus")
    return runner.finish()


async def get_transaction_details(
    request: TransactionDetailsRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    require_fields("Missing transactionId", transactionId=request.transaction_id)
    env = require_credentials(request.env)
    runner = FlowRunner("transaction-details", "Transaction Details", env, client, store)

    body = {**runner.merchant_fields(), "transactionId": request.transaction_id}
    await runner.call("getTransactionDetails", body, "getTransactionDetails", "Transaction Details")
    runner.mirror("Transaction Details", "getTransactionDetails")
    return runner.finish()


async def get_card_details(
    request: CardDetailsRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields("Missing cardNumber", cardNumber=request.card_number)

    runner = FlowRunner(
        "card-details",
        "Card Details",
        env,
        client,
        seed={"sessionToken": request.session_token},
    )
    session_token = await runner.ensure_session_token()
    if session_token is None:
        return runner.finish()

    body = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "cardNumber": request.card_number,
    }
    data = await runner.call("getCardDetails", body, "getCardDetails", "Card Details")
    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"maskedCard": mask_pan(request.card_number)},
    )


async def authorize_3d(
    request: Authorize3dRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing required fields: amount, currency, card",
        amount=request.amount,
        currency=request.currency,
        card=request.card,
    )
    card = request.card

    runner = FlowRunner(
        "mpi-authorize",
        "Authorize 3D",
        env,
        client,
        seed={"sessionToken": request.session_token, "cardNumber": card.number},
    )
    session_token = await runner.ensure_session_token()
    if session_token is None:
        return runner.finish()

    three_d = {
        "methodCompletionInd": "U",
        "platformType": "02",
        "notificationURL": request.notification_url or "",
        "browserDetails": dict(BROWSER_DETAILS_FULL),
    }
    body = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "currency": request.currency,
        "amount": request.amount,
        "userTokenId": generate_unique_id("user"),
        "paymentOption": {"card": card_block(card, three_d)},
        "billingAddress": billing_address(card.holder_name),
        "deviceDetails": {"ipAddress": DEVICE_IP},
    }
    data = await runner.call("authorize3d", body, "authorize3d", "Authorize 3D")
    runner.remember(data, {"transactionId": "relatedTransactionId"})

    extra: Dict[str, Any] = {"sessionToken": session_token}
    if runner.status is FlowStatus.CHALLENGE_REQUIRED:
        extra.update(_attach_challenge_url(runner))

    return runner.finish(success=data.get("status") == "SUCCESS", data=extra)


def extract_mpi_data(data: Any) -> Optional[Dict[str, Any]]:
    three_d = extract_path(data, "paymentOption.card.threeD")
    if not isinstance(three_d, dict):
        return None
    return {
        "eci": three_d.get("eci"),
        "cavv": three_d.get("cavv"),
        "dsTransID": three_d.get("dsTransID"),
        "threeDSVersion": three_d.get("version"),
        "authenticationStatus": three_d.get("threeDReasonId"),
    }


async def verify_3d(
    request: Verify3dRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = request.env
    if env is None or not env.merchant_id or not env.merchant_site_id:
        # verify3d is unsigned; the merchant key is not needed.
        raise FlowValidationError("Missing merchant credentials")
    require_fields(
        "Missing required fields: sessionToken, relatedTransactionId",
        sessionToken=request.session_token,
        relatedTransactionId=request.related_transaction_id,
    )
    card = request.card or CardDetails()

    runner = FlowRunner(
        "mpi-verify",
        "Verify 3D",
        env,
        client,
        seed={"sessionToken": request.session_token},
    )
    body = {
        "sessionToken": request.session_token,
        "merchantId": env.merchant_id,
        "merchantSiteId": env.merchant_site_id,
        "clientRequestId": runner.merchant_fields()["clientRequestId"],
        "relatedTransactionId": request.related_transaction_id,
        "currency": request.currency,
        "amount": request.amount,
        "userTokenId": generate_unique_id("user"),
        "paymentOption": {"card": card_block(card)},
        "billingAddress": billing_address(card.holder_name),
        "deviceDetails": {"ipAddress": DEVICE_IP},
    }
    data = await runner.call("verify3d", body, "verify3d", "Verify 3D")
    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"mpiData": extract_mpi_data(data)},
    )
