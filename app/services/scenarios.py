"""
Scenario catalog.

Each scenario is a fixed list of declarative steps run by the step
executor. Checksum field lists come from the endpoint registry; the
``merchantSecretKey`` entry is replaced by the caller's key at run time.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.exceptions import ScenarioNotFoundError
from app.services.endpoint_specs import field_order
from app.services.step_executor import Scenario, ScenarioStep

# Values a run starts with unless the caller overrides them.
DEFAULT_SEED: Dict[str, Any] = {
    "amount": "10.00",
    "currency": "USD",
    "cardNumber": "4000020951595032",
    "cardHolderName": "John Smith",
    "expMonth": "12",
    "expYear": "30",
    "cvv": "217",
    "firstName": "John",
    "lastName": "Smith",
    "email": "john.smith@example.com",
    "country": "US",
    "userTokenId": "scenario_user",
}


# ──────────────────────────────────────────────────────────────────────
#  Shared template fragments
# ──────────────────────────────────────────────────────────────────────

_MERCHANT = {
    "merchantId": "{{env.merchantId}}",
    "merchantSiteId": "{{env.merchantSiteId}}",
    "clientRequestId": "{{meta.clientRequestId}}",
    "timeStamp": "{{meta.timestamp}}",
}

_CARD = {
    "cardNumber": "{{ctx.cardNumber}}",
    "cardHolderName": "{{ctx.cardHolderName}}",
    "expirationMonth": "{{ctx.expMonth}}",
    "expirationYear": "{{ctx.expYear}}",
    "CVV": "{{ctx.cvv}}",
}

_BILLING = {
    "firstName": "{{ctx.firstName}}",
    "lastName": "{{ctx.lastName}}",
    "email": "{{ctx.email}}",
    "country": "{{ctx.country}}",
}

_BROWSER = {
    "acceptHeader": "text/html,application/xhtml+xml",
    "ip": "192.168.1.1",
    "javaEnabled": "TRUE",
    "javaScriptEnabled": "TRUE",
    "language": "EN",
    "colorDepth": "24",
    "screenHeight": "1080",
    "screenWidth": "1920",
    "timeZone": "0",
    "userAgent": "Mozilla/5.0",
}


def _session_step() -> ScenarioStep:
    return ScenarioStep(
        id="session",
        name="Get Session Token",
        operation="getSessionToken",
        description="Open a session for the following calls",
        body=dict(_MERCHANT),
        checksum_fields=tuple(field_order("getSessionToken")),
        context_writes={"sessionToken": "sessionToken"},
    )


def _init_payment_step() -> ScenarioStep:
    return ScenarioStep(
        id="init",
        name="Init Payment",
        operation="initPayment",
        description="Check 3DS support and fetch the 3DS method URL",
        body={
            **_MERCHANT,
            "sessionToken": "{{ctx.sessionToken}}",
            "userTokenId": "{{ctx.userTokenId}}",
            "amount": "{{ctx.amount}}",
            "currency": "{{ctx.currency}}",
            "paymentOption": {
                "card": {
                    **_CARD,
                    "threeD": {"methodNotificationUrl": "{{ctx.methodNotificationUrl}}"},
                },
            },
            "deviceDetails": {"ipAddress": "192.168.1.1"},
        },
        checksum_fields=tuple(field_order("initPayment")),
        context_writes={
            "transactionId": "initPaymentTransactionId",
            "paymentOption.card.threeD.version": "threeDVersion",
        },
    )


def _payment_step(challenge_preference: str, name: str) -> ScenarioStep:
    return ScenarioStep(
        id="payment",
        name=name,
        operation="payment.do",
        description="Authorize with 3DS data; may return a challenge",
        body={
            **_MERCHANT,
            "sessionToken": "{{ctx.sessionToken}}",
            "userTokenId": "{{ctx.userTokenId}}",
            "amount": "{{ctx.amount}}",
            "currency": "{{ctx.currency}}",
            "transactionType": "Auth",
            "relatedTransactionId": "{{ctx.initPaymentTransactionId}}",
            "paymentOption": {
                "card": {
                    **_CARD,
                    "threeD": {
                        "methodCompletionInd": "U",
                        "version": "{{ctx.threeDVersion}}",
                        "notificationURL": "{{ctx.notificationUrl}}",
                        "merchantURL": "{{ctx.merchantUrl}}",
                        "platformType": "02",
                        "v2AdditionalParams": {
                            "challengePreference": challenge_preference,
                            "challengeWindowSize": "05",
                        },
                        "browserDetails": dict(_BROWSER),
                    },
                },
            },
            "billingAddress": dict(_BILLING),
            "deviceDetails": {"ipAddress": "192.168.1.1"},
        },
        checksum_fields=tuple(field_order("payment.do")),
        context_writes={
            "transactionId": "paymentTransactionId",
            "authCode": "authCode",
            "transactionStatus": "transactionStatus",
        },
    )


def _settle_step() -> ScenarioStep:
    return ScenarioStep(
        id="settle",
        name="Settle Transaction",
        operation="settleTransaction",
        description="Capture the authorized amount",
        body={
            **_MERCHANT,
            "clientUniqueId": "CU_{{meta.timestamp}}",
            "amount": "{{ctx.amount}}",
            "currency": "{{ctx.currency}}",
            "relatedTransactionId": "{{ctx.paymentTransactionId}}",
            "authCode": "{{ctx.authCode}}",
        },
        checksum_fields=tuple(field_order("settleTransaction")),
        context_writes={"transactionId": "settleTransactionId"},
    )


def _authorize3d_step() -> ScenarioStep:
    return ScenarioStep(
        id="authorize3d",
        name="Authorize 3D",
        operation="authorize3d",
        description="Run 3DS authentication without charging",
        body={
            **_MERCHANT,
            "sessionToken": "{{ctx.sessionToken}}",
            "userTokenId": "{{ctx.userTokenId}}",
            "amount": "{{ctx.amount}}",
            "currency": "{{ctx.currency}}",
            "paymentOption": {
                "card": {
                    **_CARD,
                    "threeD": {
                        "methodCompletionInd": "U",
                        "notificationURL": "{{ctx.notificationUrl}}",
                        "merchantURL": "{{ctx.merchantUrl}}",
                        "platformType": "02",
                        "v2AdditionalParams": {
                            "challengePreference": "01",
                            "challengeWindowSize": "05",
                        },
                        "browserDetails": dict(_BROWSER),
                    },
                },
            },
            "billingAddress": dict(_BILLING),
            "deviceDetails": {"ipAddress": "192.168.1.1"},
        },
        checksum_fields=tuple(field_order("authorize3d")),
        context_writes={
            "transactionId": "relatedTransactionId",
            "paymentOption.card.threeD.version": "threeDVersion",
        },
    )


# ──────────────────────────────────────────────────────────────────────
#  Catalog
# ──────────────────────────────────────────────────────────────────────

SCENARIOS: Dict[str, Scenario] = {
    s.id: s
    for s in (
        Scenario(
            id="3ds-frictionless",
            name="3DS Frictionless Flow",
            description="Authentication waived by issuer",
            steps=(
                _session_step(),
                _init_payment_step(),
                _payment_step("02", "Payment (Frictionless)"),
            ),
        ),
        Scenario(
            id="3ds-challenge",
            name="3DS Challenge Flow",
            description="Full 3DS authentication with challenge popup",
            steps=(
                _session_step(),
                _init_payment_step(),
                _payment_step("04", "Payment (Challenge)"),
            ),
        ),
        Scenario(
            id="auth-settle",
            name="Auth + Settle",
            description="Two-step capture: authorize then settle",
            steps=(
                _session_step(),
                _init_payment_step(),
                _payment_step("02", "Payment (Auth)"),
                _settle_step(),
            ),
        ),
        Scenario(
            id="mpi-only",
            name="MPI-Only Flow",
            description="Get 3DS authentication data (eci, cavv) without payment",
            category="3ds",
            steps=(
                _session_step(),
                _authorize3d_step(),
            ),
        ),
    )
}


def list_scenarios() -> List[Scenario]:
    return list(SCENARIOS.values())


def get_scenario(scenario_id: str) -> Scenario:
    scenario = SCENARIOS.get(scenario_id)
    if scenario is None:
        raise ScenarioNotFoundError(
            f"Scenario not found: {scenario_id}",
            details={"scenarioId": scenario_id, "available": sorted(SCENARIOS)},
        )
    return scenario


def build_seed(
    overrides: Optional[Dict[str, Any]] = None,
    notification_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Default seed + caller overrides; notification URLs derived when absent."""
    seed = {**DEFAULT_SEED, **(overrides or {})}
    if notification_url:
        seed.setdefault("notificationUrl", notification_url)
        seed.setdefault(
            "methodNotificationUrl",
            notification_url.replace("/3ds-notify", "/3ds-method-notify"),
        )
        seed.setdefault("merchantUrl", notification_url.split("/api/")[0])
    return seed
