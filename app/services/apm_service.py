"""
Alternative payment methods: listing and payment.

APM payments are checked against a small rule table (country, currency,
required method fields) before anything is sent to the gateway.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict

from app.core.exceptions import ApmRuleViolation, FlowValidationError
from app.schemas.nuvei import ApmListRequest, ApmPaymentRequest
from app.schemas.scenario import FlowRunResult, FlowStatus
from app.services.flow_runner import FlowRunner, first_present, require_credentials
from app.services.gateway_client import GatewayClient
from app.services.step_executor import extract_path
from app.services.webhook_service import WebhookStore
from app.utils.ids import generate_unique_id

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "DE"
DEFAULT_CURRENCY_CODE = "EUR"
DEFAULT_LANGUAGE_CODE = "en"

# Card-type methods are not APMs and are hidden from the listing.
CARD_METHODS = {"cc_card", "ppp_ApplePay", "ppp_GooglePay"}

APM_DEVICE_IP = "93.146.254.172"

REDIRECT_URL_PATHS = (
    "redirectURL",
    "redirectUrl",
    "paymentOption.redirectUrl",
    "paymentOption.alternativePaymentMethod.redirectUrl",
)


# ══════════════════════════════════════════════════════════════════════
# Rule table
# ══════════════════════════════════════════════════════════════════════


class ApmRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    match: str
    required_fields: Tuple[str, ...] = ()
    countries: Tuple[str, ...] = ()
    currencies: Tuple[str, ...] = ()


# First substring match on the lower-cased method name wins.
APM_RULES: Tuple[ApmRule, ...] = (
    ApmRule(match="ach", required_fields=("AccountNumber", "RoutingNumber", "SECCode"), countries=("US",), currencies=("USD",)),
    ApmRule(match="ideal", required_fields=("BIC",), countries=("NL",), currencies=("EUR",)),
    ApmRule(match="sofort", countries=("AT", "BE", "FR", "DE", "IT", "NL", "SK", "ES", "CH"), currencies=("EUR", "CHF")),
    ApmRule(match="klarna", currencies=("CHF", "CZK", "DKK", "EUR", "GBP", "NOK", "PLN", "RON", "SEK")),
    ApmRule(match="moneybookers", required_fields=("account_id",)),
    ApmRule(match="neteller", required_fields=("account_id", "nettelerAccount")),
    ApmRule(match="paywithbanktransfer", countries=("GB",), currencies=("GBP",)),
    # also covers instant_open_banking
    ApmRule(match="open_banking", required_fields=("bankId",)),
)


def find_rule(payment_method: str) -> Optional[ApmRule]:
    pm = (payment_method or "").lower()
    for rule in APM_RULES:
        if rule.match in pm:
            return rule
    return None


def validate_apm_request(request: ApmPaymentRequest) -> None:
    """
    Country, then currency, then required fields; the first failure raises
    ``ApmRuleViolation``.
    """
    method = request.payment_method or ""
    rule = find_rule(method)
    if rule is None:
        return

    if rule.countries and request.country not in rule.countries:
        raise ApmRuleViolation(
            f"Country {request.country} not supported for {method}",
            details={"paymentMethod": method, "allowedCountries": list(rule.countries)},
        )
    if rule.currencies and request.currency not in rule.currencies:
        raise ApmRuleViolation(
            f"Currency {request.currency} not supported for {method}",
            details={"paymentMethod": method, "allowedCurrencies": list(rule.currencies)},
        )

    missing = [f for f in rule.required_fields if not request.payment_method_fields.get(f)]
    if missing:
        raise ApmRuleViolation(
            f"Missing required fields for {method}: {', '.join(missing)}",
            details={"paymentMethod": method, "missing": missing},
        )


# ══════════════════════════════════════════════════════════════════════
# Flows
# ══════════════════════════════════════════════════════════════════════


async def list_apms(
    request: ApmListRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    runner = FlowRunner("apm-list", "Merchant Payment Methods", env, client)

    session_token = await runner.ensure_session_token()
    if session_token is None:
        runner.error = "Failed to get session token for APMs"
        return runner.finish()

    body = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "countryCode": request.country_code or DEFAULT_COUNTRY_CODE,
        "currencyCode": request.currency_code or DEFAULT_CURRENCY_CODE,
        "languageCode": DEFAULT_LANGUAGE_CODE,
    }
    data = await runner.call(
        "getMerchantPaymentMethods",
        body,
        "getMerchantPaymentMethods",
        "Get Merchant Payment Methods",
    )

    methods = data.get("paymentMethods")
    if isinstance(methods, list):
        methods = [
            m for m in methods
            if not (isinstance(m, dict) and m.get("paymentMethod") in CARD_METHODS)
        ]
    else:
        methods = []

    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"paymentMethods": methods},
    )


def return_urls(public_base_url: str, payment_method: str) -> Dict[str, str]:
    base = public_base_url.rstrip("/")

    def _url(status: str) -> str:
        return f"{base}/apm/return?{urlencode({'status': status, 'paymentMethod': payment_method})}"

    return {
        "successUrl": _url("success"),
        "failureUrl": _url("fail"),
        "pendingUrl": _url("pending"),
    }


def find_redirect_url(data: Any) -> Optional[str]:
    return first_present(extract_path(data, path) for path in REDIRECT_URL_PATHS)


async def run_apm_payment(
    request: ApmPaymentRequest,
    client: GatewayClient,
    store: WebhookStore,
    public_base_url: str,
    webhook_url: str,
) -> FlowRunResult:
    env = require_credentials(request.env)
    if not request.payment_method:
        raise FlowValidationError("Missing paymentMethod")
    validate_apm_request(request)

    method = request.payment_method
    logger.info(f"[nuvei] APM payment {method} {request.amount} {request.currency} {request.country}")

    runner = FlowRunner(
        "apm-payment",
        "APM Payment",
        env,
        client,
        store,
        seed={"paymentMethod": method},
    )
    session_token = await runner.ensure_session_token()
    if session_token is None:
        runner.error = "Failed to get session token for APM payment"
        return runner.finish()

    address = {
        "firstName": request.first_name,
        "lastName": request.last_name,
        "email": request.email,
        "phone": request.phone,
        "address": request.address,
        "city": request.city,
        "zip": request.zip,
        "country": request.country,
    }
    body = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "clientUniqueId": generate_unique_id("CU"),
        "userTokenId": request.user_token_id or request.email or generate_unique_id("UT"),
        "amount": request.amount,
        "currency": request.currency,
        "transactionType": "Sale",
        "paymentOption": {
            "alternativePaymentMethod": {
                "paymentMethod": method,
                **request.payment_method_fields,
            },
        },
        "billingAddress": dict(address),
        "userDetails": dict(address),
        "deviceDetails": {"ipAddress": APM_DEVICE_IP},
        "urlDetails": {
            **return_urls(public_base_url, method),
            "notificationUrl": webhook_url,
        },
    }
    data = await runner.call("payment.do", body, "payment", "APM Payment")
    runner.mirror("APM Payment", "payment.do")

    if runner.halted:
        return runner.finish()

    redirect_url = find_redirect_url(data)
    if redirect_url or data.get("transactionStatus") == "REDIRECT":
        return runner.finish(success=True, data={"redirectUrl": redirect_url})

    success = data.get("status") == "SUCCESS" and data.get("transactionStatus") != "DECLINED"
    return runner.finish(
        success=success,
        status=FlowStatus.COMPLETED if success else FlowStatus.FAILED,
        data={
            "transactionId": data.get("transactionId"),
            "transactionStatus": data.get("transactionStatus"),
        },
    )
