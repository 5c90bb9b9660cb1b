"""Payouts to a stored payment option, payout status, and MCP rate lookup."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from app.schemas.nuvei import McpRatesRequest, PayoutRequest, PayoutStatusRequest
from app.schemas.scenario import FlowRunResult
from app.services.flow_runner import FlowRunner, require_credentials, require_fields
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore
from app.utils.ids import generate_unique_id

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

MCP_TARGET_CURRENCIES = ["EUR", "GBP", "CAD", "AUD", "JPY", "CHF", "SEK", "NOK", "DKK", "PLN"]
MCP_PAYMENT_METHODS = ["cc_card"]


async def run_payout(
    request: PayoutRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing required payout fields",
        userTokenId=request.user_token_id,
        amount=request.amount,
        userPaymentOptionId=request.user_payment_option_id,
    )

    runner = FlowRunner(
        "payout",
        "Payout",
        env,
        client,
        store,
        seed={"userTokenId": request.user_token_id},
    )
    body = {
        **runner.merchant_fields(),
        "clientUniqueId": generate_unique_id("payout"),
        "userTokenId": request.user_token_id,
        "userPaymentOption": {"userPaymentOptionId": request.user_payment_option_id},
        "amount": request.amount,
        "currency": request.currency or DEFAULT_CURRENCY,
    }
    data = await runner.call("payout.do", body, "payout", "Payout")
    runner.mirror("Payout Response", "payout")

    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={
            "transactionId": data.get("transactionId"),
            "transactionStatus": data.get("transactionStatus"),
            "clientUniqueId": body["clientUniqueId"],
        },
    )


async def get_payout_status(
    request: PayoutStatusRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields("Missing userTokenId", userTokenId=request.user_token_id)

    runner = FlowRunner("payout-status", "Payout Status", env, client)
    body: Dict[str, Any] = {
        **runner.merchant_fields(),
        "userTokenId": request.user_token_id,
    }
    if request.client_unique_id:
        body["clientUniqueId"] = request.client_unique_id

    data = await runner.call("getPayoutStatus", body, "getPayoutStatus", "Payout Status")
    return runner.finish(success=data.get("status") == "SUCCESS")


def flatten_mcp_rates(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """First ``rates`` group -> ``[{currency, rate}]`` with float rates."""
    rates = data.get("rates")
    if not isinstance(rates, list) or not rates:
        return []
    by_currency = rates[0].get("ratesByCurrencies") if isinstance(rates[0], dict) else None
    if not isinstance(by_currency, list):
        return []

    flattened: List[Dict[str, Any]] = []
    for entry in by_currency:
        if not isinstance(entry, dict):
            continue
        try:
            rate = float(entry.get("rate"))
        except (TypeError, ValueError):
            rate = None
        flattened.append({"currency": entry.get("currency"), "rate": rate})
    return flattened


async def get_mcp_rates(
    request: McpRatesRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    runner = FlowRunner("mcp-rates", "MCP Rates", env, client)

    session_token = await runner.ensure_session_token()
    if session_token is None:
        return runner.finish()

    body = {
        "sessionToken": session_token,
        **runner.merchant_fields(),
        "clientUniqueId": generate_unique_id("mcp"),
        "fromCurrency": request.from_currency or DEFAULT_CURRENCY,
        "toCurrency": list(MCP_TARGET_CURRENCIES),
        "paymentMethods": list(MCP_PAYMENT_METHODS),
    }
    data = await runner.call("getMcpRates", body, "getMcpRates", "MCP Rates")
    mcp_rates = flatten_mcp_rates(data)
    logger.info(f"[nuvei] MCP rates from {body['fromCurrency']}: {len(mcp_rates)} currencies")

    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"mcpRates": mcp_rates},
    )
