"""
Follow-up operations on an existing transaction: settle, void, refund.

All three share one body shape and one checksum order; only the target
operation, the amount handling and the event-log label differ.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, NamedTuple

from app.schemas.nuvei import OperationRequest
from app.schemas.scenario import FlowRunResult
from app.services.flow_runner import FlowRunner, require_credentials, require_fields
from app.services.gateway_client import GatewayClient
from app.services.webhook_service import WebhookStore
from app.utils.ids import generate_request_id

logger = logging.getLogger(__name__)


class OperationKind(NamedTuple):
    operation: str
    step_name: str
    mirror_label: str
    sends_amount: bool


SETTLE = OperationKind("settleTransaction", "Settle Transaction", "Settle Response", True)
VOID = OperationKind("voidTransaction", "Void Transaction", "Void Response", False)
REFUND = OperationKind("refundTransaction", "Refund Transaction", "Refund Response", True)

OPERATIONS: Dict[str, OperationKind] = {
    "settle": SETTLE,
    "void": VOID,
    "refund": REFUND,
}


def build_operation_body(
    runner: FlowRunner,
    kind: OperationKind,
    request: OperationRequest,
) -> Dict[str, Any]:
    merchant = runner.merchant_fields()
    body: Dict[str, Any] = {
        "merchantId": merchant["merchantId"],
        "merchantSiteId": merchant["merchantSiteId"],
        "clientUniqueId": generate_request_id(),
    }
    if kind.sends_amount:
        body["amount"] = request.amount
        body["currency"] = request.currency
    body["relatedTransactionId"] = request.related_transaction_id
    body["timeStamp"] = merchant["timeStamp"]

    if request.auth_code:
        body["authCode"] = request.auth_code
    if request.comment:
        body["comment"] = request.comment
    if request.notification_url:
        body["urlDetails"] = {"notificationUrl": request.notification_url}
    return body


async def run_operation(
    kind: OperationKind,
    request: OperationRequest,
    client: GatewayClient,
    store: WebhookStore,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing relatedTransactionId",
        relatedTransactionId=request.related_transaction_id,
    )

    logger.info(
        f"[nuvei] {kind.operation} for transaction {request.related_transaction_id}"
    )

    runner = FlowRunner(
        kind.operation,
        kind.step_name,
        env,
        client,
        store,
        seed={"relatedTransactionId": request.related_transaction_id},
    )
    body = build_operation_body(runner, kind, request)
    data = await runner.call(kind.operation, body, kind.operation, kind.step_name)
    runner.mirror(kind.mirror_label, kind.operation)

    result: Dict[str, Any] = {"transactionId": data.get("transactionId")}
    if kind is SETTLE:
        result["authCode"] = data.get("authCode")

    return runner.finish(success=data.get("status") == "SUCCESS", data=result)


async def settle(request: OperationRequest, client: GatewayClient, store: WebhookStore) -> FlowRunResult:
    return await run_operation(SETTLE, request, client, store)


async def void(request: OperationRequest, client: GatewayClient, store: WebhookStore) -> FlowRunResult:
    return await run_operation(VOID, request, client, store)


async def refund(request: OperationRequest, client: GatewayClient, store: WebhookStore) -> FlowRunResult:
    return await run_operation(REFUND, request, client, store)
