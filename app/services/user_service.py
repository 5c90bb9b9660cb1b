"""
Gateway users and their stored payment options (UPOs).

Users created successfully through the gateway are also kept in an
in-process ``UserRegistry`` so the UI can offer them for payouts.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from app.schemas.nuvei import AddUpoRequest, CreateUserRequest, DeleteUpoRequest, UpoListRequest
from app.schemas.scenario import FlowRunResult
from app.services.flow_runner import FlowRunner, require_credentials, require_fields
from app.services.gateway_client import GatewayClient
from app.utils.ids import iso_now

logger = logging.getLogger(__name__)


class RegisteredUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_token_id: str
    email: str
    first_name: str
    last_name: str
    country_code: str
    created_at: str


class UserRegistry:
    def __init__(self) -> None:
        self._users: Dict[str, RegisteredUser] = {}
        self._lock = threading.Lock()

    def record(self, user: RegisteredUser) -> RegisteredUser:
        with self._lock:
            self._users[user.user_token_id] = user
        return user

    def get(self, user_token_id: str) -> Optional[RegisteredUser]:
        with self._lock:
            return self._users.get(user_token_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)


user_registry = UserRegistry()


async def create_user(
    request: CreateUserRequest,
    client: GatewayClient,
    registry: UserRegistry,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing required fields: userTokenId, email, firstName, lastName, countryCode",
        userTokenId=request.user_token_id,
        email=request.email,
        firstName=request.first_name,
        lastName=request.last_name,
        countryCode=request.country_code,
    )

    runner = FlowRunner(
        "create-user",
        "Create User",
        env,
        client,
        seed={"userTokenId": request.user_token_id},
    )
    body: Dict[str, Any] = {
        **runner.merchant_fields(),
        "userTokenId": request.user_token_id,
        "email": request.email,
        "countryCode": request.country_code,
        "firstName": request.first_name,
        "lastName": request.last_name,
    }
    for key, value in (
        ("phone", request.phone),
        ("address", request.address),
        ("city", request.city),
        ("state", request.state),
        ("zip", request.zip),
    ):
        if value:
            body[key] = value

    data = await runner.call("createUser", body, "createUser", "Create User")
    success = data.get("status") == "SUCCESS"

    if success:
        registry.record(
            RegisteredUser(
                user_token_id=request.user_token_id,
                email=request.email,
                first_name=request.first_name,
                last_name=request.last_name,
                country_code=request.country_code,
                created_at=iso_now(),
            )
        )
        logger.info(f"[nuvei] user {request.user_token_id} created ({len(registry)} known)")

    return runner.finish(
        success=success,
        data={"userTokenId": data.get("userTokenId") or request.user_token_id},
    )


async def list_upos(
    request: UpoListRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields("Missing userTokenId", userTokenId=request.user_token_id)

    runner = FlowRunner("upo-list", "Get User UPOs", env, client)
    body = {
        **runner.merchant_fields(),
        "userTokenId": request.user_token_id,
    }
    data = await runner.call("getUserUPOs", body, "getUserUPOs", "Get User UPOs")

    upos = data.get("paymentMethods")
    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"paymentMethods": upos if isinstance(upos, list) else []},
    )


async def add_upo_credit_card(
    request: AddUpoRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing userTokenId or card details",
        userTokenId=request.user_token_id,
        card=request.card,
    )

    card = request.card
    runner = FlowRunner("upo-add", "Add UPO Credit Card", env, client)
    body = {
        **runner.merchant_fields(),
        "userTokenId": request.user_token_id,
        "ccCardNumber": card.number,
        "ccExpMonth": card.exp_month,
        "ccExpYear": card.exp_year,
        "ccNameOnCard": card.holder_name,
    }
    data = await runner.call(
        "addUPOCreditCard", body, "addUPOCreditCard", "Add UPO Credit Card"
    )
    return runner.finish(
        success=data.get("status") == "SUCCESS",
        data={"userPaymentOptionId": data.get("userPaymentOptionId")},
    )


async def delete_upo(
    request: DeleteUpoRequest,
    client: GatewayClient,
) -> FlowRunResult:
    env = require_credentials(request.env)
    require_fields(
        "Missing userTokenId or userPaymentOptionId",
        userTokenId=request.user_token_id,
        userPaymentOptionId=request.user_payment_option_id,
    )

    runner = FlowRunner("upo-delete", "Delete UPO", env, client)
    body = {
        **runner.merchant_fields(),
        "userTokenId": request.user_token_id,
        "userPaymentOptionId": request.user_payment_option_id,
    }
    data = await runner.call("deleteUPO", body, "deleteUPO", "Delete UPO")
    return runner.finish(success=data.get("status") == "SUCCESS")
