"""
Pydantic models for the flow-trigger routes.

Every request carries an ``env`` block with the merchant credentials; the
orchestrators validate its presence themselves so that a missing credential
is reported as a 400 with a readable message instead of a schema error.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from app.schemas.common import CamelModel
from app.services.endpoint_specs import HashAlgorithm


def _stringify(v: Any) -> Any:
    # Amounts arrive as numbers from some clients; the gateway wants strings.
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return str(v)
    return v


# ──────────────────────────────────────────────────────────────────────
#  Shared blocks
# ──────────────────────────────────────────────────────────────────────


class EnvConfig(CamelModel):
    """Merchant credentials and target gateway for one request."""

    merchant_id: str = ""
    merchant_site_id: str = ""
    merchant_key: str = Field("", repr=False)
    base_url: Optional[str] = None
    checksum_algorithm: Optional[HashAlgorithm] = None

    @field_validator("merchant_id", "merchant_site_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _stringify(v)


class CardDetails(CamelModel):
    number: str = ""
    holder_name: str = ""
    exp_month: str = ""
    exp_year: str = ""
    cvv: str = Field("", repr=False)

    @field_validator("number", "exp_month", "exp_year", "cvv", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Any:
        return _stringify(v)


class ThreeDOptions(CamelModel):
    """Browser-flow knobs for the 3DS payment call."""

    platform_type: Literal["01", "02"] = "02"
    challenge_preference: Literal["01", "02", "03", "04"] = "01"
    challenge_window_size: Literal["01", "02", "03", "04", "05"] = "05"
    browser_details_mode: Literal["full", "minimal", "omit"] = "full"
    method_notification: Literal["on", "off"] = "on"
    method_completion_ind: Optional[Literal["Y", "N", "U", "auto"]] = None
    notification_url_key: Literal[
        "notificationURL", "notificationUrl", "NotificationUrl"
    ] = "notificationURL"


class AmountMixin(CamelModel):
    amount: str = ""
    currency: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        return _stringify(v)


# ──────────────────────────────────────────────────────────────────────
#  Environment / session
# ──────────────────────────────────────────────────────────────────────


class EnvTestRequest(CamelModel):
    env: Optional[EnvConfig] = None


class EnvTestResponse(CamelModel):
    success: bool
    message: str
    session_token: Optional[str] = None
    debug: Dict[str, Any] = {}


# ──────────────────────────────────────────────────────────────────────
#  Card payments / 3DS
# ──────────────────────────────────────────────────────────────────────


class ThreeDSPaymentRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    card: Optional[CardDetails] = None
    notification_url: Optional[str] = None
    session_token: Optional[str] = None
    three_d: Optional[ThreeDOptions] = None


class LiabilityShiftRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    session_token: Optional[str] = None
    related_transaction_id: Optional[str] = None
    card: Optional[CardDetails] = None


class Authorize3dRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    session_token: Optional[str] = None
    card: Optional[CardDetails] = None
    notification_url: Optional[str] = None


class Verify3dRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    session_token: Optional[str] = None
    related_transaction_id: Optional[str] = None
    card: Optional[CardDetails] = None


class PaymentStatusRequest(CamelModel):
    env: Optional[EnvConfig] = None
    session_token: Optional[str] = None


class TransactionDetailsRequest(CamelModel):
    env: Optional[EnvConfig] = None
    transaction_id: Optional[str] = None


class CardDetailsRequest(CamelModel):
    env: Optional[EnvConfig] = None
    card_number: Optional[str] = None
    session_token: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────
#  Settle / void / refund
# ──────────────────────────────────────────────────────────────────────


class OperationRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    related_transaction_id: Optional[str] = None
    auth_code: Optional[str] = None
    comment: Optional[str] = None
    notification_url: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────
#  Payouts / MCP
# ──────────────────────────────────────────────────────────────────────


class PayoutRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None
    user_payment_option_id: Optional[str] = None


class PayoutStatusRequest(CamelModel):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None
    client_unique_id: Optional[str] = None


class McpRatesRequest(CamelModel):
    env: Optional[EnvConfig] = None
    from_currency: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────
#  APMs
# ──────────────────────────────────────────────────────────────────────


class ApmListRequest(CamelModel):
    env: Optional[EnvConfig] = None
    country_code: Optional[str] = None
    currency_code: Optional[str] = None


class ApmPaymentRequest(AmountMixin):
    env: Optional[EnvConfig] = None
    payment_method: Optional[str] = None
    country: str = ""
    user_token_id: Optional[str] = None
    first_name: str = "Test"
    last_name: str = "User"
    email: str = "test@example.com"
    phone: str = "+1234567890"
    address: str = "123 Test Street"
    city: str = "Berlin"
    zip: str = "10115"
    payment_method_fields: Dict[str, str] = {}


# ──────────────────────────────────────────────────────────────────────
#  Users / UPOs
# ──────────────────────────────────────────────────────────────────────


class CreateUserRequest(CamelModel):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    country_code: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class UpoListRequest(CamelModel):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None


class AddUpoRequest(CamelModel):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None
    card: Optional[CardDetails] = None


class DeleteUpoRequest(CamelModel):
    env: Optional[EnvConfig] = None
    user_token_id: Optional[str] = None
    user_payment_option_id: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────
#  Scenarios / checksum tools
# ──────────────────────────────────────────────────────────────────────


class RunScenarioRequest(CamelModel):
    env: Optional[EnvConfig] = None
    scenario_id: str
    context: Dict[str, Any] = {}


class RunStepRequest(RunScenarioRequest):
    step_id: str


class ChecksumCalculateRequest(CamelModel):
    endpoint: str
    data: Dict[str, Any] = {}
    merchant_key: str = Field("", repr=False)
    algorithm: Optional[HashAlgorithm] = None


class ChecksumVerifyRequest(ChecksumCalculateRequest):
    checksum: str


class ChecksumResponse(CamelModel):
    endpoint: str
    algorithm: HashAlgorithm
    field_order: List[str]
    checksum: Optional[str] = None
    valid: Optional[bool] = None
