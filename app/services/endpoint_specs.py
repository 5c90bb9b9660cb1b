"""
Nuvei REST API endpoint registry.

Static table of every gateway operation the emulator calls: path, HTTP
method, and the authoritative checksum field order. The checksum engine and
the orchestrators read field order from here and nowhere else.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class HashAlgorithm(str, Enum):
    SHA256 = "SHA256"
    SHA1 = "SHA1"


class FieldSource(str, Enum):
    REQUEST = "request"
    CALLER_SECRET = "callerSecret"


class EndpointCategory(str, Enum):
    SESSION = "session"
    PAYMENT = "payment"
    OPERATION = "operation"
    USER = "user"
    PAYOUT = "payout"
    LOOKUP = "lookup"
    APM = "apm"
    THREE_DS = "3ds"


class ChecksumField(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    required: bool
    source: FieldSource = FieldSource.REQUEST


class EndpointSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    http_method: str = "POST"
    description: str = ""
    category: EndpointCategory
    requires_checksum: bool
    requires_session_token: bool
    checksum_fields: Tuple[ChecksumField, ...] = ()

    @property
    def sandbox_url(self) -> str:
        return f"{SANDBOX_HOST}/ppp/api/v1{self.path}"


SECRET_FIELD = "merchantSecretKey"

# Gateway sandbox host shown in registry listings.
SANDBOX_HOST = "https://ppp-test.safecharge.com"


def _req(name: str) -> ChecksumField:
    return ChecksumField(name=name, required=True)


def _opt(name: str) -> ChecksumField:
    return ChecksumField(name=name, required=False)


_SECRET = ChecksumField(name=SECRET_FIELD, required=True, source=FieldSource.CALLER_SECRET)

# merchantId + merchantSiteId + clientRequestId + timeStamp + secret
_BASIC_FIELDS = (
    _req("merchantId"),
    _req("merchantSiteId"),
    _req("clientRequestId"),
    _req("timeStamp"),
    _SECRET,
)

# merchantId + merchantSiteId + clientRequestId + amount + currency + timeStamp + secret
_AMOUNT_FIELDS = (
    _req("merchantId"),
    _req("merchantSiteId"),
    _req("clientRequestId"),
    _req("amount"),
    _req("currency"),
    _req("timeStamp"),
    _SECRET,
)

# settle / void / refund share one order
_RELATED_TRANSACTION_FIELDS = (
    _req("merchantId"),
    _req("merchantSiteId"),
    _opt("clientRequestId"),
    _req("clientUniqueId"),
    _req("amount"),
    _req("currency"),
    _req("relatedTransactionId"),
    _opt("authCode"),
    _opt("comment"),
    _opt("urlDetails"),
    _req("timeStamp"),
    _SECRET,
)

_USER_TOKEN_FIELDS = (
    _req("merchantId"),
    _req("merchantSiteId"),
    _req("clientRequestId"),
    _req("userTokenId"),
    _req("timeStamp"),
    _SECRET,
)


ENDPOINT_SPECS: Dict[str, EndpointSpec] = {
    # Session
    "getSessionToken": EndpointSpec(
        path="/getSessionToken.do",
        description="Creates a session token for subsequent API calls",
        category=EndpointCategory.SESSION,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_BASIC_FIELDS,
    ),
    # Payments (transactionType is not part of the checksum)
    "payment.do": EndpointSpec(
        path="/payment.do",
        description="Process Auth or Sale transaction",
        category=EndpointCategory.PAYMENT,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_AMOUNT_FIELDS,
    ),
    "initPayment": EndpointSpec(
        path="/initPayment.do",
        description="Initialize payment before 3DS/payment flow",
        category=EndpointCategory.PAYMENT,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_AMOUNT_FIELDS,
    ),
    # 3DS
    "authorize3d": EndpointSpec(
        path="/authorize3d.do",
        description="Initiate 3DS authentication (MPI-only first step)",
        category=EndpointCategory.THREE_DS,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_AMOUNT_FIELDS,
    ),
    "verify3d": EndpointSpec(
        path="/verify3d.do",
        description="Complete 3DS verification and get MPI data (eci, cavv, dsTransID)",
        category=EndpointCategory.THREE_DS,
        requires_checksum=False,
        requires_session_token=True,
    ),
    # Financial operations
    "settleTransaction": EndpointSpec(
        path="/settleTransaction.do",
        description="Settle (capture) a previously authorized transaction",
        category=EndpointCategory.OPERATION,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_RELATED_TRANSACTION_FIELDS,
    ),
    "voidTransaction": EndpointSpec(
        path="/voidTransaction.do",
        description="Void (cancel) a previously authorized transaction",
        category=EndpointCategory.OPERATION,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_RELATED_TRANSACTION_FIELDS,
    ),
    "refundTransaction": EndpointSpec(
        path="/refundTransaction.do",
        description="Refund a settled transaction (full or partial)",
        category=EndpointCategory.OPERATION,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_RELATED_TRANSACTION_FIELDS,
    ),
    # Users and UPOs
    "createUser": EndpointSpec(
        path="/createUser.do",
        description="Register a user and obtain userTokenId",
        category=EndpointCategory.USER,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=(
            _req("merchantId"),
            _req("merchantSiteId"),
            _req("clientRequestId"),
            _req("userTokenId"),
            _req("email"),
            _req("countryCode"),
            _req("firstName"),
            _req("lastName"),
            _req("timeStamp"),
            _SECRET,
        ),
    ),
    "getUserUPOs": EndpointSpec(
        path="/getUserUPOs.do",
        description="Retrieve user payment options",
        category=EndpointCategory.USER,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_USER_TOKEN_FIELDS,
    ),
    "addUPOCreditCard": EndpointSpec(
        path="/addUPOCreditCard.do",
        description="Add credit card as user payment option",
        category=EndpointCategory.USER,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_USER_TOKEN_FIELDS,
    ),
    "deleteUPO": EndpointSpec(
        path="/deleteUPO.do",
        description="Delete a user payment option",
        category=EndpointCategory.USER,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=(
            _req("merchantId"),
            _req("merchantSiteId"),
            _req("clientRequestId"),
            _req("userPaymentOptionId"),
            _req("userTokenId"),
            _req("timeStamp"),
            _SECRET,
        ),
    ),
    # Payouts
    "payout.do": EndpointSpec(
        path="/payout.do",
        description="Initiate payout to card or APM",
        category=EndpointCategory.PAYOUT,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=(
            _req("merchantId"),
            _req("merchantSiteId"),
            _req("clientRequestId"),
            _req("userTokenId"),
            _req("amount"),
            _req("currency"),
            _opt("paymentMethodName"),
            _req("timeStamp"),
            _SECRET,
        ),
    ),
    "getPayoutStatus": EndpointSpec(
        path="/getPayoutStatus.do",
        description="Check status of a payout",
        category=EndpointCategory.PAYOUT,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=_USER_TOKEN_FIELDS,
    ),
    # Lookups
    "getPaymentStatus": EndpointSpec(
        path="/getPaymentStatus.do",
        description="Get payment status by sessionToken",
        category=EndpointCategory.LOOKUP,
        requires_checksum=False,
        requires_session_token=True,
    ),
    "getTransactionDetails": EndpointSpec(
        path="/getTransactionDetails.do",
        description="Get transaction details by transactionId",
        category=EndpointCategory.LOOKUP,
        requires_checksum=True,
        requires_session_token=False,
        checksum_fields=(
            _req("merchantId"),
            _req("merchantSiteId"),
            _req("clientRequestId"),
            _opt("transactionId"),
            _opt("clientUniqueId"),
            _req("timeStamp"),
            _SECRET,
        ),
    ),
    "getCardDetails": EndpointSpec(
        path="/getCardDetails.do",
        description="Get card BIN details (brand, type, issuing country)",
        category=EndpointCategory.LOOKUP,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=(
            _req("merchantId"),
            _req("merchantSiteId"),
            _req("sessionToken"),
            _req("clientRequestId"),
            _req("cardNumber"),
            _req("timeStamp"),
            _SECRET,
        ),
    ),
    # APMs
    "getMerchantPaymentMethods": EndpointSpec(
        path="/getMerchantPaymentMethods.do",
        description="Get available payment methods for merchant",
        category=EndpointCategory.APM,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_BASIC_FIELDS,
    ),
    "getMcpRates": EndpointSpec(
        path="/getMcpRates.do",
        description="Get multi-currency pricing rates",
        category=EndpointCategory.APM,
        requires_checksum=True,
        requires_session_token=True,
        checksum_fields=_BASIC_FIELDS,
    ),
}


def _normalize_path(name_or_path: str) -> str:
    path = name_or_path if name_or_path.endswith(".do") else f"{name_or_path}.do"
    return path if path.startswith("/") else f"/{path}"


def lookup(name_or_path: str) -> Optional[EndpointSpec]:
    """
    Resolve an operation by registry key, falling back to a path match
    (``payout``, ``/payout``, ``payout.do`` and ``/payout.do`` all resolve).
    """
    if not name_or_path:
        return None

    spec = ENDPOINT_SPECS.get(name_or_path)
    if spec is not None:
        return spec

    wanted = _normalize_path(name_or_path)
    for candidate in ENDPOINT_SPECS.values():
        if candidate.path == wanted:
            return candidate
    return None


def field_order(name: str) -> List[str]:
    """Checksum field names in order; empty for unknown or checksum-free endpoints."""
    spec = lookup(name)
    if spec is None or not spec.requires_checksum:
        return []
    return [f.name for f in spec.checksum_fields]


def list_by_category() -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {c.value: [] for c in EndpointCategory}
    for name, spec in ENDPOINT_SPECS.items():
        grouped[spec.category.value].append(name)
    return grouped
