import pytest

from app.services.endpoint_specs import (
    ENDPOINT_SPECS,
    SECRET_FIELD,
    EndpointCategory,
    field_order,
    list_by_category,
    lookup,
)


def test_registry_has_every_gateway_operation():
    assert len(ENDPOINT_SPECS) == 19
    for name in (
        "getSessionToken",
        "payment.do",
        "initPayment",
        "authorize3d",
        "verify3d",
        "settleTransaction",
        "voidTransaction",
        "refundTransaction",
        "createUser",
        "getUserUPOs",
        "addUPOCreditCard",
        "deleteUPO",
        "payout.do",
        "getPayoutStatus",
        "getPaymentStatus",
        "getTransactionDetails",
        "getCardDetails",
        "getMerchantPaymentMethods",
        "getMcpRates",
    ):
        assert name in ENDPOINT_SPECS


@pytest.mark.parametrize("name", ["payout", "/payout", "payout.do", "/payout.do"])
def test_lookup_falls_back_to_path(name):
    assert lookup(name) is ENDPOINT_SPECS["payout.do"]


def test_lookup_unknown_returns_none():
    assert lookup("doesNotExist") is None
    assert lookup("") is None


def test_secret_is_always_last():
    for name, spec in ENDPOINT_SPECS.items():
        if spec.requires_checksum:
            assert spec.checksum_fields[-1].name == SECRET_FIELD, name


def test_payment_field_order():
    assert field_order("payment.do") == [
        "merchantId",
        "merchantSiteId",
        "clientRequestId",
        "amount",
        "currency",
        "timeStamp",
        SECRET_FIELD,
    ]


def test_checksum_free_endpoints_have_no_field_order():
    assert field_order("verify3d") == []
    assert field_order("getPaymentStatus") == []
    assert field_order("unknown") == []


def test_list_by_category_covers_registry():
    grouped = list_by_category()
    assert set(grouped) == {c.value for c in EndpointCategory}
    assert sum(len(names) for names in grouped.values()) == len(ENDPOINT_SPECS)
    assert "settleTransaction" in grouped["operation"]


def test_sandbox_url():
    assert ENDPOINT_SPECS["getSessionToken"].sandbox_url.endswith("/ppp/api/v1/getSessionToken.do")
