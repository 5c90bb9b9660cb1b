import hashlib

import pytest

from app.core.exceptions import ChecksumNotApplicableError, UnknownEndpointError
from app.services.checksum_service import (
    calculate_checksum,
    calculate_checksum_for_endpoint,
    resolve_algorithm,
    verify_checksum,
)
from app.services.endpoint_specs import ENDPOINT_SPECS, HashAlgorithm, field_order


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


SESSION_DATA = {
    "merchantId": "111",
    "merchantSiteId": "222",
    "clientRequestId": "REQ_1",
    "timeStamp": "20240101120000",
}


def test_calculate_checksum_drops_empty_values():
    assert calculate_checksum(["a", None, "", "b"]) == _sha256("ab")


def test_calculate_checksum_sha1():
    expected = hashlib.sha1(b"abc").hexdigest()
    assert calculate_checksum(["a", "b", "c"], HashAlgorithm.SHA1) == expected
    assert calculate_checksum(["a", "b", "c"], "sha-1") == expected


def test_session_token_checksum_uses_registry_order():
    checksum = calculate_checksum_for_endpoint("getSessionToken", SESSION_DATA, "KEY")
    assert checksum == _sha256("111222REQ_120240101120000KEY")


def test_extra_request_fields_are_ignored():
    data = {**SESSION_DATA, "currency": "EUR", "amount": "10"}
    assert calculate_checksum_for_endpoint(
        "getSessionToken", data, "KEY"
    ) == calculate_checksum_for_endpoint("getSessionToken", SESSION_DATA, "KEY")


def test_optional_fields_are_skipped_when_missing():
    data = {
        "merchantId": "1",
        "merchantSiteId": "2",
        "clientUniqueId": "CU",
        "amount": "5.00",
        "currency": "USD",
        "relatedTransactionId": "TX",
        "timeStamp": "T",
    }
    checksum = calculate_checksum_for_endpoint("settleTransaction", data, "K")
    assert checksum == _sha256("12CU5.00USDTXTK")

    data["authCode"] = "AUTH"
    checksum = calculate_checksum_for_endpoint("settleTransaction", data, "K")
    assert checksum == _sha256("12CU5.00USDTXAUTHTK")


def test_unknown_endpoint_raises():
    with pytest.raises(UnknownEndpointError):
        calculate_checksum_for_endpoint("nope", SESSION_DATA, "KEY")


def test_checksum_free_endpoint_raises():
    with pytest.raises(ChecksumNotApplicableError):
        calculate_checksum_for_endpoint("getPaymentStatus", SESSION_DATA, "KEY")


def test_verify_is_case_insensitive():
    checksum = calculate_checksum_for_endpoint("getSessionToken", SESSION_DATA, "KEY")
    assert verify_checksum("getSessionToken", SESSION_DATA, checksum.upper(), "KEY")
    assert not verify_checksum("getSessionToken", SESSION_DATA, checksum, "OTHER")


def test_verify_never_raises():
    assert verify_checksum("nope", SESSION_DATA, "abc", "KEY") is False


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, HashAlgorithm.SHA256),
        ("sha256", HashAlgorithm.SHA256),
        ("SHA1", HashAlgorithm.SHA1),
        (HashAlgorithm.SHA1, HashAlgorithm.SHA1),
    ],
)
def test_resolve_algorithm(value, expected):
    assert resolve_algorithm(value) is expected


SIGNED_ENDPOINTS = sorted(
    name for name, spec in ENDPOINT_SPECS.items() if spec.requires_checksum
)


@pytest.mark.parametrize("endpoint", SIGNED_ENDPOINTS)
def test_endpoint_checksum_is_deterministic(endpoint):
    data = {name: f"v-{name}" for name in field_order(endpoint)}

    first = calculate_checksum_for_endpoint(endpoint, data, "KEY")
    second = calculate_checksum_for_endpoint(endpoint, dict(data), "KEY")

    assert first == second
    assert verify_checksum(endpoint, data, first, "KEY")


def test_swapping_values_changes_checksum():
    values = ["111", "222", "REQ_1", "20240101120000", "KEY"]
    swapped = [values[1], values[0], *values[2:]]
    assert calculate_checksum(values) != calculate_checksum(swapped)

    # equal neighbours swap to the same list
    same = ["a", "a", "b"]
    assert calculate_checksum(same) == calculate_checksum([same[1], same[0], same[2]])


@pytest.mark.parametrize("text", ["a", "merchant-key", "0", " "])
def test_trailing_space_changes_checksum(text):
    assert calculate_checksum([text]) == calculate_checksum([text])
    assert calculate_checksum([text]) != calculate_checksum([text + " "])


def test_verify_rejects_any_altered_character():
    checksum = calculate_checksum_for_endpoint("getSessionToken", SESSION_DATA, "KEY")
    assert verify_checksum("getSessionToken", SESSION_DATA, checksum, "KEY")

    for i, char in enumerate(checksum):
        altered = checksum[:i] + ("1" if char == "0" else "0") + checksum[i + 1:]
        assert not verify_checksum("getSessionToken", SESSION_DATA, altered, "KEY")
