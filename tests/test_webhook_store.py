import base64
import json

import pytest

from app.services.webhook_service import (
    DMN_3DS_CHALLENGE,
    DMN_3DS_ERROR,
    DMN_PAYMENT,
    DMN_TRANSACTION,
    DMN_UNKNOWN,
    WebhookStore,
    classify_payload,
    decode_cres,
    ingest,
    is_authenticated,
    mirror_response,
    parse_challenge_result,
)


def _cres(payload) -> str:
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def test_store_is_bounded_and_newest_first():
    store = WebhookStore(capacity=3)
    for i in range(5):
        store.add({"n": i})

    assert len(store) == 3
    assert [r.payload["n"] for r in store.list()] == [4, 3, 2]


def test_default_store_keeps_latest_hundred():
    store = WebhookStore()
    for i in range(1, 102):
        store.add({"n": i})

    records = store.list()
    assert store.capacity == 100
    assert len(records) == 100
    assert records[0].payload["n"] == 101
    assert 1 not in [r.payload["n"] for r in records]


def test_clear_reports_count():
    store = WebhookStore(capacity=10)
    store.add({"a": 1})
    store.add({"a": 2})

    assert store.clear() == 2
    assert store.list() == []


def test_decode_cres_json():
    decoded = decode_cres(_cres({"transStatus": "Y", "acsTransID": "ACS-1"}))
    assert decoded["transStatus"] == "Y"
    assert decoded["acsTransID"] == "ACS-1"
    assert decoded["messageType"] == "CRes"


def test_decode_cres_text_and_garbage():
    text = decode_cres(_cres("challenge cancelled"))
    assert text["messageType"] == "Error"
    assert text["errorMessage"] == "challenge cancelled"

    assert "cresDecodeError" in decode_cres("%%%not-base64%%%")


def test_non_utf8_cres_is_a_3ds_error(store):
    cres = base64.urlsafe_b64encode(b"\xff\xfeInvalid RReq").decode().rstrip("=")
    record = ingest(store, "POST", "application/x-www-form-urlencoded", {}, f"cres={cres}")

    assert record.payload["_dmnType"] == DMN_3DS_ERROR
    assert record.payload["messageType"] == "Error"
    assert record.payload["errorMessage"].endswith("Invalid RReq")
    assert "cresDecodeError" not in record.payload

    result = parse_challenge_result({"cres": cres})
    assert result["transStatus"] == "N"
    assert result["errorMessage"] == "\xff\xfeInvalid RReq"


@pytest.mark.parametrize("value", [42, "x", []])
def test_non_object_json_cres_is_a_challenge_response(store, value):
    record = ingest(
        store, "POST", "application/x-www-form-urlencoded", {}, f"cres={_cres(json.dumps(value))}"
    )

    assert record.payload["_dmnType"] == DMN_3DS_CHALLENGE
    assert record.payload["messageType"] == "CRes"
    assert record.payload["transStatus"] is None


def test_json_null_cres_is_a_3ds_error():
    decoded = decode_cres(_cres("null"))
    assert decoded["messageType"] == "Error"
    assert classify_payload({"cres": "x", **decoded}) == DMN_3DS_ERROR


def test_ingest_form_with_cres(store):
    body = f"cres={_cres({'transStatus': 'Y', 'messageType': 'CRes'})}"
    record = ingest(store, "POST", "application/x-www-form-urlencoded", {}, body)

    assert record.payload["_dmnType"] == DMN_3DS_CHALLENGE
    assert record.payload["transStatus"] == "Y"
    assert store.list()[0].id == record.id


def test_ingest_never_raises_on_bad_input(store):
    record = ingest(store, "POST", "application/json", {}, "{not json")
    assert record.payload["rawBody"] == "{not json"
    assert record.payload["_dmnType"] == DMN_UNKNOWN


def test_ingest_get_uses_query_params(store):
    record = ingest(store, "GET", "", {"ppp_status": "OK", "TransactionID": "1"}, "")
    assert record.payload["_dmnType"] == DMN_PAYMENT


def test_classify_payload_order():
    assert classify_payload({"cres": "x", "errorMessage": "boom"}) == DMN_3DS_ERROR
    assert classify_payload({"Status": "APPROVED", "transactionId": "1"}) == DMN_PAYMENT
    assert classify_payload({"transactionId": "1"}) == DMN_TRANSACTION
    assert classify_payload({}) == DMN_UNKNOWN


def test_mirror_response_labels_record(store):
    record = mirror_response(store, "Settle Response", "settleTransaction", {"status": "SUCCESS"})
    assert record.payload["_dmnType"] == "Settle Response"
    assert record.payload["_source"] == "API Response"
    assert record.payload["_operation"] == "settleTransaction"


def test_parse_challenge_result():
    assert parse_challenge_result({}) == {"transStatus": "Y", "messageType": "CRes"}

    failed = parse_challenge_result({"cres": "%%%"})
    assert failed["transStatus"] == "N"
    assert failed["errorMessage"] == "Failed to decode cRes"

    ok = parse_challenge_result({"cres": _cres({"transStatus": "A", "eci": "06"})})
    assert ok["eci"] == "06"
    assert is_authenticated(ok)
    assert not is_authenticated(failed)
