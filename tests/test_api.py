import base64
import hashlib
import json


CARD = {
    "number": "4000020951595032",
    "holderName": "John Smith",
    "expMonth": "12",
    "expYear": "30",
    "cvv": "217",
}


def _cres(payload) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


def test_env_test(api, env_payload):
    client, stub = api({"getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"}})

    resp = client.post("/api/v1/env/test", json={"env": env_payload})

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert resp.json()["sessionToken"] == "TOKEN-1"
    assert stub.operations == ["getSessionToken"]


def test_missing_credentials_is_400(api):
    client, stub = api()

    resp = client.post(
        "/api/v1/payment/3ds",
        json={"env": {"merchantId": "1"}, "amount": "10", "currency": "USD", "card": CARD},
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing merchant credentials"
    assert resp.json()["error_code"] == "VALIDATION_ERROR"
    assert stub.calls == []


def test_3ds_payment_defaults_notification_url(api, env_payload):
    client, stub = api(
        {
            "getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"},
            "initPayment": {"status": "SUCCESS", "transactionId": "INIT-1"},
            "payment": {"status": "SUCCESS", "transactionStatus": "APPROVED", "transactionId": "PAY-1"},
        }
    )

    resp = client.post(
        "/api/v1/payment/3ds",
        json={"env": env_payload, "amount": "10.00", "currency": "USD", "card": CARD},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["scenarioId"] == "3ds-payment"
    assert [s["stepId"] for s in body["steps"]] == ["getSessionToken", "initPayment", "payment"]

    three_d = stub.body_for("payment")["paymentOption"]["card"]["threeD"]
    assert three_d["notificationURL"] == "http://testserver/api/v1/3ds-notify"


def test_unexpected_error_is_500(api, env_payload):
    def _explode(body):
        raise RuntimeError("boom")

    client, _ = api({"getSessionToken": _explode})

    resp = client.post(
        "/api/v1/payment/3ds",
        json={"env": env_payload, "amount": "10.00", "currency": "USD", "card": CARD},
    )

    assert resp.status_code == 500
    assert resp.json() == {"error": "3DS payment failed: boom"}


def test_apm_rule_violation_is_400(api, env_payload):
    client, stub = api()

    resp = client.post(
        "/api/v1/apm/payment",
        json={
            "env": env_payload,
            "paymentMethod": "apmgw_iDeal",
            "country": "NL",
            "amount": "10.00",
            "currency": "EUR",
        },
    )

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "APM_RULE_VIOLATION"
    assert stub.calls == []


def test_webhook_roundtrip(api):
    client, _ = api()

    resp = client.post(
        "/api/v1/webhook",
        data={"ppp_status": "OK", "TransactionID": "123"},
    )
    assert resp.status_code == 200
    assert resp.text == "OK"

    resp = client.get("/api/v1/webhook", params={"transactionId": "456"})
    assert resp.text == "OK"

    listed = client.get("/api/v1/webhooks").json()
    assert listed["count"] == 2
    assert listed["webhooks"][0]["payload"]["_dmnType"] == "Transaction DMN"
    assert listed["webhooks"][1]["payload"]["_dmnType"] == "Payment DMN"

    cleared = client.post("/api/v1/webhooks/clear").json()
    assert cleared == {"success": True, "cleared": 2}
    assert client.get("/api/v1/webhooks").json()["count"] == 0


def test_webhook_accepts_garbage(api, store):
    client, _ = api()

    resp = client.post(
        "/api/v1/webhook",
        content=b"{broken",
        headers={"content-type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert store.list()[0].payload["rawBody"] == "{broken"


def test_challenge_page(api):
    client, _ = api()

    assert client.get("/api/v1/3ds-challenge").status_code == 400

    resp = client.get(
        "/api/v1/3ds-challenge",
        params={"acsUrl": "https://acs.test/challenge", "creq": "CREQ123"},
    )
    assert resp.status_code == 200
    assert 'action="https://acs.test/challenge"' in resp.text
    assert 'value="CREQ123"' in resp.text


def test_three_ds_notify_page(api, store):
    client, _ = api()

    resp = client.post(
        "/api/v1/3ds-notify",
        data={"cres": _cres({"transStatus": "Y", "messageType": "CRes"})},
    )

    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "3ds-complete" in resp.text
    assert "Authentication Successful" in resp.text
    assert store.list()[0].payload["_dmnType"] == "3DS Challenge Response"


def test_method_notify_ack(api):
    client, _ = api()
    assert client.post("/api/v1/3ds-method-notify").text == "OK"
    assert client.post("/api/v1/3ds-challenge-notify").text == "OK"


def test_apm_return_page_at_root_and_prefix(api):
    client, _ = api()

    for path in ("/apm/return", "/api/v1/apm/return"):
        resp = client.get(path, params={"status": "pending", "paymentMethod": "apmgw_iDeal"})
        assert resp.status_code == 200
        assert "Payment Pending" in resp.text
        assert "apmgw_iDeal" in resp.text


def test_scenario_catalog_and_registry(api):
    client, _ = api()

    scenarios = client.get("/api/v1/scenarios").json()
    assert {s["id"] for s in scenarios} == {"3ds-frictionless", "3ds-challenge", "auth-settle", "mpi-only"}

    registry = client.get("/api/v1/scenarios/endpoints").json()
    assert registry["count"] == 19
    session = next(e for e in registry["endpoints"] if e["name"] == "getSessionToken")
    assert session["checksumFields"][-1] == "merchantSecretKey"


def test_run_scenario(api, env_payload):
    client, stub = api(
        {
            "getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"},
            "authorize3d": {"status": "SUCCESS", "transactionId": "AUTH-1"},
        }
    )

    resp = client.post(
        "/api/v1/scenarios/run",
        json={"env": env_payload, "scenarioId": "mpi-only", "context": {"amount": "5.00"}},
    )

    body = resp.json()
    assert body["status"] == "completed"
    assert body["context"]["relatedTransactionId"] == "AUTH-1"
    assert stub.body_for("authorize3d")["amount"] == "5.00"


def test_run_unknown_scenario_is_404(api, env_payload):
    client, _ = api()

    resp = client.post("/api/v1/scenarios/run", json={"env": env_payload, "scenarioId": "nope"})

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "SCENARIO_NOT_FOUND"


def test_run_single_step(api, env_payload):
    client, _ = api({"getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-9"}})

    resp = client.post(
        "/api/v1/scenarios/step",
        json={"env": env_payload, "scenarioId": "3ds-challenge", "stepId": "session"},
    )

    body = resp.json()
    assert body["step"]["status"] == "success"
    assert body["context"]["sessionToken"] == "TOKEN-9"


def test_checksum_calculate_and_verify(api, env_payload):
    client, _ = api()
    data = {
        "merchantId": "111",
        "merchantSiteId": "222",
        "clientRequestId": "REQ_1",
        "timeStamp": "20240101120000",
    }
    merchant_key = env_payload["merchantKey"]
    expected = hashlib.sha256(f"111222REQ_120240101120000{merchant_key}".encode()).hexdigest()

    calc = client.post(
        "/api/v1/checksum/calculate",
        json={"endpoint": "getSessionToken", "data": data, "merchantKey": merchant_key},
    ).json()
    assert calc["checksum"] == expected
    assert calc["algorithm"] == "SHA256"

    verify = client.post(
        "/api/v1/checksum/verify",
        json={
            "endpoint": "getSessionToken",
            "data": data,
            "merchantKey": merchant_key,
            "checksum": expected.upper(),
        },
    ).json()
    assert verify["valid"] is True


def test_checksum_unknown_endpoint(api):
    client, _ = api()

    resp = client.post("/api/v1/checksum/calculate", json={"endpoint": "nope", "merchantKey": "k"})

    assert resp.status_code == 500
    assert resp.json()["error_code"] == "UNKNOWN_ENDPOINT"


def test_version(api):
    client, _ = api()
    body = client.get("/api/v1/version").json()
    assert body["endpoints"] == 19
    assert body["features"]
