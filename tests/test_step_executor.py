import time

import httpx
import pytest

from app.core.exceptions import ScenarioNotFoundError
from app.schemas.scenario import FlowStatus, StepStatus
from app.services.checksum_service import calculate_checksum_for_endpoint
from app.services.scenarios import build_seed, get_scenario, list_scenarios
from app.services.step_executor import (
    RunContext,
    ScenarioStep,
    classify_outcome,
    compile_template,
    execute_scenario,
    execute_single_step,
    execute_step,
    extract_path,
    resolve_template,
)
from app.utils.masking import CHECKSUM_MASK

META = {"timestamp": "20240101120000", "clientRequestId": "20240101120000_abcdefgh"}

REDIRECT_BODY = {
    "status": "SUCCESS",
    "transactionStatus": "REDIRECT",
    "transactionId": "PAY-1",
    "paymentOption": {"card": {"threeD": {"acsUrl": "https://acs.test/challenge", "cReq": "CREQ"}}},
}


def test_template_resolution():
    compiled = compile_template(
        {
            "merchantId": "{{env.merchantId}}",
            "clientUniqueId": "CU_{{meta.timestamp}}",
            "nested": {"amount": "{{ctx.amount}}", "typo": "{{ctx.nope}}"},
            "weird": "{{foo.bar}}",
            "count": 3,
        }
    )
    resolved = resolve_template(compiled, {"merchantId": "M1"}, {"amount": "9.99"}, META)

    assert resolved == {
        "merchantId": "M1",
        "clientUniqueId": "CU_20240101120000",
        "nested": {"amount": "9.99", "typo": ""},
        "weird": "",
        "count": 3,
    }


def test_extract_path():
    assert extract_path(REDIRECT_BODY, "paymentOption.card.threeD.cReq") == "CREQ"
    assert extract_path(REDIRECT_BODY, "paymentOption.missing.cReq") is None
    assert extract_path({"a": [{"b": 1}]}, "a.0.b") == 1


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"status": "SUCCESS"}, StepStatus.SUCCESS),
        ({"status": "ERROR", "reason": "bad"}, StepStatus.ERROR),
        ({"status": "SUCCESS", "errCode": 1069}, StepStatus.ERROR),
        ({"status": "SUCCESS", "errCode": "0"}, StepStatus.SUCCESS),
        ({"parseError": "Non-JSON response", "rawBody": "<html>"}, StepStatus.ERROR),
        (REDIRECT_BODY, StepStatus.REDIRECT),
        # REDIRECT without cReq is not a challenge
        ({"status": "SUCCESS", "transactionStatus": "REDIRECT"}, StepStatus.SUCCESS),
    ],
)
def test_classify_outcome(body, expected):
    status, challenge = classify_outcome(body)
    assert status is expected
    assert (challenge is not None) == (expected is StepStatus.REDIRECT)


@pytest.mark.asyncio
async def test_execute_step_signs_masks_and_writes_context(env, gateway):
    client, stub = gateway({"getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"}})
    step = get_scenario("3ds-frictionless").step("session")

    result, context = await execute_step(step, RunContext(env), client)

    assert result.status is StepStatus.SUCCESS
    assert context.get("sessionToken") == "TOKEN-1"
    assert result.request.body["checksum"] == CHECKSUM_MASK

    sent = stub.body_for("getSessionToken")
    assert sent["merchantId"] == env.merchant_id
    assert sent["checksum"] == calculate_checksum_for_endpoint(
        "getSessionToken", sent, env.merchant_key
    )


@pytest.mark.asyncio
async def test_execute_step_transport_error(env, gateway):
    client, _ = gateway({"getSessionToken": httpx.ConnectError("connection refused")})
    step = get_scenario("3ds-frictionless").step("session")

    result, context = await execute_step(step, RunContext(env), client)

    assert result.status is StepStatus.ERROR
    assert result.response.status == 0
    assert "error" in result.response.body
    assert context.get("sessionToken") is None


@pytest.mark.asyncio
async def test_transport_error_records_elapsed_time(env, gateway):
    def slow_failure(body):
        time.sleep(0.02)
        return httpx.ConnectTimeout("timed out")

    client, _ = gateway({"getSessionToken": slow_failure})
    step = get_scenario("3ds-frictionless").step("session")

    result, _ = await execute_step(step, RunContext(env), client)

    assert result.response.status == 0
    assert result.response.duration >= 15


@pytest.mark.asyncio
async def test_execute_step_works_on_a_copy_of_the_context(env, gateway):
    client, _ = gateway({"getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"}})
    step = get_scenario("3ds-frictionless").step("session")
    caller = RunContext(env, {"amount": "1.00"})

    _, context = await execute_step(step, caller, client)

    assert context is not caller
    assert context.get("sessionToken") == "TOKEN-1"
    assert context.get("amount") == "1.00"
    assert caller.get("sessionToken") is None


@pytest.mark.asyncio
async def test_non_json_reply_keeps_http_status(env, gateway):
    client, _ = gateway({"getSessionToken": httpx.Response(503, text="<html>down</html>")})
    step = get_scenario("3ds-frictionless").step("session")

    result, _ = await execute_step(step, RunContext(env), client)

    assert result.status is StepStatus.ERROR
    assert result.response.status == 503
    assert result.response.body["parseError"] == "Non-JSON response"


@pytest.mark.asyncio
async def test_frictionless_scenario_completes(env, gateway):
    client, stub = gateway(
        {
            "getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"},
            "initPayment": {
                "status": "SUCCESS",
                "transactionId": "INIT-1",
                "paymentOption": {"card": {"threeD": {"version": "2.2.0"}}},
            },
            "payment": {"status": "SUCCESS", "transactionStatus": "APPROVED", "transactionId": "PAY-1"},
        }
    )

    run = await execute_scenario(get_scenario("3ds-frictionless"), env, client, build_seed())

    assert run.status is FlowStatus.COMPLETED
    assert run.success is True
    assert [s.step_id for s in run.steps] == ["session", "init", "payment"]
    assert stub.operations == ["getSessionToken", "initPayment", "payment"]

    payment = stub.body_for("payment")
    assert payment["sessionToken"] == "TOKEN-1"
    assert payment["relatedTransactionId"] == "INIT-1"
    assert payment["paymentOption"]["card"]["threeD"]["version"] == "2.2.0"
    assert run.context["paymentTransactionId"] == "PAY-1"
    assert "cvv" not in run.context


@pytest.mark.asyncio
async def test_challenge_scenario_stops_on_redirect(env, gateway):
    client, stub = gateway(
        {
            "getSessionToken": {"status": "SUCCESS", "sessionToken": "TOKEN-1"},
            "initPayment": {"status": "SUCCESS", "transactionId": "INIT-1"},
            "payment": REDIRECT_BODY,
        }
    )

    run = await execute_scenario(get_scenario("auth-settle"), env, client, build_seed())

    assert run.status is FlowStatus.CHALLENGE_REQUIRED
    assert run.challenge.acs_url == "https://acs.test/challenge"
    assert run.context["cReq"] == "CREQ"
    assert "settleTransaction" not in stub.operations


@pytest.mark.asyncio
async def test_scenario_stops_on_first_error(env, gateway):
    client, stub = gateway({"getSessionToken": {"status": "ERROR", "reason": "Invalid checksum"}})

    run = await execute_scenario(get_scenario("3ds-challenge"), env, client, build_seed())

    assert run.status is FlowStatus.FAILED
    assert run.success is False
    assert len(run.steps) == 1
    assert stub.operations == ["getSessionToken"]


@pytest.mark.asyncio
async def test_single_step_uses_caller_context(env, gateway):
    client, stub = gateway({"settleTransaction": {"status": "SUCCESS", "transactionId": "SET-1"}})
    context = build_seed({"paymentTransactionId": "PAY-1", "authCode": "AUTH"})

    result, snapshot = await execute_single_step(
        get_scenario("auth-settle"), "settle", env, client, context
    )

    assert result.status is StepStatus.SUCCESS
    assert snapshot["settleTransactionId"] == "SET-1"
    sent = stub.body_for("settleTransaction")
    assert sent["relatedTransactionId"] == "PAY-1"
    assert sent["clientUniqueId"].startswith("CU_")


def test_unknown_scenario_and_step():
    with pytest.raises(ScenarioNotFoundError):
        get_scenario("nope")
    with pytest.raises(ScenarioNotFoundError):
        get_scenario("mpi-only").step("payment")


def test_catalog_ids():
    assert {s.id for s in list_scenarios()} == {
        "3ds-frictionless",
        "3ds-challenge",
        "auth-settle",
        "mpi-only",
    }


def test_steps_are_immutable():
    step = get_scenario("mpi-only").step("session")
    with pytest.raises(Exception):
        step.name = "changed"
    assert isinstance(step, ScenarioStep)
