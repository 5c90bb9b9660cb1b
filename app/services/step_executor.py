"""
Declarative step executor.

A step is one gateway call described as data: target operation, a request
body template with ``{{namespace.field}}`` placeholders, the checksum field
list, and response-path -> context-key extraction rules. Templates are
compiled into tokens when the step is defined and resolved per call.
"""

from __future__ import annotations

import logging
import re
import time
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings
from app.core.exceptions import GatewayTransportError, ScenarioNotFoundError
from app.schemas.nuvei import EnvConfig
from app.schemas.scenario import (
    ChallengeInfo,
    FlowRunResult,
    FlowStatus,
    StepRequestInfo,
    StepResponseInfo,
    StepResult,
    StepStatus,
)
from app.services.checksum_service import calculate_checksum
from app.services.gateway_client import GatewayClient
from app.utils.ids import generate_client_request_id, generate_timestamp, iso_now
from app.utils.masking import mask_request_body, snapshot_context

logger = logging.getLogger(__name__)

# Names in a step's checksum list that stand for the merchant secret.
SECRET_SENTINELS = frozenset({"merchantKey", "merchantSecretKey"})

ACS_URL_PATH = "paymentOption.card.threeD.acsUrl"
CREQ_PATH = "paymentOption.card.threeD.cReq"

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\.(\w+)\}\}")


# ══════════════════════════════════════════════════════════════════════
# Template tokens
# ══════════════════════════════════════════════════════════════════════


class TokenKind(str, Enum):
    LITERAL = "literal"
    ENV = "env"
    CTX = "ctx"
    META_TIMESTAMP = "meta.timestamp"
    META_CLIENT_REQUEST_ID = "meta.clientRequestId"
    UNKNOWN = "unknown"


class TemplateToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    value: str = ""


class CompiledString(BaseModel):
    """A template string split into literal and placeholder tokens."""

    model_config = ConfigDict(frozen=True)

    source: str
    tokens: Tuple[TemplateToken, ...]


def _classify_placeholder(namespace: str, field: str) -> TemplateToken:
    if namespace == "env":
        return TemplateToken(kind=TokenKind.ENV, value=field)
    if namespace == "ctx":
        return TemplateToken(kind=TokenKind.CTX, value=field)
    if namespace == "meta" and field == "timestamp":
        return TemplateToken(kind=TokenKind.META_TIMESTAMP)
    if namespace == "meta" and field == "clientRequestId":
        return TemplateToken(kind=TokenKind.META_CLIENT_REQUEST_ID)
    return TemplateToken(kind=TokenKind.UNKNOWN, value=f"{namespace}.{field}")


def compile_string(text: str) -> CompiledString:
    tokens: List[TemplateToken] = []
    pos = 0
    for match in _PLACEHOLDER_RE.finditer(text):
        if match.start() > pos:
            tokens.append(TemplateToken(kind=TokenKind.LITERAL, value=text[pos:match.start()]))
        tokens.append(_classify_placeholder(match.group(1), match.group(2)))
        pos = match.end()
    if pos < len(text):
        tokens.append(TemplateToken(kind=TokenKind.LITERAL, value=text[pos:]))
    return CompiledString(source=text, tokens=tuple(tokens))


def compile_template(template: Any) -> Any:
    """Compile every string leaf; other leaves are kept as-is."""
    if isinstance(template, CompiledString):
        return template
    if isinstance(template, str):
        return compile_string(template)
    if isinstance(template, Mapping):
        return {k: compile_template(v) for k, v in template.items()}
    if isinstance(template, (list, tuple)):
        return [compile_template(v) for v in template]
    return template


def _as_text(value: Any) -> str:
    # Missing and empty values substitute to "" (no error on typos).
    if value is None or value == "":
        return ""
    return str(value)


def _resolve_token(
    token: TemplateToken,
    env: Mapping[str, Any],
    ctx: Mapping[str, Any],
    meta: Mapping[str, str],
) -> str:
    if token.kind is TokenKind.LITERAL:
        return token.value
    if token.kind is TokenKind.ENV:
        return _as_text(env.get(token.value))
    if token.kind is TokenKind.CTX:
        return _as_text(ctx.get(token.value))
    if token.kind is TokenKind.META_TIMESTAMP:
        return meta["timestamp"]
    if token.kind is TokenKind.META_CLIENT_REQUEST_ID:
        return meta["clientRequestId"]
    logger.debug(f"[nuvei] unknown template placeholder {{{{{token.value}}}}}")
    return ""


def resolve_template(
    compiled: Any,
    env: Mapping[str, Any],
    ctx: Mapping[str, Any],
    meta: Mapping[str, str],
) -> Any:
    if isinstance(compiled, CompiledString):
        return "".join(_resolve_token(t, env, ctx, meta) for t in compiled.tokens)
    if isinstance(compiled, Mapping):
        return {k: resolve_template(v, env, ctx, meta) for k, v in compiled.items()}
    if isinstance(compiled, list):
        return [resolve_template(v, env, ctx, meta) for v in compiled]
    return compiled


# ══════════════════════════════════════════════════════════════════════
# Steps and run context
# ══════════════════════════════════════════════════════════════════════


class ScenarioStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    operation: str
    description: str = ""
    http_method: str = "POST"
    body: Dict[str, Any] = Field(default_factory=dict)
    checksum_fields: Tuple[str, ...] = ()
    context_writes: Dict[str, str] = Field(default_factory=dict)

    @field_validator("body", mode="after")
    @classmethod
    def compile_body(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return compile_template(v)


class RunContext:
    """
    Mutable state for one flow instance. Keys written by a step stay for the
    rest of the run; nothing deletes them.
    """

    def __init__(self, env: EnvConfig, seed: Optional[Mapping[str, Any]] = None) -> None:
        self.env = env
        self.values: Dict[str, Any] = dict(seed or {})

    def env_values(self) -> Dict[str, Any]:
        return self.env.model_dump(by_alias=True, mode="json")

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def copy(self) -> RunContext:
        return RunContext(self.env, self.values)

    def snapshot(self) -> Dict[str, Any]:
        return snapshot_context(self.values)


# ══════════════════════════════════════════════════════════════════════
# Response helpers
# ══════════════════════════════════════════════════════════════════════


def extract_path(tree: Any, path: str) -> Any:
    """Dot-path lookup over nested dicts; None when any segment is missing."""
    node = tree
    for segment in path.split("."):
        if isinstance(node, Mapping):
            node = node.get(segment)
        elif isinstance(node, list) and segment.isdigit():
            index = int(segment)
            node = node[index] if index < len(node) else None
        else:
            return None
        if node is None:
            return None
    return node


def is_error_body(body: Any) -> bool:
    if not isinstance(body, Mapping):
        return False
    if body.get("status") == "ERROR":
        return True
    return body.get("errCode") not in (None, "", 0, "0")


def find_challenge(body: Any) -> Optional[ChallengeInfo]:
    """ACS URL and CReq, only when both are present."""
    acs_url = extract_path(body, ACS_URL_PATH)
    c_req = extract_path(body, CREQ_PATH)
    if acs_url and c_req:
        return ChallengeInfo(acs_url=str(acs_url), c_req=str(c_req))
    return None


def classify_outcome(body: Any) -> Tuple[StepStatus, Optional[ChallengeInfo]]:
    """
    error -> gateway ERROR status or non-zero errCode;
    redirect -> REDIRECT with both acsUrl and cReq;
    success otherwise.
    """
    if not isinstance(body, Mapping) or "parseError" in body:
        return StepStatus.ERROR, None
    if is_error_body(body):
        return StepStatus.ERROR, None
    if body.get("transactionStatus") == "REDIRECT":
        challenge = find_challenge(body)
        if challenge is not None:
            return StepStatus.REDIRECT, challenge
    return StepStatus.SUCCESS, None


def _checksum_value(value: Any) -> str:
    if isinstance(value, (Mapping, list)):
        return ""
    return _as_text(value)


# ══════════════════════════════════════════════════════════════════════
# Execution
# ══════════════════════════════════════════════════════════════════════


async def execute_step(
    step: ScenarioStep,
    context: RunContext,
    client: GatewayClient,
) -> Tuple[StepResult, RunContext]:
    """
    Run one step against a working copy of ``context``; the returned
    context carries this step's writes and the caller's stays untouched.
    """
    # Step 1: working copy and per-step meta values
    context = context.copy()
    meta = {
        "timestamp": generate_timestamp(),
        "clientRequestId": generate_client_request_id(),
    }

    # Step 2: resolve template
    body: Dict[str, Any] = resolve_template(
        step.body, context.env_values(), context.values, meta
    )

    # Step 3: checksum
    if step.checksum_fields:
        values = [
            context.env.merchant_key if name in SECRET_SENTINELS else _checksum_value(body.get(name))
            for name in step.checksum_fields
        ]
        algorithm = context.env.checksum_algorithm or settings.NUVEI_CHECKSUM_ALGORITHM
        body["checksum"] = calculate_checksum(values, algorithm)

    url = client.url_for(step.operation, context.env.base_url)
    request_info = StepRequestInfo(
        url=url,
        method=step.http_method,
        body=mask_request_body(body),
        timestamp=iso_now(),
    )

    # Step 4: call
    started = time.perf_counter()
    try:
        response = await client.send(step.http_method, url, body)
    except GatewayTransportError as e:
        logger.warning(f"[nuvei] step {step.id} ({step.operation}) failed: {e.message}")
        result = StepResult(
            step_id=step.id,
            step_name=step.name,
            status=StepStatus.ERROR,
            request=request_info,
            response=StepResponseInfo(
                status=0,
                body={"error": e.message},
                duration=int((time.perf_counter() - started) * 1000),
            ),
        )
        return result, context

    # Step 5: context writes
    for response_path, context_key in step.context_writes.items():
        value = extract_path(response.body, response_path)
        if value is not None:
            context.set(context_key, value)

    # Step 6: classify
    status, challenge = classify_outcome(response.body)
    if challenge is not None:
        context.set("acsUrl", challenge.acs_url)
        context.set("cReq", challenge.c_req)

    logger.info(f"[nuvei] step {step.id} ({step.operation}) -> {status.value}")

    result = StepResult(
        step_id=step.id,
        step_name=step.name,
        status=status,
        request=request_info,
        response=StepResponseInfo(
            status=response.status_code,
            body=response.body,
            duration=response.duration_ms,
        ),
        three_ds_challenge=challenge,
    )
    return result, context


class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    category: str = "card"
    steps: Tuple[ScenarioStep, ...]

    def step(self, step_id: str) -> ScenarioStep:
        for candidate in self.steps:
            if candidate.id == step_id:
                return candidate
        raise ScenarioNotFoundError(
            f"Step {step_id} not found in scenario {self.id}",
            details={"scenarioId": self.id, "stepId": step_id},
        )


async def execute_scenario(
    scenario: Scenario,
    env: EnvConfig,
    client: GatewayClient,
    seed: Optional[Mapping[str, Any]] = None,
) -> FlowRunResult:
    """Run every step in order; stop on the first error or redirect."""
    run = FlowRunResult(
        scenario_id=scenario.id,
        scenario_name=scenario.name,
        start_time=iso_now(),
    )
    context = RunContext(env, seed)
    steps: List[StepResult] = []
    final_status = FlowStatus.COMPLETED
    challenge: Optional[ChallengeInfo] = None

    for step in scenario.steps:
        result, context = await execute_step(step, context, client)
        steps.append(result)

        if result.status is StepStatus.ERROR:
            final_status = FlowStatus.FAILED
            break
        if result.status is StepStatus.REDIRECT and result.three_ds_challenge:
            final_status = FlowStatus.CHALLENGE_REQUIRED
            challenge = result.three_ds_challenge
            break

    logger.info(f"[nuvei] scenario {scenario.id} finished: {final_status.value} ({len(steps)} steps)")

    return run.model_copy(
        update={
            "end_time": iso_now(),
            "status": final_status,
            "success": final_status is FlowStatus.COMPLETED,
            "steps": steps,
            "context": context.snapshot(),
            "challenge": challenge,
        }
    )


async def execute_single_step(
    scenario: Scenario,
    step_id: str,
    env: EnvConfig,
    client: GatewayClient,
    context: Optional[Mapping[str, Any]] = None,
) -> Tuple[StepResult, Dict[str, Any]]:
    step = scenario.step(step_id)
    run_context = RunContext(env, context)
    result, run_context = await execute_step(step, run_context, client)
    return result, run_context.snapshot()
