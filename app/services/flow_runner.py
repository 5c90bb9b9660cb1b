"""
Shared skeleton for the hand-written flow orchestrators.

A ``FlowRunner`` owns one run: its context, the ordered step results and
the terminal status. Orchestrators build request bodies and call
``runner.call(...)`` once per gateway operation; the runner signs the body
from the endpoint registry, records a masked step, and halts the flow on an
error or a 3DS redirect.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from app.core.config import settings
from app.core.exceptions import FlowValidationError, GatewayTransportError
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
from app.services.checksum_service import calculate_checksum_for_endpoint
from app.services.endpoint_specs import lookup
from app.services.gateway_client import GatewayClient
from app.services.step_executor import RunContext, classify_outcome
from app.services.webhook_service import WebhookStore, mirror_response
from app.utils.ids import generate_request_id, generate_timestamp, iso_now
from app.utils.masking import mask_request_body

logger = logging.getLogger(__name__)


def require_credentials(env: Optional[EnvConfig]) -> EnvConfig:
    """Fail before any gateway call when merchant credentials are incomplete."""
    if env is None:
        raise FlowValidationError("Missing merchant credentials")

    missing = [
        alias
        for alias, value in (
            ("merchantId", env.merchant_id),
            ("merchantSiteId", env.merchant_site_id),
            ("merchantKey", env.merchant_key),
        )
        if not value
    ]
    if missing:
        raise FlowValidationError(
            "Missing merchant credentials",
            details={"missing": missing},
        )
    return env


def require_fields(message: str, **fields: Any) -> None:
    missing = [name for name, value in fields.items() if value in (None, "")]
    if missing:
        raise FlowValidationError(message, details={"missing": missing})


def _checksum_inputs(body: Mapping[str, Any]) -> Dict[str, Any]:
    # Only flat top-level values take part in a checksum.
    return {k: v for k, v in body.items() if not isinstance(v, (Mapping, list))}


def gateway_reason(body: Any) -> str:
    if not isinstance(body, Mapping):
        return "Unexpected response"
    if body.get("parseError"):
        return str(body["parseError"])
    return str(
        body.get("reason")
        or body.get("gwErrorReason")
        or body.get("error")
        or body.get("status")
        or "Unknown error"
    )


class FlowRunner:
    def __init__(
        self,
        flow_id: str,
        flow_name: str,
        env: EnvConfig,
        client: GatewayClient,
        store: Optional[WebhookStore] = None,
        seed: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.flow_id = flow_id
        self.flow_name = flow_name
        self.env = env
        self.client = client
        self.store = store
        self.context = RunContext(env, seed)
        self.steps: List[StepResult] = []
        self.status = FlowStatus.RUNNING
        self.challenge: Optional[ChallengeInfo] = None
        self.error: Optional[str] = None
        self.last_response: Any = None
        self._started_at = iso_now()

    # ──────────────────────────────────────────────────────────────
    # State
    # ──────────────────────────────────────────────────────────────

    @property
    def halted(self) -> bool:
        return self.status in (FlowStatus.FAILED, FlowStatus.CHALLENGE_REQUIRED)

    @property
    def algorithm(self) -> str:
        if self.env.checksum_algorithm is not None:
            return self.env.checksum_algorithm.value
        return settings.NUVEI_CHECKSUM_ALGORITHM

    def fail(self, message: str) -> None:
        self.status = FlowStatus.FAILED
        self.error = message

    def merchant_fields(self) -> Dict[str, Any]:
        """merchantId / merchantSiteId / clientRequestId / timeStamp for a fresh call."""
        return {
            "merchantId": self.env.merchant_id,
            "merchantSiteId": self.env.merchant_site_id,
            "clientRequestId": generate_request_id(),
            "timeStamp": generate_timestamp(),
        }

    # ──────────────────────────────────────────────────────────────
    # Gateway calls
    # ──────────────────────────────────────────────────────────────

    def sign(self, operation: str, body: Dict[str, Any]) -> Dict[str, Any]:
        spec = lookup(operation)
        if spec is not None and spec.requires_checksum:
            body["checksum"] = calculate_checksum_for_endpoint(
                operation,
                _checksum_inputs(body),
                self.env.merchant_key,
                self.algorithm,
            )
        return body

    async def call(
        self,
        operation: str,
        body: Dict[str, Any],
        step_id: str,
        step_name: str,
    ) -> Dict[str, Any]:
        """
        Sign, send and record one call. Returns the response body ({} when
        the gateway could not be reached). Callers must check ``halted``.
        """
        if self.halted:
            raise RuntimeError(f"Flow {self.flow_id} already halted; {step_id} not sent")

        body = self.sign(operation, body)
        url = self.client.url_for(operation, self.env.base_url)
        spec = lookup(operation)
        method = spec.http_method if spec is not None else "POST"

        request_info = StepRequestInfo(
            url=url,
            method=method,
            body=mask_request_body(body),
            timestamp=iso_now(),
        )

        started = time.perf_counter()
        try:
            response = await self.client.send(method, url, body)
        except GatewayTransportError as e:
            self.steps.append(
                StepResult(
                    step_id=step_id,
                    step_name=step_name,
                    status=StepStatus.ERROR,
                    request=request_info,
                    response=StepResponseInfo(
                        status=0,
                        body={"error": e.message},
                        duration=int((time.perf_counter() - started) * 1000),
                    ),
                )
            )
            self.last_response = {"error": e.message}
            self.fail(f"{step_name} failed: {e.message}")
            return {}

        status, challenge = classify_outcome(response.body)
        self.steps.append(
            StepResult(
                step_id=step_id,
                step_name=step_name,
                status=status,
                request=request_info,
                response=StepResponseInfo(
                    status=response.status_code,
                    body=response.body,
                    duration=response.duration_ms,
                ),
                three_ds_challenge=challenge,
            )
        )
        self.last_response = response.body

        if status is StepStatus.ERROR:
            self.fail(f"{step_name} failed: {gateway_reason(response.body)}")
        elif status is StepStatus.REDIRECT and challenge is not None:
            self.status = FlowStatus.CHALLENGE_REQUIRED
            self.challenge = challenge
            self.context.set("acsUrl", challenge.acs_url)
            self.context.set("cReq", challenge.c_req)

        return response.body if isinstance(response.body, dict) else {}

    async def ensure_session_token(self) -> Optional[str]:
        """Reuse a token already in the context, else fetch one."""
        token = self.context.get("sessionToken")
        if token:
            return token

        data = await self.call(
            "getSessionToken",
            self.merchant_fields(),
            step_id="getSessionToken",
            step_name="Get Session Token",
        )
        if self.halted:
            self.error = "Failed to get session token"
            return None

        token = data.get("sessionToken")
        if not token:
            self.fail("Failed to get session token")
            return None

        self.context.set("sessionToken", token)
        return token

    def remember(self, data: Mapping[str, Any], mapping: Mapping[str, str]) -> None:
        """Copy response fields into the context (response key -> context key)."""
        for response_key, context_key in mapping.items():
            value = data.get(response_key)
            if value is not None:
                self.context.set(context_key, value)

    def mirror(self, label: str, operation: str, response: Any = None) -> None:
        if self.store is None:
            return
        mirror_response(
            self.store,
            label,
            operation,
            self.last_response if response is None else response,
        )

    # ──────────────────────────────────────────────────────────────
    # Result
    # ──────────────────────────────────────────────────────────────

    def finish(
        self,
        success: Optional[bool] = None,
        status: Optional[FlowStatus] = None,
        data: Optional[Dict[str, Any]] = None,
        response: Any = None,
    ) -> FlowRunResult:
        if status is not None:
            self.status = status
        elif self.status is FlowStatus.RUNNING:
            self.status = FlowStatus.COMPLETED

        if success is None:
            success = self.status is FlowStatus.COMPLETED

        logger.info(
            f"[nuvei] {self.flow_id} finished: {self.status.value} "
            f"({len(self.steps)} steps)"
        )

        return FlowRunResult(
            scenario_id=self.flow_id,
            scenario_name=self.flow_name,
            start_time=self._started_at,
            end_time=iso_now(),
            status=self.status,
            success=success,
            steps=self.steps,
            context=self.context.snapshot(),
            challenge=self.challenge,
            error=self.error,
            response=self.last_response if response is None else response,
            data=data or {},
        )


def first_present(values: Iterable[Any]) -> Any:
    for value in values:
        if value:
            return value
    return None
