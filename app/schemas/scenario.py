"""Step and flow result models returned by the orchestrators and the scenario runner."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel


class StepStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    REDIRECT = "redirect"


class FlowStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CHALLENGE_REQUIRED = "challenge_required"


class StepRequestInfo(CamelModel):
    model_config = ConfigDict(frozen=True)

    url: str
    method: str = "POST"
    body: Dict[str, Any] = {}
    timestamp: str


class StepResponseInfo(CamelModel):
    model_config = ConfigDict(frozen=True)

    status: int
    body: Any = None
    duration: int = Field(0, description="Round-trip time in milliseconds")


class ChallengeInfo(CamelModel):
    model_config = ConfigDict(frozen=True)

    acs_url: str
    c_req: str
    challenge_url: Optional[str] = None


class StepResult(CamelModel):
    """
    Record of one gateway call. The request body is masked before it is
    stored here; results are never mutated after creation.
    """

    model_config = ConfigDict(frozen=True)

    step_id: str
    step_name: str
    status: StepStatus
    request: StepRequestInfo
    response: StepResponseInfo
    three_ds_challenge: Optional[ChallengeInfo] = None


class FlowRunResult(CamelModel):
    scenario_id: str
    scenario_name: str
    start_time: str
    end_time: Optional[str] = None
    status: FlowStatus = FlowStatus.RUNNING
    success: bool = False
    steps: List[StepResult] = []
    context: Dict[str, Any] = {}
    challenge: Optional[ChallengeInfo] = None
    error: Optional[str] = None
    # Last gateway body, unmasked (responses carry no secrets)
    response: Optional[Any] = None
    # Flow-specific extracted fields (transactionId, redirectUrl, mcpRates, ...)
    data: Dict[str, Any] = {}


# ──────────────────────────────────────────────────────────────────────
#  Scenario catalog listings
# ──────────────────────────────────────────────────────────────────────


class ScenarioStepSummary(CamelModel):
    id: str
    name: str
    endpoint: str
    description: str = ""


class ScenarioSummary(CamelModel):
    id: str
    name: str
    description: str
    category: str
    steps: List[ScenarioStepSummary] = []


class StepRunResponse(CamelModel):
    step: StepResult
    context: Dict[str, Any] = {}


# ──────────────────────────────────────────────────────────────────────
#  Endpoint registry listing
# ──────────────────────────────────────────────────────────────────────


class EndpointSummary(CamelModel):
    name: str
    path: str
    method: str
    description: str
    category: str
    requires_checksum: bool
    requires_session_token: bool
    checksum_fields: List[str] = []
    sandbox_url: str


class EndpointListResponse(CamelModel):
    endpoints: List[EndpointSummary]
    by_category: Dict[str, List[str]]
    count: int
