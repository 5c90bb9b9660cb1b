"""
Declarative scenario routes.

  GET  /api/v1/scenarios            - scenario catalog
  GET  /api/v1/scenarios/endpoints  - endpoint registry with checksum field order
  POST /api/v1/scenarios/run        - run a scenario until it completes, fails or redirects
  POST /api/v1/scenarios/step       - run one step against a caller-held context
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client, get_notification_url
from app.api.errors import guarded
from app.schemas.nuvei import RunScenarioRequest, RunStepRequest
from app.schemas.scenario import (
    EndpointListResponse,
    EndpointSummary,
    FlowRunResult,
    ScenarioStepSummary,
    ScenarioSummary,
    StepRunResponse,
)
from app.services.endpoint_specs import ENDPOINT_SPECS, field_order, list_by_category
from app.services.flow_runner import require_credentials
from app.services.gateway_client import GatewayClient
from app.services.scenarios import build_seed, get_scenario, list_scenarios
from app.services.step_executor import execute_scenario, execute_single_step

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[ScenarioSummary])
async def scenario_catalog():
    return [
        ScenarioSummary(
            id=scenario.id,
            name=scenario.name,
            description=scenario.description,
            category=scenario.category,
            steps=[
                ScenarioStepSummary(
                    id=step.id,
                    name=step.name,
                    endpoint=step.operation,
                    description=step.description,
                )
                for step in scenario.steps
            ],
        )
        for scenario in list_scenarios()
    ]


@router.get("/endpoints", response_model=EndpointListResponse)
async def endpoint_registry():
    endpoints = [
        EndpointSummary(
            name=name,
            path=spec.path,
            method=spec.http_method,
            description=spec.description,
            category=spec.category.value,
            requires_checksum=spec.requires_checksum,
            requires_session_token=spec.requires_session_token,
            checksum_fields=field_order(name),
            sandbox_url=spec.sandbox_url,
        )
        for name, spec in ENDPOINT_SPECS.items()
    ]
    return EndpointListResponse(
        endpoints=endpoints,
        by_category=list_by_category(),
        count=len(endpoints),
    )


@router.post("/run", response_model=FlowRunResult)
async def run_scenario(
    body: RunScenarioRequest,
    client: GatewayClient = Depends(get_gateway_client),
    notification_url: str = Depends(get_notification_url),
):
    env = require_credentials(body.env)
    scenario = get_scenario(body.scenario_id)
    seed = build_seed(body.context, notification_url)

    logger.info(f"[nuvei] running scenario {scenario.id} ({len(scenario.steps)} steps)")
    return await guarded(
        "Scenario run",
        execute_scenario(scenario, env, client, seed),
    )


@router.post("/step", response_model=StepRunResponse)
async def run_step(
    body: RunStepRequest,
    client: GatewayClient = Depends(get_gateway_client),
    notification_url: str = Depends(get_notification_url),
):
    env = require_credentials(body.env)
    scenario = get_scenario(body.scenario_id)
    seed = build_seed(body.context, notification_url)

    step, context = await guarded(
        "Scenario step",
        execute_single_step(scenario, body.step_id, env, client, seed),
    )
    return StepRunResponse(step=step, context=context)
