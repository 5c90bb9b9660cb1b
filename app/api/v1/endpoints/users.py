"""
User and stored payment option routes.

  POST /api/v1/user/create  - createUser
  POST /api/v1/upo/list     - getUserUPOs
  POST /api/v1/upo/add      - addUPOCreditCard
  POST /api/v1/upo/delete   - deleteUPO
"""

import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client, get_user_registry
from app.api.errors import guarded
from app.schemas.nuvei import AddUpoRequest, CreateUserRequest, DeleteUpoRequest, UpoListRequest
from app.schemas.scenario import FlowRunResult
from app.services import user_service
from app.services.gateway_client import GatewayClient
from app.services.user_service import UserRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/user/create", response_model=FlowRunResult)
async def create_user(
    body: CreateUserRequest,
    client: GatewayClient = Depends(get_gateway_client),
    registry: UserRegistry = Depends(get_user_registry),
):
    return await guarded("Create user", user_service.create_user(body, client, registry))


@router.post("/upo/list", response_model=FlowRunResult)
async def list_upos(
    body: UpoListRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Get UPOs", user_service.list_upos(body, client))


@router.post("/upo/add", response_model=FlowRunResult)
async def add_upo(
    body: AddUpoRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Add UPO", user_service.add_upo_credit_card(body, client))


@router.post("/upo/delete", response_model=FlowRunResult)
async def delete_upo(
    body: DeleteUpoRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    return await guarded("Delete UPO", user_service.delete_upo(body, client))
