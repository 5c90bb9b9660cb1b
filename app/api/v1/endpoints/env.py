import logging

from fastapi import APIRouter, Depends

from app.api.deps import get_gateway_client
from app.api.errors import guarded
from app.schemas.nuvei import EnvTestRequest, EnvTestResponse
from app.services.gateway_client import GatewayClient
from app.services.payment_service import test_connection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/env/test",
    response_model=EnvTestResponse,
    summary="Check merchant credentials against the gateway",
)
async def env_test(
    body: EnvTestRequest,
    client: GatewayClient = Depends(get_gateway_client),
):
    """
    POST /api/v1/env/test

    Requests a session token with the supplied credentials and reports
    whether the gateway accepted them.
    """
    return await guarded("Connection test", test_connection(body, client))
