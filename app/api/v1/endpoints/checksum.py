"""
Checksum engine exposed for debugging.

  POST /api/v1/checksum/calculate
  POST /api/v1/checksum/verify
"""

import logging

from fastapi import APIRouter

from app.core.config import settings
from app.schemas.nuvei import ChecksumCalculateRequest, ChecksumResponse, ChecksumVerifyRequest
from app.services.checksum_service import (
    calculate_checksum_for_endpoint,
    resolve_algorithm,
    verify_checksum,
)
from app.services.endpoint_specs import field_order

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/calculate", response_model=ChecksumResponse)
async def calculate(body: ChecksumCalculateRequest):
    algorithm = resolve_algorithm(body.algorithm or settings.NUVEI_CHECKSUM_ALGORITHM)
    checksum = calculate_checksum_for_endpoint(
        body.endpoint,
        body.data,
        body.merchant_key,
        algorithm,
    )
    return ChecksumResponse(
        endpoint=body.endpoint,
        algorithm=algorithm,
        field_order=field_order(body.endpoint),
        checksum=checksum,
    )


@router.post("/verify", response_model=ChecksumResponse)
async def verify(body: ChecksumVerifyRequest):
    algorithm = resolve_algorithm(body.algorithm or settings.NUVEI_CHECKSUM_ALGORITHM)
    valid = verify_checksum(
        body.endpoint,
        body.data,
        body.checksum,
        body.merchant_key,
        algorithm,
    )
    logger.info(f"[nuvei] checksum verification for {body.endpoint}: {valid}")
    return ChecksumResponse(
        endpoint=body.endpoint,
        algorithm=algorithm,
        field_order=field_order(body.endpoint),
        valid=valid,
    )
