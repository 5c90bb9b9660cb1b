"""
Route-boundary guard for flow endpoints.

``AppException`` subclasses pass through to the global handler; anything
else becomes a 500 ``{"error": "<Operation> failed: <message>"}``.
"""

import logging
from typing import Awaitable, TypeVar

from fastapi import HTTPException, status

from app.core.exceptions import AppException

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def guarded(operation: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except AppException:
        raise
    except Exception as exc:
        logger.exception(f"[nuvei] {operation} failed unexpectedly")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{operation} failed: {exc}",
        )
