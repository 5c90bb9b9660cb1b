from fastapi import APIRouter

from app.core.config import settings
from app.services.endpoint_specs import ENDPOINT_SPECS

router = APIRouter()

FEATURES = [
    "Full 3DS support (Challenge, Frictionless, MPI-only)",
    "Financial operations (Settle, Void, Refund)",
    "User management (Create, UPO)",
    "Payouts",
    "APMs",
    "DMN Webhooks",
    "Card BIN lookup",
    "Multi-currency (MCP rates)",
    "Scenario-based testing",
]


@router.get("/version")
async def version():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "endpoints": len(ENDPOINT_SPECS),
        "features": FEATURES,
    }
