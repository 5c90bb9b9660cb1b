from fastapi import APIRouter

from app.api.v1.endpoints import (
    apm,
    checksum,
    env,
    operations,
    pages,
    payment,
    payout,
    scenarios,
    system,
    three_ds,
    users,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(env.router, tags=["env"])

# /payment/3ds, /payment/liability-shift, /payment/status,
# /transaction/details, /card/details
api_router.include_router(payment.router, tags=["payments"])

api_router.include_router(
    operations.router,
    prefix="/operations",
    tags=["operations"],
)

api_router.include_router(three_ds.router, tags=["3ds"])

api_router.include_router(webhooks.router, tags=["webhooks"])

api_router.include_router(payout.router, tags=["payouts"])

api_router.include_router(apm.router, tags=["apm"])

api_router.include_router(users.router, tags=["users"])

api_router.include_router(
    scenarios.router,
    prefix="/scenarios",
    tags=["scenarios"],
)

api_router.include_router(
    checksum.router,
    prefix="/checksum",
    tags=["checksum"],
)

api_router.include_router(system.router, tags=["system"])

# The APM provider may be handed either URL form
api_router.include_router(pages.router, tags=["pages"])
