from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict


class WebhookRecord(BaseModel):
    """One received (or mirrored) notification, newest first in the store."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: str
    payload: Dict[str, Any]


class WebhookListResponse(BaseModel):
    webhooks: List[WebhookRecord]
    count: int


class WebhookClearResponse(BaseModel):
    success: bool
    cleared: int
