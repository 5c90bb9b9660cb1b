from fastapi import Request

from app.core.config import settings
from app.services.gateway_client import GatewayClient, gateway_client
from app.services.user_service import UserRegistry, user_registry
from app.services.webhook_service import WebhookStore, webhook_store


def get_gateway_client() -> GatewayClient:
    return gateway_client


def get_webhook_store() -> WebhookStore:
    return webhook_store


def get_user_registry() -> UserRegistry:
    return user_registry


def get_public_base_url(request: Request) -> str:
    """Origin used to build notification and return URLs handed to the gateway."""
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return str(request.base_url).rstrip("/")


def get_notification_url(request: Request) -> str:
    return f"{get_public_base_url(request)}{settings.API_V1_PREFIX}/3ds-notify"


def get_webhook_url(request: Request) -> str:
    return f"{get_public_base_url(request)}{settings.API_V1_PREFIX}/webhook"
