from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_gateway_client, get_user_registry, get_webhook_store
from app.main import app
from app.schemas.nuvei import EnvConfig
from app.services.gateway_client import GatewayClient
from app.services.user_service import UserRegistry
from app.services.webhook_service import WebhookStore

MERCHANT_ID = "1234567890"
MERCHANT_SITE_ID = "654321"
MERCHANT_KEY = "s3cr3t-merchant-key"


class GatewayStub:
    """
    httpx handler standing in for the gateway. Replies are keyed by the
    operation stem of the URL (``getSessionToken``, ``payment``, ...); a
    reply may be a dict, an ``httpx.Response``, an exception to raise, or a
    callable taking the request body.
    """

    def __init__(self, replies: Dict[str, Any] | None = None) -> None:
        self.replies = replies or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        operation = request.url.path.rsplit("/", 1)[-1]
        if operation.endswith(".do"):
            operation = operation[: -len(".do")]
        body = json.loads(request.content) if request.content else {}
        self.calls.append((operation, body))

        reply = self.replies.get(operation, {"status": "SUCCESS"})
        if callable(reply):
            reply = reply(body)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    @property
    def operations(self) -> List[str]:
        return [operation for operation, _ in self.calls]

    def body_for(self, operation: str) -> Dict[str, Any]:
        for name, body in self.calls:
            if name == operation:
                return body
        raise AssertionError(f"{operation} was never called")


@pytest.fixture
def env() -> EnvConfig:
    return EnvConfig(
        merchant_id=MERCHANT_ID,
        merchant_site_id=MERCHANT_SITE_ID,
        merchant_key=MERCHANT_KEY,
        base_url="https://gateway.test",
    )


@pytest.fixture
def env_payload() -> Dict[str, str]:
    return {
        "merchantId": MERCHANT_ID,
        "merchantSiteId": MERCHANT_SITE_ID,
        "merchantKey": MERCHANT_KEY,
        "baseUrl": "https://gateway.test",
    }


@pytest.fixture
def gateway() -> Callable[..., Tuple[GatewayClient, GatewayStub]]:
    def _make(replies: Dict[str, Any] | None = None) -> Tuple[GatewayClient, GatewayStub]:
        stub = GatewayStub(replies)
        client = GatewayClient(
            base_url="https://gateway.test",
            transport=httpx.MockTransport(stub),
        )
        return client, stub

    return _make


@pytest.fixture
def store() -> WebhookStore:
    return WebhookStore(capacity=100)


@pytest.fixture
def registry() -> UserRegistry:
    return UserRegistry()


@pytest.fixture
def api(gateway, store, registry):
    """
    TestClient factory with the gateway, webhook store and user registry
    swapped for per-test instances.
    """

    def _make(replies: Dict[str, Any] | None = None) -> Tuple[TestClient, GatewayStub]:
        client, stub = gateway(replies)
        app.dependency_overrides[get_gateway_client] = lambda: client
        app.dependency_overrides[get_webhook_store] = lambda: store
        app.dependency_overrides[get_user_registry] = lambda: registry
        return TestClient(app), stub

    yield _make

    app.dependency_overrides.clear()
