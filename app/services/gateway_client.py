"""
Thin async HTTP client for the Nuvei REST API.

One ``httpx.AsyncClient`` is opened per call. Non-JSON replies are folded
into a diagnostic body instead of raising; only transport failures raise.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import GatewayTransportError
from app.services.endpoint_specs import lookup

logger = logging.getLogger(__name__)

RAW_BODY_PREVIEW_CHARS = 500


class GatewayResponse(BaseModel):
    status_code: int
    body: Any = None
    duration_ms: int = 0
    raw_text: str = ""


class GatewayClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.NUVEI_BASE_URL).rstrip("/")
        self.api_path = api_path if api_path is not None else settings.NUVEI_API_PATH
        self.timeout = timeout or settings.NUVEI_HTTP_TIMEOUT
        self._transport = transport

    def url_for(self, operation: str, base_url: Optional[str] = None) -> str:
        """
        ``base + api_path + registry path``. Unknown operations are treated
        as a bare path (``foo`` -> ``/foo.do``).
        """
        spec = lookup(operation)
        if spec is not None:
            path = spec.path
        else:
            path = operation if operation.endswith(".do") else f"{operation}.do"
            path = path if path.startswith("/") else f"/{path}"

        base = (base_url or self.base_url).rstrip("/")
        return f"{base}{self.api_path.rstrip('/')}{path}"

    async def send(
        self,
        method: str,
        url: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> GatewayResponse:
        method = method.upper()
        started = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                if method == "GET":
                    resp = await client.get(url, params=body or None)
                else:
                    resp = await client.request(
                        method,
                        url,
                        json=body or {},
                        headers={"Content-Type": "application/json"},
                    )
        except httpx.HTTPError as e:
            logger.error(f"[nuvei] {method} {url} transport error: {e}")
            raise GatewayTransportError(
                str(e) or e.__class__.__name__,
                details={"url": url},
            ) from e

        duration_ms = int((time.perf_counter() - started) * 1000)
        raw_text = resp.text

        try:
            parsed: Any = resp.json()
        except ValueError:
            logger.warning(
                f"[nuvei] {method} {url} returned non-JSON body (HTTP {resp.status_code})"
            )
            parsed = {
                "rawBody": raw_text[:RAW_BODY_PREVIEW_CHARS],
                "httpStatus": resp.status_code,
                "parseError": "Non-JSON response",
            }

        if isinstance(parsed, dict):
            logger.info(
                f"[nuvei] {method} {url} -> HTTP {resp.status_code} "
                f"status={parsed.get('status')} "
                f"transactionStatus={parsed.get('transactionStatus')} "
                f"({duration_ms}ms)"
            )

        return GatewayResponse(
            status_code=resp.status_code,
            body=parsed,
            duration_ms=duration_ms,
            raw_text=raw_text,
        )


gateway_client = GatewayClient()
