"""Timestamp and identifier generators in the formats the gateway expects."""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone

_BASE36 = string.digits + string.ascii_lowercase


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_timestamp(now: datetime | None = None) -> str:
    """Gateway timestamp, ``YYYYMMDDHHmmss`` in UTC."""
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")


def generate_client_request_id() -> str:
    return f"{generate_timestamp()}_{_random_base36(8)}"


def generate_request_id() -> str:
    return f"REQ_{_epoch_ms()}_{_random_base36(6)}"


def generate_unique_id(prefix: str) -> str:
    return f"{prefix}_{_epoch_ms()}"


def generate_webhook_id() -> str:
    return f"dmn_{_epoch_ms()}_{_random_base36(6)}"


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()
