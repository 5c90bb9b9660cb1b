"""
DMN / webhook classifier and in-memory store.

Inbound notifications (gateway DMNs, 3DS challenge results) are normalized
into one flat payload, tagged with a ``_dmnType`` label and prepended to a
bounded, newest-first log. Orchestrators also mirror their final gateway
response into the same log for visibility.

Nothing here raises to the HTTP layer: malformed input degrades to a
best-effort payload.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import threading
from collections import deque
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl

from app.core.config import settings
from app.schemas.webhook import WebhookRecord
from app.utils.ids import generate_webhook_id, iso_now

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

DMN_3DS_ERROR = "3DS Error"
DMN_3DS_CHALLENGE = "3DS Challenge Response"
DMN_PAYMENT = "Payment DMN"
DMN_TRANSACTION = "Transaction DMN"
DMN_UNKNOWN = "Unknown DMN"

CRES_DECODE_ERROR = "Failed to decode base64"

# 3DS transStatus values that mean the cardholder was authenticated.
AUTHENTICATED_TRANS_STATUSES = {"Y", "A"}


# ══════════════════════════════════════════════════════════════════════
# Store
# ══════════════════════════════════════════════════════════════════════


class WebhookStore:
    """
    Bounded, most-recent-first log. Inserting beyond capacity evicts the
    oldest record. Each operation holds the lock for its whole duration.
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        self._capacity = capacity or settings.WEBHOOK_STORE_CAPACITY
        self._records: deque[WebhookRecord] = deque(maxlen=self._capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def insert(self, record: WebhookRecord) -> WebhookRecord:
        with self._lock:
            self._records.appendleft(record)
        return record

    def add(self, payload: Dict[str, Any]) -> WebhookRecord:
        record = WebhookRecord(
            id=generate_webhook_id(),
            timestamp=iso_now(),
            payload=payload,
        )
        return self.insert(record)

    def list(self) -> List[WebhookRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._records)
            self._records.clear()
        return cleared

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


webhook_store = WebhookStore()


# ══════════════════════════════════════════════════════════════════════
# cres decoding
# ══════════════════════════════════════════════════════════════════════


def _b64url_decode(value: str) -> str:
    normalized = value.strip().replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    raw = base64.b64decode(normalized, validate=True)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        # one character per byte, like a browser's atob()
        return raw.decode("latin-1")


def decode_cres(cres: str) -> Dict[str, Any]:
    """
    Decode a base64url ``cres`` into the fields merged into the payload.

    Any JSON value except null -> CRes fields (read from it when it is an
    object); other text -> error marker with the decoded text; invalid
    base64 -> ``cresDecodeError``.
    """
    try:
        decoded_text = _b64url_decode(cres)
    except binascii.Error:
        return {"cresDecodeError": CRES_DECODE_ERROR}

    try:
        parsed = json.loads(decoded_text)
    except ValueError:
        parsed = None

    if parsed is not None:
        fields = parsed if isinstance(parsed, dict) else {}
        return {
            "cresDecoded": parsed,
            "transStatus": fields.get("transStatus"),
            "threeDSServerTransID": fields.get("threeDSServerTransID"),
            "acsTransID": fields.get("acsTransID"),
            "messageType": fields.get("messageType") or "CRes",
        }

    return {
        "cresDecoded": decoded_text,
        "cresDecodedText": decoded_text,
        "messageType": "Error",
        "errorMessage": decoded_text,
    }


# ══════════════════════════════════════════════════════════════════════
# Normalization / classification
# ══════════════════════════════════════════════════════════════════════


def _parse_form(raw_body: str) -> Dict[str, Any]:
    return dict(parse_qsl(raw_body, keep_blank_values=True))


def _parse_json_object(raw_body: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(raw_body)
    except ValueError:
        return None
    if isinstance(parsed, dict):
        return parsed
    return {"body": parsed}


def normalize_payload(
    method: str,
    content_type: str,
    query_params: Mapping[str, Any],
    raw_body: str,
) -> Dict[str, Any]:
    """
    GET -> query params. POST: form-encoded, JSON, or JSON -> form ->
    ``{"rawBody": ...}`` fallback when the content type says neither.
    """
    if method.upper() == "GET":
        return dict(query_params)

    content_type = (content_type or "").lower()

    if FORM_CONTENT_TYPE in content_type:
        payload = _parse_form(raw_body)
        cres = payload.get("cres")
        if isinstance(cres, str) and cres:
            payload.update(decode_cres(cres))
        return payload

    if JSON_CONTENT_TYPE in content_type:
        parsed = _parse_json_object(raw_body)
        return parsed if parsed is not None else {"rawBody": raw_body}

    parsed = _parse_json_object(raw_body)
    if parsed is not None:
        return parsed

    payload = _parse_form(raw_body)
    if not payload:
        return {"rawBody": raw_body}
    return payload


def classify_payload(payload: Mapping[str, Any]) -> str:
    """First match wins: cres, then a status field, then a transaction id."""
    if payload.get("cres"):
        return DMN_3DS_ERROR if payload.get("errorMessage") else DMN_3DS_CHALLENGE
    if payload.get("ppp_status") or payload.get("Status"):
        return DMN_PAYMENT
    if payload.get("transactionId") or payload.get("TransactionID"):
        return DMN_TRANSACTION
    return DMN_UNKNOWN


def ingest(
    store: WebhookStore,
    method: str,
    content_type: str,
    query_params: Mapping[str, Any],
    raw_body: str,
) -> WebhookRecord:
    """Normalize, classify and store one notification. Never raises."""
    try:
        payload = normalize_payload(method, content_type, query_params, raw_body)
    except Exception as e:
        logger.warning(f"[webhook] could not parse {method} body ({content_type}): {e}")
        payload = {"rawBody": raw_body}

    payload["_receivedAt"] = iso_now()
    payload["_contentType"] = content_type or ""
    payload["_dmnType"] = classify_payload(payload)

    record = store.add(payload)
    logger.info(f"[webhook] received {record.id} type={payload['_dmnType']}")
    return record


# ══════════════════════════════════════════════════════════════════════
# Helpers used by flows and the 3DS pages
# ══════════════════════════════════════════════════════════════════════


def mirror_response(
    store: WebhookStore,
    label: str,
    operation: str,
    response: Any,
) -> Optional[WebhookRecord]:
    """
    Copy a gateway response into the log. Best-effort: failures are logged
    and swallowed so the flow's own response is unaffected.
    """
    try:
        body = dict(response) if isinstance(response, Mapping) else {"response": response}
        body.update(
            {
                "_dmnType": label,
                "_operation": operation,
                "_source": "API Response",
                "_receivedAt": iso_now(),
            }
        )
        return store.add(body)
    except Exception as e:
        logger.warning(f"[webhook] could not mirror {operation} response: {e}")
        return None


def parse_challenge_result(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    The 3DS result block posted back to the opener window. A notify call
    without ``cres`` is reported as an authenticated CRes.
    """
    cres = payload.get("cres")
    if not isinstance(cres, str) or not cres:
        return {"transStatus": "Y", "messageType": "CRes"}

    decoded = decode_cres(cres)
    if "cresDecodeError" in decoded:
        return {
            "transStatus": "N",
            "errorMessage": "Failed to decode cRes",
            "messageType": "Error",
        }
    if "errorMessage" in decoded:
        return {
            "transStatus": "N",
            "errorMessage": decoded["errorMessage"],
            "messageType": "Error",
        }

    cres_json = decoded["cresDecoded"] if isinstance(decoded["cresDecoded"], dict) else {}
    return {
        "transStatus": cres_json.get("transStatus"),
        "threeDSServerTransID": cres_json.get("threeDSServerTransID"),
        "acsTransID": cres_json.get("acsTransID"),
        "messageType": decoded["messageType"],
        "authenticationValue": cres_json.get("authenticationValue"),
        "eci": cres_json.get("eci"),
        "dsTransID": cres_json.get("dsTransID"),
    }


def is_authenticated(three_ds_result: Mapping[str, Any]) -> bool:
    return three_ds_result.get("transStatus") in AUTHENTICATED_TRANS_STATUSES
