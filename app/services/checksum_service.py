"""
Nuvei checksum engine.

The gateway authenticates requests with a legacy scheme: selected field
values are concatenated (no separator) in a fixed per-endpoint order,
followed by the merchant secret, and hashed. Field order comes from the
endpoint registry.

Secrets, checksums and card numbers are never logged here.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Iterable, Mapping, Optional, Union

from app.core.exceptions import ChecksumNotApplicableError, UnknownEndpointError
from app.services.endpoint_specs import FieldSource, HashAlgorithm, lookup

logger = logging.getLogger(__name__)

AlgorithmLike = Union[HashAlgorithm, str, None]


def resolve_algorithm(algorithm: AlgorithmLike) -> HashAlgorithm:
    """Accept enum members, ``"sha256"``/``"SHA-1"`` style strings, or None."""
    if isinstance(algorithm, HashAlgorithm):
        return algorithm
    if not algorithm:
        return HashAlgorithm.SHA256
    normalized = str(algorithm).upper().replace("-", "")
    return HashAlgorithm.SHA1 if normalized == "SHA1" else HashAlgorithm.SHA256


def calculate_checksum(
    values: Iterable[Optional[str]],
    algorithm: AlgorithmLike = HashAlgorithm.SHA256,
) -> str:
    """
    Concatenate the non-empty values in order and return the lowercase hex
    digest. ``None`` and ``""`` entries are dropped.
    """
    concatenated = "".join(v for v in values if v is not None and v != "")

    if resolve_algorithm(algorithm) is HashAlgorithm.SHA1:
        return hashlib.sha1(concatenated.encode("utf-8")).hexdigest()
    return hashlib.sha256(concatenated.encode("utf-8")).hexdigest()


def _as_checksum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def calculate_checksum_for_endpoint(
    endpoint_name: str,
    request_data: Mapping[str, Any],
    merchant_secret_key: str,
    algorithm: AlgorithmLike = HashAlgorithm.SHA256,
) -> str:
    """
    Compute the checksum for ``endpoint_name`` from ``request_data`` using
    the registry's field order.

    Required fields that are missing contribute an empty string (the
    gateway's own convention, kept for checksum parity). Optional fields
    that are missing are skipped.

    Raises:
        UnknownEndpointError: the endpoint is not in the registry.
        ChecksumNotApplicableError: the endpoint takes no checksum.
    """
    spec = lookup(endpoint_name)
    if spec is None:
        raise UnknownEndpointError(endpoint_name)
    if not spec.requires_checksum:
        raise ChecksumNotApplicableError(endpoint_name)

    values: list[str] = []
    for field in spec.checksum_fields:
        if field.source is FieldSource.CALLER_SECRET:
            value = merchant_secret_key
        else:
            value = _as_checksum_value(request_data.get(field.name))

        if value is None or value == "":
            if not field.required:
                continue
            value = ""

        values.append(value)

    return calculate_checksum(values, algorithm)


def verify_checksum(
    endpoint_name: str,
    request_data: Mapping[str, Any],
    provided_checksum: str,
    merchant_secret_key: str,
    algorithm: AlgorithmLike = HashAlgorithm.SHA256,
) -> bool:
    """Recompute and compare case-insensitively. Never raises."""
    try:
        calculated = calculate_checksum_for_endpoint(
            endpoint_name,
            request_data,
            merchant_secret_key,
            algorithm,
        )
        return calculated.lower() == str(provided_checksum or "").lower()
    except Exception as e:
        logger.debug(f"[nuvei] checksum verification for {endpoint_name} failed: {e}")
        return False
