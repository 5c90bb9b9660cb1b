"""Card / secret masking for request bodies kept in step results.

Masking is one-way: the original values are not recoverable from the
output, and inputs are never mutated.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

CHECKSUM_MASK = "***masked***"
CVV_MASK = "***"

# Never echoed back in a context snapshot or masked body.
CREDENTIAL_KEYS = {"env", "merchantKey", "merchantSecretKey"}

_TOP_LEVEL_CARD_KEYS = ("cardNumber", "ccCardNumber")


def mask_card_number(card_number: Any) -> str:
    """
    Keep only the last four digits visible. Output length equals the input
    length for inputs of 8+ characters and is never shorter than 8.
    """
    number = str(card_number or "")
    if len(number) <= 4:
        return "****"
    return "*" * max(len(number) - 4, 4) + number[-4:]


def mask_pan(card_number: Any) -> str:
    """First six and last four digits, for BIN-lookup display."""
    number = str(card_number or "")
    if len(number) < 13:
        return "****"
    return f"{number[:6]}{'*' * (len(number) - 10)}{number[-4:]}"


def mask_request_body(body: Mapping[str, Any]) -> Dict[str, Any]:
    masked: Dict[str, Any] = {
        k: v for k, v in body.items() if k not in CREDENTIAL_KEYS
    }

    if masked.get("checksum"):
        masked["checksum"] = CHECKSUM_MASK

    for key in _TOP_LEVEL_CARD_KEYS:
        if masked.get(key):
            masked[key] = mask_card_number(masked[key])

    payment_option = masked.get("paymentOption")
    if isinstance(payment_option, Mapping):
        payment_option = dict(payment_option)
        card = payment_option.get("card")
        if isinstance(card, Mapping):
            card = dict(card)
            if card.get("cardNumber"):
                card["cardNumber"] = mask_card_number(card["cardNumber"])
            if card.get("CVV"):
                card["CVV"] = CVV_MASK
            payment_option["card"] = card
        masked["paymentOption"] = payment_option

    return masked


def snapshot_context(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Context copy safe to return to the caller (credentials and CVV removed)."""
    snapshot = {
        k: v
        for k, v in values.items()
        if k not in CREDENTIAL_KEYS and k.lower() != "cvv"
    }
    if snapshot.get("cardNumber"):
        snapshot["cardNumber"] = mask_card_number(snapshot["cardNumber"])
    return snapshot
