from app.utils.masking import (
    CHECKSUM_MASK,
    CVV_MASK,
    mask_card_number,
    mask_pan,
    mask_request_body,
    snapshot_context,
)


def test_mask_card_number_keeps_last_four():
    masked = mask_card_number("4000020951595032")
    assert masked == "************5032"
    assert len(masked) == 16


def test_mask_card_number_short_input():
    assert mask_card_number("1234") == "****"
    assert mask_card_number("123456") == "****3456"


def test_mask_pan_shows_bin_and_last_four():
    assert mask_pan("4000020951595032") == "400002******5032"
    assert mask_pan("123") == "****"


def test_mask_request_body_masks_secrets_without_mutating():
    body = {
        "merchantId": "1",
        "merchantKey": "secret",
        "checksum": "abcdef",
        "ccCardNumber": "4111111111111111",
        "paymentOption": {
            "card": {"cardNumber": "4000020951595032", "CVV": "217", "cardHolderName": "J"},
        },
    }
    masked = mask_request_body(body)

    assert "merchantKey" not in masked
    assert masked["checksum"] == CHECKSUM_MASK
    assert masked["ccCardNumber"].endswith("1111")
    assert masked["ccCardNumber"].startswith("*")
    assert masked["paymentOption"]["card"]["CVV"] == CVV_MASK
    assert masked["paymentOption"]["card"]["cardNumber"] == "************5032"
    assert masked["paymentOption"]["card"]["cardHolderName"] == "J"

    assert body["checksum"] == "abcdef"
    assert body["paymentOption"]["card"]["CVV"] == "217"
    assert body["merchantKey"] == "secret"


def test_snapshot_context_drops_credentials():
    snapshot = snapshot_context(
        {"merchantKey": "k", "cvv": "217", "cardNumber": "4000020951595032", "amount": "1"}
    )
    assert snapshot == {"cardNumber": "************5032", "amount": "1"}
