from decimal import Decimal

import pytest

from app.storefront.modules.orders.service import (
    PaymentProof,
    build_payment_proof_key,
    compute_totals,
    generate_order_id,
    validate_checkout_payload,
)
from app.storefront.utils import MAX_DB_INT, base36, parse_decimal, parse_int, to_money

MB = 1024 * 1024


def test_small_order_pays_flat_shipping():
    t = compute_totals([(Decimal("25.00"), 2)])
    assert t.subtotal == Decimal("50.00")
    assert t.shipping == Decimal("15.00")
    assert t.tax == Decimal("4.00")
    assert t.total == Decimal("69.00")


def test_shipping_free_only_strictly_above_threshold():
    at_threshold = compute_totals([(Decimal("100.00"), 1)])
    assert at_threshold.shipping == Decimal("15.00")
    above = compute_totals([(Decimal("100.01"), 1)])
    assert above.shipping == Decimal("0.00")


def test_tax_rounds_half_up_to_cents():
    # 10.4375 is rounded to 10.44 before tax
    assert compute_totals([(Decimal("10.31"), 1)]).tax == Decimal("0.82")
    assert compute_totals([(Decimal("10.4375"), 1)]).tax == Decimal("0.84")


def test_empty_order_totals():
    t = compute_totals([])
    assert t.subtotal == Decimal("0.00")
    assert t.total == Decimal("15.00")


def test_custom_pricing_rules():
    t = compute_totals(
        [(Decimal("40"), 1)],
        free_shipping_threshold=Decimal("30"),
        flat_shipping_rate=Decimal("9.99"),
        tax_rate=Decimal("0"),
    )
    assert t.shipping == Decimal("0.00")
    assert t.total == Decimal("40.00")


def test_to_money():
    assert to_money("1.005") == Decimal("1.01")
    assert to_money(2) == Decimal("2.00")


def test_parse_decimal_rejects_non_finite():
    assert parse_decimal("$1,299.50") == Decimal("1299.50")
    for raw in ("NaN", "sNaN", "Infinity", "-inf", "abc", ""):
        assert parse_decimal(raw) is None


def test_parse_int_stays_within_column_range():
    assert parse_int(str(MAX_DB_INT)) == MAX_DB_INT
    assert parse_int(str(MAX_DB_INT + 1)) is None
    assert parse_int("-99999999999999999999", 7) == 7
    assert parse_int("x", 3) == 3


def test_base36():
    assert base36(0) == "0"
    assert base36(35) == "Z"
    assert base36(36) == "10"
    with pytest.raises(ValueError):
        base36(-1)


def test_order_id_is_base36_timestamp():
    assert generate_order_id(1_700_000_000_000) == "ORD-" + base36(1_700_000_000_000)
    assert generate_order_id().startswith("ORD-")


def test_proof_key_layout():
    from datetime import date

    key = build_payment_proof_key("ORD-ABC", "my receipt.png", b"data", upload_date=date(2026, 3, 4))
    assert key.startswith("payment-proofs/2026/03/ORD-ABC/")
    assert key.endswith("-my_receipt.png")


def _payload(**over):
    base = {"state": "TX", "country": "US", "payment_category": "p2p", "payment_code": "venmo"}
    base.update(over)
    return base


def test_checkout_payload_ok():
    proof = PaymentProof(filename="p.png", data=b"x" * 10, content_type="image/png")
    assert validate_checkout_payload(_payload(), proof, max_proof_bytes=5 * MB) == []


def test_checkout_payload_requires_address_and_proof():
    errs = validate_checkout_payload(_payload(state="", country=""), None, max_proof_bytes=5 * MB)
    assert "State is required." in errs
    assert "Country is required." in errs
    assert "Please upload a screenshot of your payment." in errs


def test_checkout_payload_rejects_bad_proofs():
    pdf = PaymentProof(filename="p.pdf", data=b"%PDF", content_type="application/pdf")
    errs = validate_checkout_payload(_payload(), pdf, max_proof_bytes=5 * MB)
    assert any("must be an image" in e for e in errs)

    huge = PaymentProof(filename="p.png", data=b"x" * (5 * MB + 1), content_type="image/png")
    errs = validate_checkout_payload(_payload(), huge, max_proof_bytes=5 * MB)
    assert "Payment screenshot must be under 5MB." in errs


def test_checkout_payload_payment_choice():
    proof = PaymentProof(filename="p.png", data=b"x", content_type="image/png")
    assert "Please select a payment method." in validate_checkout_payload(
        _payload(payment_category="cash"), proof, max_proof_bytes=MB
    )
    assert "Please choose which payment option you used." in validate_checkout_payload(
        _payload(payment_code=""), proof, max_proof_bytes=MB
    )
    # bank transfer has no sub-option
    assert validate_checkout_payload(_payload(payment_category="bank", payment_code=""), proof, max_proof_bytes=MB) == []
