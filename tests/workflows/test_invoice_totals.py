"""Tests for invoice total computation."""

from decimal import Decimal

from gigster.workflows.invoices import (
    compute_totals,
    generate_invoice_number,
    normalize_line_items,
)


def test_qty_rate_line_gives_subtotal() -> None:
    totals = compute_totals([{"qty": 2, "rate": 50}])

    assert totals.subtotal == Decimal("100.00")
    assert totals.line_items == [
        {"description": "", "quantity": "2", "rate": "50.00", "amount": "100.00"}
    ]


def test_tax_rate_applies_to_subtotal() -> None:
    totals = compute_totals([{"qty": 2, "rate": 50}], tax_rate=10)

    assert totals.tax_amount == Decimal("10.00")
    assert totals.total_amount == Decimal("110.00")
    assert totals.balance_due == Decimal("110.00")


def test_tax_rate_rounded_to_stored_precision() -> None:
    totals = compute_totals([{"qty": 1, "rate": 1000}], tax_rate="8.875")

    assert totals.tax_rate == Decimal("8.88")
    assert totals.tax_amount == Decimal("88.80")
    assert totals.total_amount == Decimal("1088.80")


def test_invariants_hold_with_discount_and_payment() -> None:
    totals = compute_totals(
        [
            {"description": "Design", "quantity": "3", "rate": "33.33"},
            {"description": "Setup", "quantity": "0.5", "rate": "125"},
        ],
        tax_rate="8.25",
        discount_amount="15",
        amount_paid="40",
    )

    assert totals.total_amount == totals.subtotal + totals.tax_amount - totals.discount_amount
    assert totals.balance_due == totals.total_amount - totals.amount_paid
    assert totals.subtotal == Decimal("162.49")


def test_stated_amount_is_recomputed() -> None:
    items = normalize_line_items([{"quantity": 2, "rate": "10", "amount": "999"}])

    assert items[0]["amount"] == "20.00"


def test_missing_quantity_defaults_to_one() -> None:
    assert normalize_line_items([{"rate": "12.5"}])[0]["quantity"] == "1"


def test_empty_invoice_totals_are_zero() -> None:
    totals = compute_totals([])

    assert totals.subtotal == Decimal("0.00")
    assert totals.total_amount == Decimal("0.00")


def test_invoice_number_format() -> None:
    number = generate_invoice_number()

    assert number.startswith("INV-")
    assert len(number.split("-")[2]) == 6
