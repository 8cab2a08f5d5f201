"""Decimal helpers for currency math and display."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

CENT = Decimal("0.01")
# Parsed input with more integer digits than this is not treated as an amount.
MAX_INTEGER_DIGITS = 40


def to_decimal(value: object, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce user input (number, numeric string, None) to Decimal."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, float):
        # Route through repr so 0.1 stays 0.1 rather than its binary expansion.
        value = repr(value)
    try:
        result = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite() or result.adjusted() >= MAX_INTEGER_DIGITS:
        return default
    return result


def quantize_cents(value: Decimal) -> Decimal:
    """Round half-up to whole cents, widening precision for large values."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: object) -> str:
    """Render ``1500`` as ``1,500.00``."""
    return f"{quantize_cents(to_decimal(value)):,.2f}"


def format_currency(value: object) -> str:
    """Render ``1500`` as ``$1,500.00`` (negative amounts as ``-$5.00``)."""
    amount = quantize_cents(to_decimal(value))
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_quantity(value: object) -> str:
    """Render quantities without trailing zeros (``2`` not ``2.00``)."""
    qty = to_decimal(value)
    if qty == qty.to_integral_value():
        return str(qty.to_integral_value())
    return format(qty.normalize(), "f")
