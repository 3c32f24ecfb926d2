# app/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Exact Decimal for a stored or user supplied amount. Never rounds."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Round half-up to whole cents. Only for display and persistence."""
    return to_decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def money_format(value) -> str:
    return f"${round_money(value):,.2f}"
