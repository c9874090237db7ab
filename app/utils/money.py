from decimal import Decimal, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce DB numerics, floats, ints and strings to Decimal (None -> 0)."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Any) -> Decimal:
    """Round to cents, half-up, for storage and API output."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
