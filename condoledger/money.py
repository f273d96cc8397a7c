"""Fixed-point money helpers.

Every monetary value in the engine is a ``Decimal`` with two fractional
digits. Floats are rejected outright so that binary rounding never leaks
into a persisted amount.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Convert a value to a 2-place Decimal (ROUND_HALF_UP).

    Accepts Decimal, int and numeric strings. Floats raise TypeError,
    NaN and infinities raise ValueError.
    """
    if isinstance(value, float):
        raise TypeError(f"Float {value!r} is not a valid monetary value; use Decimal or str")
    if value is None:
        return ZERO
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"{value!r} is not a finite monetary value")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_floor(value: Decimal) -> Decimal:
    """Quantize to cents, rounding toward zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_DOWN)


def money_sum(values: Iterable) -> Decimal:
    """Sum monetary values, returning a 2-place Decimal."""
    total = ZERO
    for value in values:
        total += to_money(value)
    return total
