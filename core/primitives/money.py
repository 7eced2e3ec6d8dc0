"""
POS Money Primitive - Fixed-Precision Currency Arithmetic
=========================================================
Amounts are Decimal values carried at 3 decimal places (fils).

RULES:
- Rounding is half-up, never banker's rounding
- Rounding is applied at the boundary of totals and payment sums,
  not per line
- Comparisons between amounts tolerate EPSILON, never exact equality
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

AmountLike = Union[Decimal, int, float, str]

CURRENCY_PLACES = 3
QUANTUM = Decimal("0.001")
EPSILON = Decimal("0.001")
ZERO = Decimal("0.000")


def to_amount(value: AmountLike) -> Decimal:
    """
    Parse an amount into a Decimal.

    Floats go through str() so 10.1 becomes Decimal('10.1'),
    not its binary expansion. NaN and infinity are rejected.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be numeric, not bool.")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise ValueError(f"amount '{value}' is not a number.") from None
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        raise ValueError(f"amount must be numeric, got {type(value).__name__}.")

    if not amount.is_finite():
        raise ValueError("amount must be finite.")
    return amount


def round_currency(value: AmountLike) -> Decimal:
    """Round to 3 decimal places, half-up. Idempotent."""
    return to_amount(value).quantize(QUANTUM, rounding=ROUND_HALF_UP)


def sum_amounts(values: Iterable[AmountLike]) -> Decimal:
    """Sum raw amounts and round once at the end."""
    total = Decimal("0")
    for value in values:
        total += to_amount(value)
    return round_currency(total)


def amounts_equal(a: AmountLike, b: AmountLike) -> bool:
    return abs(to_amount(a) - to_amount(b)) <= EPSILON


def exceeds(a: AmountLike, b: AmountLike) -> bool:
    """True when a is greater than b by more than EPSILON."""
    return to_amount(a) > to_amount(b) + EPSILON


def falls_short(a: AmountLike, b: AmountLike) -> bool:
    """True when a is smaller than b by more than EPSILON."""
    return to_amount(a) < to_amount(b) - EPSILON


def is_positive(value: AmountLike) -> bool:
    return to_amount(value) > 0
