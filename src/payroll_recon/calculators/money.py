"""Exact-money helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored numeric value to Decimal.

    None, empty and unparseable values become 0. Floats go through str()
    so 22.5 becomes Decimal("22.5") rather than its binary expansion.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, bool):
        return ZERO
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def round_currency(value: Any) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_currency(total: Decimal, amount: Decimal) -> Decimal:
    """One accumulation step: the running total is re-rounded on every add."""
    return round_currency(total + amount)
