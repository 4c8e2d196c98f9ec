"""
Values -- whole-currency-unit coercion helpers.

Responsibility:
    Converts the loosely-typed numbers that arrive from entry forms and
    persisted JSON into the integers the engines work with.  Every monetary
    value in the drawer subsystem is an integer number of whole currency
    units; counts are non-negative integers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ``whole_units`` rounds half up (1.5 -> 2, -1.5 -> -2), never banker's
      rounding.
    - ``coerce_count`` floors and clamps at zero.
    - Empty, non-numeric and non-finite input is reported as absent (None)
      rather than raising.

Failure modes:
    None -- malformed input is a normal mid-edit state, not an error.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_ONE = Decimal(1)


def to_decimal(raw: Any) -> Decimal | None:
    """
    Parse ``raw`` into a finite Decimal, or None when it is not a number.

    Strings may carry surrounding whitespace and thousands separators
    (``"1,500,000"``).  Booleans are rejected.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        return Decimal(raw)
    elif isinstance(raw, float):
        value = Decimal(repr(raw))
    elif isinstance(raw, str):
        text = raw.strip().replace(",", "").replace(" ", "")
        if not text:
            return None
        try:
            value = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not value.is_finite():
        return None
    return value


def whole_units(raw: Any, default: int = 0) -> int:
    """
    Round ``raw`` half-up to whole currency units.

    Args:
        raw: Any numeric-ish input.
        default: Value returned when ``raw`` is not a finite number.

    Returns:
        Integer amount; may be negative.
    """
    value = to_decimal(raw)
    if value is None:
        return default
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def coerce_count(raw: Any) -> int | None:
    """
    Clamp ``raw`` to ``max(0, floor(raw))``.

    Returns:
        The clamped count, or None when ``raw`` is empty or not a finite
        number (the caller keeps its previous value).
    """
    value = to_decimal(raw)
    if value is None:
        return None
    return max(0, int(value.to_integral_value(rounding=ROUND_FLOOR)))


def positive_amount(raw: Any) -> int | None:
    """Whole-unit amount when ``raw`` is a positive finite number, else None."""
    value = to_decimal(raw)
    if value is None or value <= 0:
        return None
    amount = whole_units(value)
    return amount if amount > 0 else None
