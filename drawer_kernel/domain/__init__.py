"""
Pure domain layer.

Data transfer objects, value coercion and the clock abstraction, with NO
dependencies on the ORM, the database or any I/O.
"""

from drawer_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from drawer_kernel.domain.dtos import (
    Adjustments,
    ClosingHeader,
    ClosingSnapshot,
    PaymentBreakdown,
    ThirdPartyAmount,
)
from drawer_kernel.domain.values import (
    coerce_count,
    positive_amount,
    to_decimal,
    whole_units,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ClosingHeader",
    "ThirdPartyAmount",
    "PaymentBreakdown",
    "Adjustments",
    "ClosingSnapshot",
    "to_decimal",
    "whole_units",
    "coerce_count",
    "positive_amount",
]
