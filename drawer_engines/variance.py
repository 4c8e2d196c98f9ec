"""
drawer_engines.variance -- Expected drawer cash and counted-vs-expected variance.

Responsibility:
    Combine the net cash movement of the shift, the float target and the
    counted drawer total into the expected drawer cash and the variance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Net cash itself is computed by the closing module from the payment
    forms; this engine only consumes the figure.

Invariants enforced:
    - expected_drawer_cash = net_cash + float_target.
    - variance = counted_cash - expected_drawer_cash, exactly, for all
      integer inputs including zero and negative net cash.
    - Whole currency units only; no rounding is performed here.

Usage:
    from drawer_engines.variance import VarianceCalculator

    result = VarianceCalculator().drawer_variance(
        net_cash=2_000_000, float_target=3_000_000, counted_cash=5_100_000,
    )
    result.variance  # 100_000, VarianceStatus.OVERAGE
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from drawer_engines.tracer import traced_engine
from drawer_kernel.logging_config import get_logger

logger = get_logger("engines.variance")


class VarianceStatus(str, Enum):
    """Sign of the drawer variance."""

    OVERAGE = "overage"  # more cash than expected
    SHORTAGE = "shortage"  # less cash than expected
    BALANCED = "balanced"


@dataclass(frozen=True)
class DrawerVarianceResult:
    """Outcome of one variance computation. All fields are whole units."""

    net_cash: int
    float_target: int
    counted_cash: int
    expected_drawer_cash: int
    variance: int

    @property
    def status(self) -> VarianceStatus:
        if self.variance > 0:
            return VarianceStatus.OVERAGE
        if self.variance < 0:
            return VarianceStatus.SHORTAGE
        return VarianceStatus.BALANCED

    @property
    def absolute_variance(self) -> int:
        return abs(self.variance)


class VarianceCalculator:
    """
    Pure calculator for the drawer variance.

    Contract:
        No I/O, fully deterministic.
    Guarantees:
        - Positive variance is an overage, negative a shortage.
    """

    @traced_engine(
        "drawer_variance", "1.0",
        fingerprint_fields=("net_cash", "float_target", "counted_cash"),
    )
    def drawer_variance(
        self,
        net_cash: int,
        float_target: int,
        counted_cash: int,
    ) -> DrawerVarianceResult:
        """
        Compute expected drawer cash and variance.

        Args:
            net_cash: Cash movement of the shift excluding non-cash channels.
            float_target: Resolved float target.
            counted_cash: Ledger total.

        Returns:
            DrawerVarianceResult.
        """
        expected = int(net_cash) + int(float_target)
        result = DrawerVarianceResult(
            net_cash=int(net_cash),
            float_target=int(float_target),
            counted_cash=int(counted_cash),
            expected_drawer_cash=expected,
            variance=int(counted_cash) - expected,
        )
        logger.debug("drawer_variance_computed", extra={
            "expected_drawer_cash": result.expected_drawer_cash,
            "counted_cash": result.counted_cash,
            "variance": result.variance,
            "status": result.status.value,
        })
        return result
