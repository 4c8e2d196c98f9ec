"""
drawer_engines.ledger -- Counted notes per denomination.

Responsibility:
    Holds the operator's physical count of each denomination and derives the
    drawer total.  The only mutation is direct count entry.

Architecture position:
    Engines -- pure, zero I/O.  Owned by the closing workspace, read by the
    allocation planner, the variance calculator and the record signature.

Invariants enforced:
    - Every count is a non-negative integer.
    - Only ids from the denomination table are stored.

Failure modes:
    - UnknownDenominationError from ``set_count`` / ``count`` for ids that
      are not in the table.  Malformed count values never raise.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from drawer_kernel.domain.values import coerce_count
from drawer_engines.denominations import DenominationTable


class CashLedger:
    """
    Mutable ``denomination_id -> count`` mapping bound to one table.

    Contract:
        ``set_count`` accepts anything an entry field can hold.  A value that
        is empty or not a finite number leaves the previous count in place
        (the field is mid-edit); anything else is clamped to
        ``max(0, floor(value))``.

    Guarantees:
        - ``total()`` is ``sum(count * face)`` in table order.
        - ``counts()`` returns a fresh dict in table order.
    """

    def __init__(
        self,
        table: DenominationTable,
        counts: Mapping[str, int] | None = None,
    ):
        self._table = table
        self._counts = table.zero_counts()
        if counts:
            for denom_id, value in counts.items():
                self.set_count(denom_id, value)

    @classmethod
    def from_mapping(
        cls,
        table: DenominationTable,
        mapping: Mapping[str, Any] | None,
    ) -> CashLedger:
        """
        Build a ledger from persisted data.

        Unknown keys are ignored and invalid values count as zero.
        """
        ledger = cls(table)
        for denom_id, value in (mapping or {}).items():
            if denom_id in table:
                count = coerce_count(value)
                ledger._counts[denom_id] = count if count is not None else 0
        return ledger

    @property
    def table(self) -> DenominationTable:
        return self._table

    def set_count(self, denomination_id: str, value: Any) -> int:
        """
        Commit an entered count.

        Returns:
            The count stored after clamping (the previous count when
            ``value`` was not a number).

        Raises:
            UnknownDenominationError: ``denomination_id`` is not in the table.
        """
        self._table.index_of(denomination_id)
        count = coerce_count(value)
        if count is not None:
            self._counts[denomination_id] = count
        return self._counts[denomination_id]

    def count(self, denomination_id: str) -> int:
        self._table.index_of(denomination_id)
        return self._counts[denomination_id]

    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def total(self) -> int:
        return self._table.value_of(self._counts)

    def clear(self) -> None:
        for denom_id in self._counts:
            self._counts[denom_id] = 0

    def copy(self) -> CashLedger:
        return CashLedger.from_mapping(self._table, self._counts)

    def fingerprint(self) -> str:
        return ",".join(f"{k}:{v}" for k, v in self._counts.items())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CashLedger):
            return NotImplemented
        return self._table == other._table and self._counts == other._counts

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<CashLedger total={self.total()} {self.fingerprint()}>"
