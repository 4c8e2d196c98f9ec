"""
Module: drawer_engines.allocation
Responsibility:
    Decide how many notes of each denomination to withdraw from the drawer
    so that what stays behind matches the float target, using only the notes
    actually counted, and honouring denominations the operator pinned.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports only the denomination table, the ledger and kernel value helpers.

Invariants enforced:
    - take[d] <= ledger[d] for every denomination, in every result.
    - Takes are non-negative integers; a denomination with nothing counted
      always yields 0.
    - Passes walk the table largest-first; an operator edit at index k is
      resolved after every pin at indexes < k and before everything below.
    - Purity: no clock, no I/O, inputs are never mutated.

Failure modes:
    None.  Malformed requests are clamped (empty or non-numeric -> 0).

Usage:
    from drawer_engines.allocation import FloatAllocationPlanner

    planner = FloatAllocationPlanner()
    result = planner.suggest(ledger=ledger, float_target=3_000_000)
    result = planner.recompute_with_override(
        ledger=ledger, float_target=3_000_000,
        current=result.plan, index=0, requested=3,
    )
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from drawer_engines.denominations import DenominationTable
from drawer_engines.ledger import CashLedger
from drawer_engines.tracer import traced_engine
from drawer_kernel.domain.values import coerce_count
from drawer_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class WithdrawalPlan:
    """
    Per-denomination withdrawal counts plus the operator-pinned ids.

    Contract:
        ``takes`` holds one entry per table id, in table order.  ``active``
        is False until the operator asks for a suggestion, edits a take, or a
        non-empty plan is loaded; an inactive plan is all zeros and is not
        re-solved on ledger changes.

    Guarantees:
        - Immutable; every planner call returns a new plan.
        - ``edited`` is a subset of the table ids.
    """

    takes: Mapping[str, int]
    edited: frozenset[str] = field(default_factory=frozenset)
    active: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.takes, MappingProxyType):
            object.__setattr__(self, "takes", MappingProxyType(dict(self.takes)))
        object.__setattr__(self, "edited", frozenset(self.edited))

    @classmethod
    def inactive(cls, table: DenominationTable) -> WithdrawalPlan:
        return cls(takes=table.zero_counts())

    @classmethod
    def from_mapping(
        cls,
        table: DenominationTable,
        mapping: Mapping[str, Any] | None,
    ) -> WithdrawalPlan:
        """Plan read from storage: no pins, active iff anything is withdrawn."""
        takes = table.zero_counts()
        for denom_id, value in (mapping or {}).items():
            if denom_id in table:
                takes[denom_id] = coerce_count(value) or 0
        return cls(takes=takes, active=any(takes.values()))

    def take(self, denomination_id: str) -> int:
        return self.takes.get(denomination_id, 0)

    def is_edited(self, denomination_id: str) -> bool:
        return denomination_id in self.edited

    def fingerprint(self) -> str:
        pins = ",".join(sorted(self.edited))
        counts = ",".join(f"{k}:{v}" for k, v in self.takes.items())
        return f"{counts}|{pins}|{int(self.active)}"


@dataclass(frozen=True)
class AllocationResult:
    """
    A plan together with everything derived from it.

    Guarantees:
        - ``total_to_take + total_remaining == total``.
        - ``unresolved == (total - target) - total_to_take``; negative when the
          ascending fallback withdrew more than the exact surplus.
    """

    plan: WithdrawalPlan
    total: int
    target: int
    total_to_take: int
    remainder: Mapping[str, int]
    total_remaining: int
    unresolved: int

    @property
    def surplus(self) -> int:
        """Value that should leave the drawer to hit the float target."""
        return self.total - self.target

    @property
    def overshoot(self) -> int:
        return max(0, -self.unresolved)

    @property
    def is_exact(self) -> bool:
        return self.unresolved == 0


class FloatAllocationPlanner:
    """
    Greedy withdrawal planner with operator pinning.

    Contract:
        Pure functions of (ledger, float target, current plan).  Every method
        returns a fresh AllocationResult and never raises.

    Guarantees:
        - ``suggest`` is idempotent: same ledger and target, same plan.
        - ``recompute_with_override`` keeps the edited entry at
          ``min(have, floor(remain / face), max(0, floor(requested)))``.
        - Only ``suggest`` (directly, or via ``replan`` with no pins) runs the
          ascending fallback; pinned re-solves never overshoot.

    Non-goals:
        - Minimum-note optimality.  The descending greedy pass plus the
          ascending top-up is the accepted heuristic.
    """

    @traced_engine("allocation", "1.0", fingerprint_fields=("ledger", "float_target"))
    def suggest(self, ledger: CashLedger, float_target: int) -> AllocationResult:
        """
        Full automatic plan, no pins.

        1. ``target = clamp(float_target, 0, total)``; ``remain = total - target``.
        2. Largest-first: ``take = min(have, floor(remain / face))``.
        3. If ``remain`` is still positive, smallest-first top-up:
           ``add = min(have - take, ceil(remain / face))`` until
           ``remain <= 0``.  Step 3 may withdraw more than the exact surplus
           when the drawer cannot make exact change.

        Postconditions:
            Returned plan is active with no edited ids.
        """
        t0 = time.monotonic()
        table = ledger.table
        have = ledger.counts()
        total, target = self._bounds(ledger, float_target)
        remain = total - target
        takes = table.zero_counts()

        if remain > 0:
            for denom in table:
                if remain <= 0:
                    break
                take = min(have[denom.id], remain // denom.face_value)
                takes[denom.id] = take
                remain -= take * denom.face_value

            if remain > 0:
                for denom in reversed(table.denominations):
                    if remain <= 0:
                        break
                    room = have[denom.id] - takes[denom.id]
                    if room <= 0:
                        continue
                    add = min(room, -(-remain // denom.face_value))
                    takes[denom.id] += add
                    remain -= add * denom.face_value

        result = self._result(ledger, WithdrawalPlan(takes=takes, active=True), total, target)

        logger.info("allocation_suggested", extra={
            "total": total,
            "target": target,
            "total_to_take": result.total_to_take,
            "overshoot": result.overshoot,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        if result.overshoot:
            logger.warning("allocation_overshoot", extra={
                "surplus": result.surplus,
                "total_to_take": result.total_to_take,
                "overshoot": result.overshoot,
            })
        return result

    @traced_engine(
        "allocation_override", "1.0",
        fingerprint_fields=("ledger", "float_target", "current", "index", "requested"),
    )
    def recompute_with_override(
        self,
        ledger: CashLedger,
        float_target: int,
        current: WithdrawalPlan,
        index: int,
        requested: Any,
    ) -> AllocationResult:
        """
        Re-solve after the operator typed a take for the denomination at ``index``.

        Preconditions:
            ``0 <= index < len(table)``.

        Postconditions:
            - Indexes < ``index``: pinned entries keep
              ``min(pinned, have, floor(remain / face))``; the rest are greedy.
            - ``index``: ``min(have, floor(remain / face), max(0, floor(requested)))``,
              marked edited.  An empty or non-numeric request counts as 0.
            - Indexes > ``index``: greedy in this pass.  Their edited flags are
              kept, so a later ``replan`` holds them at the takes computed here.

        Args:
            ledger: Current counts.
            float_target: Resolved float target.
            current: Plan in effect before the edit; supplies pinned values.
            index: Table index of the edited denomination.
            requested: Raw entry value.

        Returns:
            AllocationResult with an active plan.
        """
        table = ledger.table
        have = ledger.counts()
        total, target = self._bounds(ledger, float_target)
        remain = total - target
        request = coerce_count(requested) or 0

        edited_id = table[index].id
        takes = table.zero_counts()
        for i, denom in enumerate(table):
            cap = min(have[denom.id], max(0, remain) // denom.face_value)
            if i < index and current.is_edited(denom.id):
                take = min(current.take(denom.id), cap)
            elif i == index:
                take = min(cap, request)
            else:
                take = cap
            takes[denom.id] = take
            remain -= take * denom.face_value

        edited = current.edited | {edited_id}
        plan = WithdrawalPlan(takes=takes, edited=edited, active=True)
        result = self._result(ledger, plan, total, target)

        logger.info("allocation_override_applied", extra={
            "denomination": edited_id,
            "requested": request,
            "applied": takes[edited_id],
            "pinned": sorted(edited),
            "total_to_take": result.total_to_take,
        })
        return result

    @traced_engine("allocation_replan", "1.0", fingerprint_fields=("ledger", "float_target", "current"))
    def replan(
        self,
        ledger: CashLedger,
        float_target: int,
        current: WithdrawalPlan,
    ) -> AllocationResult:
        """
        Bring an existing plan up to date after a ledger or float-target change.

        An inactive plan stays all zeros.  With no pins this is ``suggest``.
        With pins, one largest-first pass keeps every pin capped at
        ``min(pinned, have, floor(remain / face))`` and fills the rest
        greedily; there is no top-up.
        """
        table = ledger.table
        if not current.active:
            total, target = self._bounds(ledger, float_target)
            return self._result(ledger, WithdrawalPlan.inactive(table), total, target)
        if not current.edited:
            return self.suggest(ledger=ledger, float_target=float_target)

        have = ledger.counts()
        total, target = self._bounds(ledger, float_target)
        remain = total - target
        takes = table.zero_counts()
        for denom in table:
            cap = min(have[denom.id], max(0, remain) // denom.face_value)
            take = min(current.take(denom.id), cap) if current.is_edited(denom.id) else cap
            takes[denom.id] = take
            remain -= take * denom.face_value

        plan = WithdrawalPlan(takes=takes, edited=current.edited, active=True)
        result = self._result(ledger, plan, total, target)
        logger.debug("allocation_replanned", extra={
            "pinned": sorted(current.edited),
            "total_to_take": result.total_to_take,
        })
        return result

    def summarize(
        self,
        ledger: CashLedger,
        plan: WithdrawalPlan,
        float_target: int,
    ) -> AllocationResult:
        """
        Derived values for a plan as it stands, e.g. one loaded from storage.

        Takes above the counted quantity are clamped to it.
        """
        have = ledger.counts()
        takes = {k: min(plan.take(k), have[k]) for k in ledger.table.ids}
        clamped = WithdrawalPlan(takes=takes, edited=plan.edited, active=plan.active)
        total, target = self._bounds(ledger, float_target)
        return self._result(ledger, clamped, total, target)

    # ------------------------------------------------------------------

    @staticmethod
    def _bounds(ledger: CashLedger, float_target: int) -> tuple[int, int]:
        total = ledger.total()
        target = max(0, min(int(float_target), total))
        return total, target

    @staticmethod
    def _result(
        ledger: CashLedger,
        plan: WithdrawalPlan,
        total: int,
        target: int,
    ) -> AllocationResult:
        table = ledger.table
        have = ledger.counts()
        total_to_take = table.value_of(plan.takes)
        remainder = {k: have[k] - plan.take(k) for k in table.ids}
        return AllocationResult(
            plan=plan,
            total=total,
            target=target,
            total_to_take=total_to_take,
            remainder=MappingProxyType(remainder),
            total_remaining=table.value_of(remainder),
            unresolved=(total - target) - total_to_take,
        )
