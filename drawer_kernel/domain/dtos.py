"""
DTOs -- Pure data transfer objects for the cashier-closing record.

Responsibility:
    Defines the immutable snapshot of a closing record that flows between
    the draft workspace, the signature engine and the persistence service:
    ClosingHeader, ThirdPartyAmount, PaymentBreakdown, Adjustments and
    ClosingSnapshot.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Free of ORM
    dependencies; the ORM models convert to and from these at the
    persistence boundary.

Invariants enforced:
    - Every monetary field is an int in whole currency units (coerced with
      round-half-up on construction from payloads).
    - Cash counts and plan mappings are frozen (MappingProxyType) so a
      snapshot cannot be mutated after it is taken.

Data flow:
    workspace draft -> ClosingSnapshot -> signature / CashierClosingModel
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from drawer_kernel.domain.values import coerce_count, whole_units


def _freeze_counts(counts: Mapping[str, int]) -> MappingProxyType:
    return MappingProxyType({str(k): int(v) for k, v in counts.items()})


def _counts_from_payload(raw: Any) -> dict[str, int]:
    """Persisted counts: unknown shapes are dropped, bad values clamp to 0."""
    if not isinstance(raw, Mapping):
        return {}
    result: dict[str, int] = {}
    for key, value in raw.items():
        count = coerce_count(value)
        result[str(key)] = count if count is not None else 0
    return result


def _parse_date(raw: Any) -> date | None:
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str) and raw:
        return date.fromisoformat(raw[:10])
    return None


@dataclass(frozen=True)
class ClosingHeader:
    """Identity fields of a closing; branch + report_date is the logical key."""

    report_date: date | None = None
    branch_name: str = ""
    branch_id: str | None = None
    shift: str = ""
    cashier_name: str = ""
    notes: str = ""

    @property
    def has_branch(self) -> bool:
        return bool(self.branch_name.strip())

    def to_payload(self) -> dict[str, Any]:
        return {
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "branch_name": self.branch_name,
            "branch_id": self.branch_id,
            "shift": self.shift,
            "cashier_name": self.cashier_name,
            "notes": self.notes,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ClosingHeader:
        return cls(
            report_date=_parse_date(payload.get("report_date")),
            branch_name=str(payload.get("branch_name") or ""),
            branch_id=payload.get("branch_id") or None,
            shift=str(payload.get("shift") or ""),
            cashier_name=str(payload.get("cashier_name") or ""),
            notes=str(payload.get("notes") or ""),
        )


@dataclass(frozen=True)
class ThirdPartyAmount:
    """One delivery-platform / partner settlement line (e.g. Gojek)."""

    label: str
    amount: int

    def to_payload(self) -> dict[str, Any]:
        return {"label": self.label, "amount": self.amount}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ThirdPartyAmount:
        return cls(
            label=str(payload.get("label") or ""),
            amount=whole_units(payload.get("amount")),
        )


_PAYMENT_FIELDS = (
    "revenue",
    "gojek",
    "grab",
    "mpos",
    "unpaid",
    "set_off_debt",
    "capichi",
    "bank_transfer_ewallet",
    "cash_out",
    "repayments_cash_card",
    "repayments_cash_only",
)


@dataclass(frozen=True)
class PaymentBreakdown:
    """
    Payment-channel figures supplied by the revenue entry forms.

    The drawer engine treats these as opaque numbers: they feed the net-cash
    formula and the record signature, nothing else.  ``gojek``, ``grab`` and
    ``capichi`` are legacy per-platform columns; the authoritative partner
    total is the sum of ``third_party``.
    """

    revenue: int = 0
    gojek: int = 0
    grab: int = 0
    mpos: int = 0
    unpaid: int = 0
    set_off_debt: int = 0
    capichi: int = 0
    bank_transfer_ewallet: int = 0
    cash_out: int = 0
    repayments_cash_card: int = 0
    repayments_cash_only: int = 0
    third_party: tuple[ThirdPartyAmount, ...] = ()

    @property
    def third_party_total(self) -> int:
        return sum(item.amount for item in self.third_party)

    def amounts(self) -> dict[str, int]:
        """Scalar payment fields in a fixed order."""
        return {name: getattr(self, name) for name in _PAYMENT_FIELDS}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = self.amounts()
        payload["third_party"] = [item.to_payload() for item in self.third_party]
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> PaymentBreakdown:
        third_party = payload.get("third_party") or ()
        return cls(
            **{name: whole_units(payload.get(name)) for name in _PAYMENT_FIELDS},
            third_party=tuple(
                ThirdPartyAmount.from_payload(item)
                for item in third_party
                if isinstance(item, Mapping)
            ),
        )


@dataclass(frozen=True)
class Adjustments:
    """Cash leaving (payouts) and entering (deposits) the drawer during the shift."""

    payouts: int = 0
    deposits: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {"payouts": self.payouts, "deposits": self.deposits}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Adjustments:
        return cls(
            payouts=whole_units(payload.get("payouts")),
            deposits=whole_units(payload.get("deposits")),
        )


@dataclass(frozen=True)
class ClosingSnapshot:
    """
    Full closing record at one point in time.

    Two snapshots matter at any moment: the workspace draft and the last
    saved or loaded server copy.  A record is dirty iff their signatures
    differ.

    Guarantees:
        - ``cash`` and ``plan`` are read-only mappings keyed by
          denomination id.
        - ``to_payload`` / ``from_payload`` round-trip every field that
          contributes to the record signature.
    """

    header: ClosingHeader = field(default_factory=ClosingHeader)
    payments: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    adjustments: Adjustments = field(default_factory=Adjustments)
    float_target: int = 0
    cash: Mapping[str, int] = field(default_factory=dict)
    plan: Mapping[str, int] = field(default_factory=dict)
    record_id: UUID | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.cash, MappingProxyType):
            object.__setattr__(self, "cash", _freeze_counts(self.cash))
        if not isinstance(self.plan, MappingProxyType):
            object.__setattr__(self, "plan", _freeze_counts(self.plan))

    def with_record_id(self, record_id: UUID) -> ClosingSnapshot:
        return replace(self, record_id=record_id)

    def to_payload(self) -> dict[str, Any]:
        return {
            "record_id": str(self.record_id) if self.record_id else None,
            "header": self.header.to_payload(),
            "payments": self.payments.to_payload(),
            "adjustments": self.adjustments.to_payload(),
            "float_target": self.float_target,
            "cash": dict(self.cash),
            "plan": dict(self.plan),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ClosingSnapshot:
        record_id = payload.get("record_id")
        return cls(
            header=ClosingHeader.from_payload(payload.get("header") or {}),
            payments=PaymentBreakdown.from_payload(payload.get("payments") or {}),
            adjustments=Adjustments.from_payload(payload.get("adjustments") or {}),
            float_target=whole_units(payload.get("float_target")),
            cash=_counts_from_payload(payload.get("cash")),
            plan=_counts_from_payload(payload.get("plan")),
            record_id=UUID(str(record_id)) if record_id else None,
        )
