"""
Cashier Closing ORM Models (``drawer_modules.closing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for cashier closings and per-branch drawer
settings.  Maps the frozen ``ClosingSnapshot`` DTO to the
``cashier_closings`` table and back.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``drawer_kernel.db.base``
and the kernel DTOs.  MUST NOT be imported by ``drawer_kernel`` (other
than the table registration in ``create_tables``).
"""

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Date, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from drawer_kernel.db.base import TrackedBase
from drawer_kernel.domain.dtos import (
    Adjustments,
    ClosingHeader,
    ClosingSnapshot,
    PaymentBreakdown,
    ThirdPartyAmount,
)
from drawer_kernel.domain.values import coerce_count


def _counts_json(counts) -> dict[str, int]:
    return {str(k): int(v) for k, v in counts.items()}


def _counts_from_json(raw: Any) -> dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): coerce_count(v) or 0 for k, v in raw.items()}


# ---------------------------------------------------------------------------
# CashierClosingModel
# ---------------------------------------------------------------------------

class CashierClosingModel(TrackedBase):
    """
    ORM model for one end-of-shift cashier closing.

    Table: ``cashier_closings``.  At most one row per (branch_name,
    report_date).
    """

    __tablename__ = "cashier_closings"

    report_date: Mapped[date] = mapped_column(Date)
    branch_name: Mapped[str] = mapped_column(String(200))
    branch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    shift: Mapped[str] = mapped_column(String(50), default="")
    cashier_name: Mapped[str] = mapped_column(String(200), default="")
    notes: Mapped[str] = mapped_column(Text, default="")

    # Float target in effect when the record was saved
    opening_float: Mapped[int] = mapped_column(default=0)

    revenue: Mapped[int] = mapped_column(default=0)
    gojek: Mapped[int] = mapped_column(default=0)
    grab: Mapped[int] = mapped_column(default=0)
    mpos: Mapped[int] = mapped_column(default=0)
    unpaid: Mapped[int] = mapped_column(default=0)
    set_off_debt: Mapped[int] = mapped_column(default=0)
    capichi: Mapped[int] = mapped_column(default=0)
    bank_transfer_ewallet: Mapped[int] = mapped_column(default=0)
    cash_out: Mapped[int] = mapped_column(default=0)
    repayments_cash_card: Mapped[int] = mapped_column(default=0)
    repayments_cash_only: Mapped[int] = mapped_column(default=0)

    payouts: Mapped[int] = mapped_column(default=0)
    deposits: Mapped[int] = mapped_column(default=0)

    cash_json: Mapped[dict] = mapped_column(JSON, default=dict)
    float_plan_json: Mapped[dict] = mapped_column(JSON, default=dict)
    third_party_amounts_json: Mapped[list] = mapped_column(JSON, default=list)

    __table_args__ = (
        UniqueConstraint(
            "branch_name", "report_date",
            name="uq_cashier_closings_branch_date",
        ),
        Index("idx_cashier_closings_report_date", "report_date"),
    )

    def to_dto(self) -> ClosingSnapshot:
        return ClosingSnapshot(
            record_id=self.id,
            header=ClosingHeader(
                report_date=self.report_date,
                branch_name=self.branch_name or "",
                branch_id=self.branch_id,
                shift=self.shift or "",
                cashier_name=self.cashier_name or "",
                notes=self.notes or "",
            ),
            payments=PaymentBreakdown(
                revenue=self.revenue or 0,
                gojek=self.gojek or 0,
                grab=self.grab or 0,
                mpos=self.mpos or 0,
                unpaid=self.unpaid or 0,
                set_off_debt=self.set_off_debt or 0,
                capichi=self.capichi or 0,
                bank_transfer_ewallet=self.bank_transfer_ewallet or 0,
                cash_out=self.cash_out or 0,
                repayments_cash_card=self.repayments_cash_card or 0,
                repayments_cash_only=self.repayments_cash_only or 0,
                third_party=tuple(
                    ThirdPartyAmount.from_payload(item)
                    for item in (self.third_party_amounts_json or [])
                    if isinstance(item, dict)
                ),
            ),
            adjustments=Adjustments(
                payouts=self.payouts or 0,
                deposits=self.deposits or 0,
            ),
            float_target=self.opening_float or 0,
            cash=_counts_from_json(self.cash_json),
            plan=_counts_from_json(self.float_plan_json),
        )

    def apply_dto(self, dto: ClosingSnapshot, actor_id: UUID | None) -> None:
        """Overwrite every persisted field from ``dto``."""
        header = dto.header
        self.report_date = header.report_date
        self.branch_name = header.branch_name
        self.branch_id = header.branch_id
        self.shift = header.shift
        self.cashier_name = header.cashier_name
        self.notes = header.notes
        self.opening_float = dto.float_target
        for name, value in dto.payments.amounts().items():
            setattr(self, name, value)
        self.third_party_amounts_json = [
            item.to_payload() for item in dto.payments.third_party
        ]
        self.payouts = dto.adjustments.payouts
        self.deposits = dto.adjustments.deposits
        self.cash_json = _counts_json(dto.cash)
        self.float_plan_json = _counts_json(dto.plan)
        self.stamp(actor_id)

    @classmethod
    def from_dto(
        cls,
        dto: ClosingSnapshot,
        record_id: UUID,
        created_by_id: UUID | None,
    ) -> "CashierClosingModel":
        model = cls(id=record_id)
        model.apply_dto(dto, created_by_id)
        model.stamp(created_by_id, creating=True)
        return model

    def __repr__(self) -> str:
        return (
            f"<CashierClosingModel(id={self.id!r}, branch_name={self.branch_name!r}, "
            f"report_date={self.report_date!r})>"
        )


# ---------------------------------------------------------------------------
# BranchDrawerSettingsModel
# ---------------------------------------------------------------------------

class BranchDrawerSettingsModel(TrackedBase):
    """
    ORM model for per-branch drawer configuration.

    Table: ``branch_drawer_settings``.  ``revision`` is the persisted bump
    marker: every write stores ``max(revision) + 1`` across the table, so a
    poller can detect any change with one scalar query.
    """

    __tablename__ = "branch_drawer_settings"

    branch_name: Mapped[str] = mapped_column(String(200))
    cash_float_target: Mapped[int | None] = mapped_column(nullable=True)
    revision: Mapped[int] = mapped_column(default=0)

    __table_args__ = (
        UniqueConstraint("branch_name", name="uq_branch_drawer_settings_branch"),
        Index("idx_branch_drawer_settings_revision", "revision"),
    )

    def __repr__(self) -> str:
        return (
            f"<BranchDrawerSettingsModel(branch_name={self.branch_name!r}, "
            f"cash_float_target={self.cash_float_target!r}, revision={self.revision!r})>"
        )
