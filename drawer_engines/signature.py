"""
drawer_engines.signature -- Canonical string form of a closing record.

Responsibility:
    Serialize everything an operator can edit into one string so that two
    snapshots compare equal iff nothing user-visible differs.

Architecture position:
    Engines -- pure, zero I/O.  Consumed by the record signature tracker.

Invariants enforced:
    - Sections appear in a fixed order: header (H), float target (F),
      payments (P), adjustments (A), cash counts (C), withdrawal plan (T).
    - Numbers are whole units; counts and takes follow table order and
      every table id appears (missing ids as 0, foreign ids ignored).
    - Third-party lines are sorted by label, then amount, so their entry
      order does not matter.
    - Notes and the record id are not part of the signature.
"""

from __future__ import annotations

from collections.abc import Mapping

from drawer_engines.denominations import DenominationTable
from drawer_kernel.domain.dtos import ClosingSnapshot
from drawer_kernel.domain.values import whole_units
from drawer_kernel.utils.hashing import hash_text


def _text(value: str | None) -> str:
    return (value or "").strip()


def _bag(table: DenominationTable, counts: Mapping[str, int]) -> str:
    return ",".join(f"{d.id}:{whole_units(counts.get(d.id, 0))}" for d in table)


def record_signature(snapshot: ClosingSnapshot, table: DenominationTable) -> str:
    """Canonical signature of ``snapshot`` against ``table``."""
    header = snapshot.header
    payments = snapshot.payments

    third_party = sorted(
        (_text(item.label), whole_units(item.amount)) for item in payments.third_party
    )
    parts = [
        "H|" + "|".join([
            header.report_date.isoformat() if header.report_date else "",
            _text(header.branch_name),
            _text(header.shift),
            _text(header.cashier_name),
        ]),
        f"F|{whole_units(snapshot.float_target)}",
        "P|" + "|".join(str(whole_units(v)) for v in payments.amounts().values())
        + "|" + ";".join(f"{label}={amount}" for label, amount in third_party),
        f"A|{whole_units(snapshot.adjustments.payouts)}|{whole_units(snapshot.adjustments.deposits)}",
        "C|" + _bag(table, snapshot.cash),
        "T|" + _bag(table, snapshot.plan),
    ]
    return "||".join(parts)


def signature_digest(signature: str) -> str:
    """Short digest of a signature for log lines."""
    return hash_text(signature)
