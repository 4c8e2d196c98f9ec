"""
drawer_modules.closing.helpers
==============================

Pure helper functions for the cashier-closing module.
"""

from __future__ import annotations

from drawer_kernel.domain.dtos import Adjustments, PaymentBreakdown


def non_cash_total(payments: PaymentBreakdown) -> int:
    """Revenue settled outside the drawer: partner platforms, card terminal, transfers."""
    return payments.third_party_total + payments.mpos + payments.bank_transfer_ewallet


def compute_net_cash(payments: PaymentBreakdown, adjustments: Adjustments) -> int:
    """
    Net cash movement of the shift.

    ``revenue - non_cash - unpaid - cash_out + repayments_cash_card + deposits``

    Partner-platform revenue counts through ``payments.third_party`` only;
    the legacy ``gojek`` / ``grab`` / ``capichi`` columns are already part of
    that list and are not subtracted again.  Payouts are recorded for the
    report but do not enter the formula.
    """
    return (
        payments.revenue
        - non_cash_total(payments)
        - payments.unpaid
        - payments.cash_out
        + payments.repayments_cash_card
        + adjustments.deposits
    )
