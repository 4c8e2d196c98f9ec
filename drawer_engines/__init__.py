"""
Drawer engines - pure calculation layer.

Everything here is a deterministic function of its inputs: no clock, no
database, no configuration lookups.
"""

from drawer_engines.allocation import (
    AllocationResult,
    FloatAllocationPlanner,
    WithdrawalPlan,
)
from drawer_engines.denominations import (
    VND_DENOMINATIONS,
    Denomination,
    DenominationTable,
)
from drawer_engines.ledger import CashLedger
from drawer_engines.signature import record_signature, signature_digest
from drawer_engines.tracer import traced_engine
from drawer_engines.variance import (
    DrawerVarianceResult,
    VarianceCalculator,
    VarianceStatus,
)

__all__ = [
    "Denomination",
    "DenominationTable",
    "VND_DENOMINATIONS",
    "CashLedger",
    "WithdrawalPlan",
    "AllocationResult",
    "FloatAllocationPlanner",
    "VarianceStatus",
    "DrawerVarianceResult",
    "VarianceCalculator",
    "record_signature",
    "signature_digest",
    "traced_engine",
]
