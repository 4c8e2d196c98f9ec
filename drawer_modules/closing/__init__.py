"""
drawer_modules.closing
======================

Responsibility:
    End-of-shift cashier closing: the persisted closing record, per-branch
    drawer settings, and the workspace that recomputes the withdrawal plan,
    the variance and the record signature after every edit.  All
    calculation is delegated to ``drawer_engines``; float-target
    propagation and dirty tracking to ``drawer_services``.

Architecture:
    Module layer (drawer_modules).  May import from drawer_kernel,
    drawer_engines, drawer_services and drawer_config.  MUST NOT be
    imported by drawer_kernel or drawer_engines (except by
    ``create_tables`` to register the ORM models).

Failure modes:
    - Persistence failures surface from the services as typed
      DrawerKernelError subclasses; the workspace turns them into
      SaveOutcome / LoadOutcome messages.
"""

from drawer_modules.closing.helpers import compute_net_cash, non_cash_total
from drawer_modules.closing.orm import BranchDrawerSettingsModel, CashierClosingModel
from drawer_modules.closing.service import CashierClosingService, ClosingSaveResult
from drawer_modules.closing.settings_service import BranchSettingsService
from drawer_modules.closing.workspace import (
    CashierClosingWorkspace,
    ClosingView,
    LoadOutcome,
    LoadStatus,
    SaveOutcome,
    SaveStatus,
    WorkspaceMode,
)

__all__ = [
    "CashierClosingModel",
    "BranchDrawerSettingsModel",
    "CashierClosingService",
    "ClosingSaveResult",
    "BranchSettingsService",
    "CashierClosingWorkspace",
    "ClosingView",
    "WorkspaceMode",
    "SaveStatus",
    "SaveOutcome",
    "LoadStatus",
    "LoadOutcome",
    "compute_net_cash",
    "non_cash_total",
]
