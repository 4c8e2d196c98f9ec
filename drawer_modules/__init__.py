"""
Drawer Modules.

Thin orchestration layers over the Drawer Kernel, Engines and Services.
Each module contains:
- ORM models (the persisted nouns)
- Persistence services (load/save with retry)
- A workspace wiring the engines into one recompute pipeline

Modules:
- Closing: end-of-shift cashier closing and cash-drawer reconciliation
"""

from drawer_modules import closing

__all__ = [
    "closing",
]
