"""
Drawer Kernel - shared foundation for the cashier-closing engine.

Provides:
- Structured JSON logging with request-scoped context
- Typed, coded exception hierarchy
- Injectable clock and whole-unit value helpers
- Closing record DTOs
- SQLAlchemy declarative base and engine/session management
"""

__version__ = "0.1.0"
