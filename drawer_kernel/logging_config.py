"""
drawer_kernel.logging_config
============================

One JSON object per log line.  Every line carries the timestamp, level,
logger name and message, then the session-scoped fields held in
``LogContext``, then whatever the caller passed as ``extra=``.

Loggers live under the ``drawer_kernel`` namespace; ``configure_logging``
attaches the JSON handler there once per process.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from types import MappingProxyType
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "drawer_kernel"

_CONTEXT_FIELDS = ("correlation_id", "session_id", "branch", "record_id", "actor_id")

_context: ContextVar[Mapping[str, str]] = ContextVar(
    "drawer_log_context", default=MappingProxyType({})
)


def _merged(fields: Mapping[str, str | None]) -> Mapping[str, str]:
    unknown = set(fields) - set(_CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
    current = dict(_context.get())
    current.update({k: v for k, v in fields.items() if v is not None})
    return MappingProxyType(current)


class LogContext:
    """
    Per-task log fields (correlation_id, session_id, branch, record_id,
    actor_id), stored in a single ContextVar so threads and asyncio tasks
    each see their own values.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Update the given fields; None leaves a field unchanged."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {k: _context.get()[k] for k in _CONTEXT_FIELDS if k in _context.get()}

    @staticmethod
    def clear() -> None:
        _context.set(MappingProxyType({}))

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block."""
        token = _context.set(_merged(fields))
        try:
            yield LogContext
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

_RESERVED = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Context attributes set by DrawerKernelError subclasses.
    for name, value in vars(exc).items():
        if name.startswith("_") or name in ("args", "code"):
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED:
                line.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_exception_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """Logger named ``drawer_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``drawer_kernel`` logger.

    Only the first call has an effect until ``reset_logging`` runs.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
        _installed_handler.setFormatter(StructuredFormatter())

        base = logging.getLogger(_LOGGER_PREFIX)
        base.setLevel(level)
        base.propagate = False
        base.addHandler(_installed_handler)


def reset_logging() -> None:
    """Detach all handlers so ``configure_logging`` can run again (tests)."""
    global _installed_handler
    with _setup_lock:
        _installed_handler = None
        base = logging.getLogger(_LOGGER_PREFIX)
        base.handlers.clear()
        base.setLevel(logging.WARNING)
