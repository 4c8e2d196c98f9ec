"""
drawer_engines.tracer -- ``@traced_engine`` and the DRAWER_ENGINE_TRACE line.

Each call to a decorated engine method logs one INFO line on
``drawer_kernel.engines.tracer`` with the engine name and version, the
qualified function name, a 16-hex-char fingerprint of the selected keyword
inputs, and the wall time of the call.

Only keyword arguments take part in the fingerprint; positional inputs
are not seen.  Ledgers and plans expose ``fingerprint()`` and contribute
that string.

Usage:
    @traced_engine("allocation", "1.0", fingerprint_fields=("ledger", "float_target"))
    def suggest(self, ledger, float_target):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

_logger = logging.getLogger("drawer_kernel.engines.tracer")


def _stable_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return "{" + ",".join(f"{k}:{_stable_text(v)}" for k, v in sorted(value.items())) + "}"
    if isinstance(value, (set, frozenset)):
        return "[" + ",".join(sorted(map(_stable_text, value))) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(map(_stable_text, value)) + "]"
    fingerprint = getattr(value, "fingerprint", None)
    return fingerprint() if callable(fingerprint) else str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """SHA-256 prefix over ``name=value`` for each named keyword (missing is "null")."""
    canonical = "|".join(f"{name}={_stable_text(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            result = func(*args, **kwargs)
            _logger.info("DRAWER_ENGINE_TRACE", extra={
                "trace_type": "DRAWER_ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields else ""
                ),
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            })
            return result

        return wrapper

    return decorator
