"""
drawer_services.retry -- One fixed-delay retry for transient I/O failures.

Load and save are the only I/O the closing engine performs.  Each attempt
runs in its own transaction; when the driver reports a dropped or
unavailable connection (``TransientIOError``) the attempt is repeated after
a fixed delay, at most ``retries`` times.  Any other error propagates on
the first attempt.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from drawer_kernel.exceptions import TransientIOError
from drawer_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def retry_on_transient(
    operation: Callable[[], T],
    *,
    name: str,
    retries: int = 1,
    delay_ms: int = 1200,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``, retrying on TransientIOError.

    Args:
        operation: Zero-argument callable performing one complete attempt.
        name: Operation name for log lines (``closing_save``...).
        retries: Extra attempts after the first.
        delay_ms: Fixed delay before each retry.
        sleep: Injected for tests.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        TransientIOError: The last attempt also failed transiently.
    """
    attempts = retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TransientIOError as exc:
            if attempt >= attempts:
                logger.error("transient_retry_exhausted", extra={
                    "operation": name,
                    "attempts": attempt,
                    "detail": exc.detail,
                })
                raise
            logger.warning("transient_retry", extra={
                "operation": name,
                "attempt": attempt,
                "max_attempts": attempts,
                "delay_ms": delay_ms,
                "detail": exc.detail,
            })
            sleep(delay_ms / 1000.0)
    raise AssertionError("unreachable")  # pragma: no cover
