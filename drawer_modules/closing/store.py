"""
drawer_modules.closing.store
============================

Shared transaction plumbing for the closing module's persistence services:
one ``session_scope`` per attempt and the configured retry around each
attempt.  Driver failures that may heal become ``TransientIOError``; every
other driver failure becomes ``StorageRejectedError``, whose ``__cause__``
is the original SQLAlchemy exception.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from drawer_config.schema import RetryPolicy
from drawer_kernel.db.engine import is_transient_db_error, session_scope
from drawer_kernel.exceptions import StorageRejectedError, TransientIOError
from drawer_services.retry import retry_on_transient

T = TypeVar("T")


class RetryingStore:
    """Base for services that read and write through a session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

    def _attempt(self, operation: str, work: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return work(session)
        except DBAPIError as exc:
            detail = str(exc.orig or exc)
            if is_transient_db_error(exc):
                raise TransientIOError(operation, detail) from exc
            raise StorageRejectedError(operation, detail) from exc

    def _with_retry(self, operation: str, work: Callable[[Session], T]) -> T:
        return retry_on_transient(
            lambda: self._attempt(operation, work),
            name=operation,
            retries=self._retry.retries,
            delay_ms=self._retry.delay_ms,
            sleep=self._sleep,
        )
