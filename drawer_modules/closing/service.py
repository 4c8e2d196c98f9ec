"""
drawer_modules.closing.service
==============================

Responsibility:
    Loads and saves cashier closings.  This is the read/write contract the
    closing workspace depends on: one transaction per attempt, one retry
    on a transient failure, and a duplicate check on (branch, date).

Architecture:
    Module layer.  Owns the ``cashier_closings`` table through
    ``CashierClosingModel``; speaks ``ClosingSnapshot`` to callers.

Invariants enforced:
    - At most one closing per (branch_name, report_date).  A save that finds
      another record on the same key aborts with DuplicateClosingError and
      writes nothing; the unique constraint backs this up under races.
    - The id of a new record is fixed before the first attempt, so a retry
      after an ambiguous failure updates the row instead of inserting a
      second one.
    - Every attempt commits or rolls back before returning.

Failure modes:
    - BranchNotSelectedError -- snapshot has no branch; nothing is attempted.
    - DuplicateClosingError -- another record owns the branch + date.
    - ClosingNotFoundError -- load of an unknown id.
    - TransientIOError -- connection failure on the final attempt.
    - StorageRejectedError -- the database refused the statement for
      another reason (a constraint other than the branch + date key).

Usage::

    service = CashierClosingService(get_session_factory(), clock)
    result = service.save(snapshot, actor_id=user_id)
    snapshot = service.load(result.record_id)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from drawer_config.schema import RetryPolicy
from drawer_kernel.domain.clock import Clock, SystemClock
from drawer_kernel.domain.dtos import ClosingSnapshot
from drawer_kernel.exceptions import (
    BranchNotSelectedError,
    ClosingNotFoundError,
    DuplicateClosingError,
    StorageRejectedError,
)
from drawer_kernel.logging_config import LogContext, get_logger
from drawer_modules.closing.orm import CashierClosingModel
from drawer_modules.closing.store import RetryingStore

logger = get_logger("modules.closing.service")


@dataclass(frozen=True)
class ClosingSaveResult:
    """What a successful save wrote."""

    record_id: UUID
    created: bool
    snapshot: ClosingSnapshot
    attempts: int


class CashierClosingService(RetryingStore):
    """
    Persistence for cashier closings.

    Contract:
        Each public method runs one or two complete transactions and either
        returns a result or raises a DrawerKernelError subclass.  Nothing is
        left uncommitted.

    Non-goals:
        - Does NOT compute plans, variance or signatures.
        - Does NOT ask for overwrite confirmation; that is the workspace's
          decision.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(session_factory, retry=retry, sleep=sleep)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    def load(self, record_id: UUID) -> ClosingSnapshot:
        """
        Load one closing by id.

        Raises:
            ClosingNotFoundError: No such record.
            TransientIOError: Connection failure after the retry.
        """
        t0 = time.monotonic()

        def _load(session: Session) -> ClosingSnapshot:
            model = session.get(CashierClosingModel, record_id)
            if model is None:
                raise ClosingNotFoundError(record_id)
            return model.to_dto()

        snapshot = self._with_retry("closing_load", _load)
        logger.info("closing_load_completed", extra={
            "record_id": str(record_id),
            "branch": snapshot.header.branch_name,
            "report_date": snapshot.header.report_date,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return snapshot

    def find_by_key(self, branch_name: str, report_date: date) -> ClosingSnapshot | None:
        """The closing for ``branch_name`` on ``report_date``, if any."""
        branch_name = branch_name.strip()

        def _find(session: Session) -> ClosingSnapshot | None:
            model = session.scalars(
                select(CashierClosingModel).where(
                    CashierClosingModel.branch_name == branch_name,
                    CashierClosingModel.report_date == report_date,
                )
            ).first()
            return model.to_dto() if model is not None else None

        return self._with_retry("closing_find", _find)

    # =========================================================================
    # Writes
    # =========================================================================

    def save(
        self,
        snapshot: ClosingSnapshot,
        actor_id: UUID | None = None,
    ) -> ClosingSaveResult:
        """
        Insert or update a closing.

        Preconditions:
            ``snapshot.header.branch_name`` is not blank.
        Postconditions:
            On success exactly one row carries ``record_id`` and no other row
            shares its branch + date.  On failure the database is unchanged.

        Raises:
            BranchNotSelectedError: Blank branch.
            DuplicateClosingError: Another record owns the branch + date.
            TransientIOError: Connection failure after the retry.
            StorageRejectedError: The database refused the write.
        """
        header = snapshot.header
        if not header.has_branch:
            logger.warning("closing_save_blocked_no_branch", extra={
                "report_date": header.report_date,
            })
            raise BranchNotSelectedError(header.report_date)

        header = replace(
            header,
            branch_name=header.branch_name.strip(),
            report_date=header.report_date or self._clock.now().date(),
        )
        snapshot = replace(snapshot, header=header)

        is_new = snapshot.record_id is None
        record_id = snapshot.record_id or uuid4()
        snapshot = snapshot.with_record_id(record_id)
        branch = header.branch_name
        report_date = header.report_date
        attempts = 0
        t0 = time.monotonic()

        with LogContext.bind(branch=branch, record_id=str(record_id)):
            logger.info("closing_save_started", extra={
                "report_date": report_date,
                "is_new": is_new,
            })

            def _save(session: Session) -> bool:
                nonlocal attempts
                attempts += 1
                existing_id = session.scalars(
                    select(CashierClosingModel.id).where(
                        CashierClosingModel.branch_name == branch,
                        CashierClosingModel.report_date == report_date,
                        CashierClosingModel.id != record_id,
                    )
                ).first()
                if existing_id is not None:
                    logger.warning("closing_duplicate_detected", extra={
                        "report_date": report_date,
                        "existing_id": str(existing_id),
                    })
                    raise DuplicateClosingError(branch, report_date, existing_id)

                model = session.get(CashierClosingModel, record_id)
                if model is None:
                    session.add(CashierClosingModel.from_dto(snapshot, record_id, actor_id))
                    created = True
                else:
                    model.apply_dto(snapshot, actor_id)
                    created = False
                session.flush()
                return created

            try:
                created = self._with_retry("closing_save", _save)
            except StorageRejectedError as exc:
                if not isinstance(exc.__cause__, IntegrityError):
                    raise
                # A concurrent writer took the key between the check and the commit.
                existing = self.find_by_key(branch, report_date)
                if existing is not None and existing.record_id != record_id:
                    logger.warning("closing_duplicate_detected", extra={
                        "report_date": report_date,
                        "existing_id": str(existing.record_id),
                    })
                    raise DuplicateClosingError(
                        branch, report_date, existing.record_id,
                    ) from exc
                raise

            logger.info("closing_save_completed", extra={
                "created": created,
                "attempts": attempts,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })

        return ClosingSaveResult(
            record_id=record_id,
            created=created,
            snapshot=snapshot,
            attempts=attempts,
        )

