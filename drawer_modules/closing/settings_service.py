"""
drawer_modules.closing.settings_service
=======================================

Responsibility:
    Per-branch drawer configuration (the cash float target) with a
    read-through cache, and the persisted bump marker other sessions poll.
    Implements the ``FloatCache`` protocol so it can back
    ``FloatTargetPublisher`` and ``FloatTargetSubscription`` directly.

Invariants enforced:
    - Only positive float targets are stored; anything else is rejected
      before a transaction is opened.
    - Every write raises the table-wide revision by one, so ``marker()``
      changes on any branch update.
    - ``get_float_target`` serves from cache after the first read;
      ``read_float`` always goes to the database and refreshes the cache.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from drawer_config.schema import RetryPolicy
from drawer_kernel.domain.values import positive_amount
from drawer_kernel.exceptions import BranchNotSelectedError
from drawer_kernel.logging_config import get_logger
from drawer_modules.closing.orm import BranchDrawerSettingsModel
from drawer_modules.closing.store import RetryingStore

logger = get_logger("modules.closing.settings")

_MISSING = object()


class BranchSettingsService(RetryingStore):
    """Database-backed branch float settings with a local read-through cache."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(session_factory, retry=retry, sleep=sleep)
        self._cache: dict[str, int | None] = {}

    def get_float_target(self, branch: str) -> int | None:
        """Configured float for ``branch``; None when it has none."""
        cached = self._cache.get(branch, _MISSING)
        if cached is not _MISSING:
            return cached
        return self.read_float(branch)

    def set_float_target(
        self,
        branch: str,
        raw: Any,
        actor_id: UUID | None = None,
    ) -> int:
        """
        Store a new float target for ``branch`` and bump the marker.

        Returns:
            The stored value.

        Raises:
            BranchNotSelectedError: ``branch`` is blank.
            ValueError: ``raw`` is not a positive amount.
        """
        if not branch or not branch.strip():
            raise BranchNotSelectedError()
        value = positive_amount(raw)
        if value is None:
            raise ValueError(f"Float target must be a positive amount, got {raw!r}")

        def _write(session: Session) -> int:
            revision = (session.scalar(select(func.max(BranchDrawerSettingsModel.revision))) or 0) + 1
            model = session.scalars(
                select(BranchDrawerSettingsModel).where(
                    BranchDrawerSettingsModel.branch_name == branch,
                )
            ).first()
            if model is None:
                model = BranchDrawerSettingsModel(branch_name=branch)
                model.stamp(actor_id, creating=True)
                session.add(model)
            model.cash_float_target = value
            model.revision = revision
            model.stamp(actor_id)
            session.flush()
            return revision

        revision = self._with_retry("settings_write", _write)
        self._cache[branch] = value
        logger.info("branch_float_target_saved", extra={
            "branch": branch,
            "value": value,
            "revision": revision,
        })
        return value

    def invalidate(self, branch: str | None = None) -> None:
        if branch is None:
            self._cache.clear()
        else:
            self._cache.pop(branch, None)

    # -- FloatCache protocol --------------------------------------------

    def write_float(self, branch: str, value: int) -> None:
        self.set_float_target(branch, value)

    def read_float(self, branch: str) -> int | None:
        def _read(session: Session) -> int | None:
            return session.scalar(
                select(BranchDrawerSettingsModel.cash_float_target).where(
                    BranchDrawerSettingsModel.branch_name == branch,
                )
            )

        value = positive_amount(self._with_retry("settings_read", _read))
        self._cache[branch] = value
        return value

    def marker(self) -> int:
        def _marker(session: Session) -> int:
            return session.scalar(select(func.max(BranchDrawerSettingsModel.revision))) or 0

        return self._with_retry("settings_marker", _marker)
