"""
drawer_modules.closing.workspace
================================

Responsibility:
    One operator's editing session on one cashier closing.  Holds the draft
    (header, payment figures, adjustments, cash counts, withdrawal plan),
    runs the recompute pipeline after every committed edit, and owns the
    load/save boundary where persistence failures become operator messages.

Architecture:
    Module layer.  Wires the pure engines (ledger, allocation planner,
    variance calculator, record signature) to the services (float-target
    resolver and subscription, signature tracker) and the closing
    persistence services.

Pipeline (explicit, in this order, after every mutation):
    ledger -> withdrawal plan -> variance -> record signature -> tracker

    Which planner call runs depends on what changed:
        - count entry, float-target change  -> ``replan``
        - "suggest"                         -> ``suggest``
        - take entry                        -> ``recompute_with_override``
        - header / payments / adjustments,
          load                              -> ``summarize`` (plan as is)

Modes:
    LIVE  -- the float target follows the resolver (override, branch
             configuration, record, default).  A new record starts here.
    SAVED -- the float target is the one stored with the loaded record.

Invariants enforced:
    - A save either fully succeeds (record id adopted, server signature
      updated) or leaves the draft and the tracker untouched.
    - Saving an already persisted record while in LIVE mode needs explicit
      confirmation.
    - Reload refuses while the draft is dirty unless forced; switching back
      to SAVED mode always forces it.
    - After ``close()`` no I/O is started and late results are discarded.

Failure modes:
    - SessionClosedError -- a public operation called after ``close()``.
    - Persistence errors never escape ``save`` / ``load`` / ``open``; they
      come back as SaveOutcome / LoadOutcome with one message.
      ``publish_float_target`` returns None and ``refresh`` logs.

Usage::

    workspace = CashierClosingWorkspace(config, closings, settings, clock)
    workspace.open("Canggu", date(2024, 1, 1))
    workspace.set_count("d500k", 10)
    workspace.suggest()
    outcome = workspace.save(actor_id=user_id)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from drawer_config.schema import DrawerConfig
from drawer_engines.allocation import (
    AllocationResult,
    FloatAllocationPlanner,
    WithdrawalPlan,
)
from drawer_engines.ledger import CashLedger
from drawer_engines.signature import record_signature, signature_digest
from drawer_engines.variance import DrawerVarianceResult, VarianceCalculator
from drawer_kernel.domain.clock import Clock, SystemClock
from drawer_kernel.domain.dtos import (
    Adjustments,
    ClosingHeader,
    ClosingSnapshot,
    PaymentBreakdown,
)
from drawer_kernel.exceptions import (
    ClosingNotFoundError,
    DuplicateClosingError,
    PersistenceError,
    SessionClosedError,
)
from drawer_kernel.logging_config import LogContext, get_logger
from drawer_modules.closing.helpers import compute_net_cash
from drawer_modules.closing.service import CashierClosingService
from drawer_modules.closing.settings_service import BranchSettingsService
from drawer_services.broadcast import (
    BroadcastChannel,
    BroadcastHub,
    FloatTargetChanged,
    LocalEventBus,
)
from drawer_services.float_target import (
    SETTINGS_CHANNEL,
    FloatTargetPublisher,
    FloatTargetResolver,
    FloatTargetSource,
    FloatTargetSubscription,
    ResolvedFloatTarget,
)
from drawer_services.signature_tracker import RecordSignatureTracker

logger = get_logger("modules.closing.workspace")

MSG_NO_BRANCH = "Select a branch before saving the cashier closing."
MSG_CONFIRM_OVERWRITE = (
    "This closing is already saved. Saving in live mode overwrites it with "
    "the live values; confirm to continue."
)
MSG_SAVE_FAILED = "The closing could not be saved. Your changes are kept; please try again."
MSG_LOAD_FAILED = "The closing could not be loaded. Please try again."
MSG_UNSAVED_CHANGES = "There are unsaved changes. Save them or discard them before reloading."
MSG_SAVE_IN_PROGRESS = "A save is already in progress."
MSG_SESSION_CLOSED = "The closing was closed before the request finished."


class WorkspaceMode(str, Enum):
    LIVE = "live"
    SAVED = "saved"


class SaveStatus(str, Enum):
    SAVED = "saved"
    BLOCKED = "blocked"  # no branch selected
    CONFIRMATION_REQUIRED = "confirmation_required"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    IGNORED = "ignored"  # workspace closed while the save ran


class LoadStatus(str, Enum):
    LOADED = "loaded"
    NEW = "new"  # no record for the branch + date; blank draft
    REFUSED = "refused"  # dirty and not forced
    NOT_FOUND = "not_found"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SaveOutcome:
    status: SaveStatus
    message: str = ""
    record_id: UUID | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status is SaveStatus.SAVED


@dataclass(frozen=True)
class LoadOutcome:
    status: LoadStatus
    message: str = ""
    record_id: UUID | None = None

    @property
    def ok(self) -> bool:
        return self.status in (LoadStatus.LOADED, LoadStatus.NEW)


@dataclass(frozen=True)
class ClosingView:
    """Everything derived from the draft by the last pipeline run."""

    allocation: AllocationResult
    variance: DrawerVarianceResult
    net_cash: int
    float_target: int
    float_source: FloatTargetSource
    signature: str

    @property
    def counted_cash(self) -> int:
        return self.allocation.total


class CashierClosingWorkspace:
    """
    Draft state and recompute pipeline for one closing.

    Contract:
        Every public mutator commits its edit, runs the pipeline and returns.
        ``view`` always reflects the current draft.  Only ``open``, ``load``,
        ``reload``, ``switch_to_saved``, ``on_visible``, ``refresh``, ``save``
        and ``publish_float_target`` perform I/O.  ``open`` and ``load`` do
        all their reads before touching the draft.

    Non-goals:
        - Does NOT compute the payment figures; they arrive whole from the
          revenue forms through ``set_payments``.
        - Does NOT render anything.
    """

    def __init__(
        self,
        config: DrawerConfig,
        closings: CashierClosingService,
        settings: BranchSettingsService,
        clock: Clock | None = None,
        bus: LocalEventBus | None = None,
        channel: BroadcastChannel | None = None,
    ):
        self._config = config
        self._table = config.denominations
        self._closings = closings
        self._settings = settings
        self._clock = clock or SystemClock()
        self._bus = bus or LocalEventBus()
        self._channel = channel or BroadcastHub().channel(SETTINGS_CHANNEL)
        self.session_id = uuid4().hex[:12]

        self._planner = FloatAllocationPlanner()
        self._variance = VarianceCalculator()
        self._resolver = FloatTargetResolver(config.default_float_target)
        self._resolver.add_listener(self._on_float_target_changed)
        self._tracker = RecordSignatureTracker(
            self._clock,
            cold_start_ms=config.windows.cold_start_ms,
            post_save_silence_ms=config.windows.post_save_silence_ms,
        )
        self._subscription: FloatTargetSubscription | None = None

        self._mode = WorkspaceMode.LIVE
        self._record_id: UUID | None = None
        self._saved_float: int | None = None
        self._header = ClosingHeader(report_date=self._clock.now().date())
        self._payments = PaymentBreakdown()
        self._adjustments = Adjustments()
        self._ledger = CashLedger(self._table)
        self._plan = WithdrawalPlan.inactive(self._table)
        self._active = True
        self._saving = False
        self._applying = False

        view = self._run_pipeline(self._summarize())
        self._tracker.start(view.signature)

    # =========================================================================
    # State
    # =========================================================================

    @property
    def active(self) -> bool:
        return self._active

    @property
    def mode(self) -> WorkspaceMode:
        return self._mode

    @property
    def record_id(self) -> UUID | None:
        return self._record_id

    @property
    def header(self) -> ClosingHeader:
        return self._header

    @property
    def payments(self) -> PaymentBreakdown:
        return self._payments

    @property
    def adjustments(self) -> Adjustments:
        return self._adjustments

    @property
    def plan(self) -> WithdrawalPlan:
        return self._plan

    @property
    def view(self) -> ClosingView:
        return self._view

    @property
    def tracker(self) -> RecordSignatureTracker:
        return self._tracker

    @property
    def resolver(self) -> FloatTargetResolver:
        return self._resolver

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def float_target(self) -> int:
        if self._mode is WorkspaceMode.SAVED and self._saved_float is not None:
            return self._saved_float
        return self._resolver.value

    @property
    def float_source(self) -> FloatTargetSource:
        if self._mode is WorkspaceMode.SAVED and self._saved_float is not None:
            return FloatTargetSource.RECORD
        return self._resolver.resolve().source

    def counts(self) -> dict[str, int]:
        return self._ledger.counts()

    def is_dirty(self) -> bool:
        return self._tracker.is_dirty()

    def display_dirty(self) -> bool:
        return self._tracker.display_dirty()

    def can_save(self) -> bool:
        return self._header.has_branch and self._tracker.can_save(self._saving)

    def snapshot(self) -> ClosingSnapshot:
        """The draft as a record snapshot."""
        return ClosingSnapshot(
            header=self._header,
            payments=self._payments,
            adjustments=self._adjustments,
            float_target=self.float_target,
            cash=self._ledger.counts(),
            plan=dict(self._plan.takes),
            record_id=self._record_id,
        )

    # =========================================================================
    # Draft edits
    # =========================================================================

    def set_count(self, denomination_id: str, value: Any) -> int:
        """
        Commit a counted quantity.

        Raises:
            UnknownDenominationError: ``denomination_id`` is not configured.
        """
        self._ensure_active("set_count")
        stored = self._ledger.set_count(denomination_id, value)
        self._run_pipeline(self._replan())
        return stored

    def edit_take(self, denomination_id: str, requested: Any) -> int:
        """
        Pin the withdrawal for one denomination and re-solve around it.

        Returns:
            The take actually applied (clamped to what is available).
        """
        self._ensure_active("edit_take")
        index = self._table.index_of(denomination_id)
        result = self._planner.recompute_with_override(
            ledger=self._ledger,
            float_target=self.float_target,
            current=self._plan,
            index=index,
            requested=requested,
        )
        self._run_pipeline(result)
        return self._plan.take(denomination_id)

    def suggest(self) -> AllocationResult:
        """Fresh automatic plan; every pin is dropped."""
        self._ensure_active("suggest")
        result = self._planner.suggest(ledger=self._ledger, float_target=self.float_target)
        return self._run_pipeline(result).allocation

    def clear_counts(self) -> None:
        """Zero every count and drop the withdrawal plan with its pins."""
        self._ensure_active("clear_counts")
        self._ledger.clear()
        self._plan = WithdrawalPlan.inactive(self._table)
        self._run_pipeline(self._summarize())

    def reset(self) -> None:
        """
        Blank the draft content for the current branch and date.

        The record identity is kept, so saving afterwards overwrites the
        stored record.
        """
        self._ensure_active("reset")
        self._header = ClosingHeader(
            report_date=self._header.report_date,
            branch_name=self._header.branch_name,
            branch_id=self._header.branch_id,
        )
        self._payments = PaymentBreakdown()
        self._adjustments = Adjustments()
        self._ledger = CashLedger(self._table)
        self._plan = WithdrawalPlan.inactive(self._table)
        self._run_pipeline(self._summarize())
        logger.info("closing_draft_reset", extra={"session_id": self.session_id})

    def update_header(
        self,
        shift: str | None = None,
        cashier_name: str | None = None,
        notes: str | None = None,
    ) -> ClosingHeader:
        """Edit the non-key header fields; branch and date change through ``open``."""
        self._ensure_active("update_header")
        changes = {
            name: value
            for name, value in (("shift", shift), ("cashier_name", cashier_name), ("notes", notes))
            if value is not None
        }
        if changes:
            self._header = replace(self._header, **changes)
            self._run_pipeline(self._summarize())
        return self._header

    def set_payments(self, payments: PaymentBreakdown) -> None:
        self._ensure_active("set_payments")
        self._payments = payments
        self._run_pipeline(self._summarize())

    def set_adjustments(self, adjustments: Adjustments) -> None:
        self._ensure_active("set_adjustments")
        self._adjustments = adjustments
        self._run_pipeline(self._summarize())

    # =========================================================================
    # Modes
    # =========================================================================

    def switch_to_live(self) -> None:
        """Let the float target follow the resolver again and re-solve."""
        self._ensure_active("switch_to_live")
        if self._mode is WorkspaceMode.LIVE:
            return
        self._mode = WorkspaceMode.LIVE
        logger.info("closing_mode_changed", extra={"mode": self._mode.value})
        self._run_pipeline(self._replan())

    def switch_to_saved(self) -> LoadOutcome:
        """Back to the stored record; always a forced reload."""
        self._ensure_active("switch_to_saved")
        if self._record_id is None:
            return LoadOutcome(LoadStatus.NOT_FOUND, "Nothing has been saved for this closing yet.")
        outcome = self.load(self._record_id, force=True)
        if outcome.ok:
            logger.info("closing_mode_changed", extra={"mode": self._mode.value})
        return outcome

    # =========================================================================
    # Float target
    # =========================================================================

    def set_float_override(self, raw: Any) -> ResolvedFloatTarget:
        """Session-local float pushed by a configuration screen."""
        self._ensure_active("set_float_override")
        return self._resolver.set_override(raw)

    def publish_float_target(self, raw: Any) -> FloatTargetChanged | None:
        """
        Store a new float target for the current branch and announce it to
        every session of that branch.

        Returns None when the value is rejected or cannot be stored; nothing
        is announced in that case.
        """
        self._ensure_active("publish_float_target")
        publisher = FloatTargetPublisher(self._bus, self._channel, self._settings)
        try:
            return publisher.publish(self._header.branch_name, raw)
        except PersistenceError as exc:
            logger.error("float_publish_failed", extra={
                "session_id": self.session_id,
                "branch": self._header.branch_name,
                "error_code": exc.code,
            })
            return None

    def refresh(self) -> None:
        """
        Periodic tick: poll the persisted bump marker and re-evaluate the
        dirty notification once a grace window has elapsed.
        """
        if not self._active:
            return
        if self._subscription is not None:
            try:
                self._subscription.poll()
            except PersistenceError as exc:
                logger.warning("float_poll_failed", extra={"error_code": exc.code})
        self._tracker.refresh()

    def on_visible(self) -> LoadOutcome | None:
        """
        The closing screen came back into view.

        In SAVED mode the stored record is re-read so edits made elsewhere
        show up; unsaved changes are never overwritten (REFUSED).  LIVE mode
        and records never saved do nothing and return None.
        """
        if not self._active:
            return None
        if self._mode is not WorkspaceMode.SAVED or self._record_id is None:
            return None
        return self.load(self._record_id)

    def _on_float_target_changed(self, resolved: ResolvedFloatTarget) -> None:
        if not self._active or self._applying:
            return
        if self._mode is not WorkspaceMode.LIVE:
            logger.debug("float_change_held", extra={"value": resolved.value})
            return
        self._run_pipeline(self._replan())

    # =========================================================================
    # Load
    # =========================================================================

    def open(
        self,
        branch_name: str,
        report_date: date | None = None,
        branch_id: str | None = None,
        force: bool = False,
    ) -> LoadOutcome:
        """
        Switch to ``branch_name`` on ``report_date`` (today by default).

        Loads the stored closing for that key in SAVED mode, or starts a
        blank LIVE draft when there is none.  The counts are never carried
        over from the previous branch or date.
        """
        self._ensure_active("open")
        if not self._tracker.may_reload(force):
            return LoadOutcome(LoadStatus.REFUSED, MSG_UNSAVED_CHANGES, self._record_id)

        report_date = report_date or self._clock.now().date()
        branch_name = branch_name.strip()
        with LogContext.bind(session_id=self.session_id, branch=branch_name):
            try:
                existing = self._closings.find_by_key(branch_name, report_date) if branch_name else None
                binding = self._read_branch(branch_name)
            except PersistenceError as exc:
                logger.warning("closing_open_failed", extra={
                    "report_date": report_date,
                    "error_code": exc.code,
                })
                return LoadOutcome(LoadStatus.FAILED, MSG_LOAD_FAILED)

            if not self._active:
                return self._ignored_load()

            self._bind_branch(branch_name, *binding)

            if existing is not None:
                self._apply_snapshot(existing, WorkspaceMode.SAVED)
                logger.info("closing_opened", extra={
                    "report_date": report_date,
                    "record_id": str(existing.record_id),
                })
                return LoadOutcome(LoadStatus.LOADED, record_id=existing.record_id)

            self._start_blank(ClosingHeader(
                report_date=report_date,
                branch_name=branch_name,
                branch_id=branch_id,
            ))
            logger.info("closing_opened_new", extra={"report_date": report_date})
            return LoadOutcome(LoadStatus.NEW)

    def load(self, record_id: UUID, force: bool = False) -> LoadOutcome:
        """Load a stored closing by id into SAVED mode."""
        self._ensure_active("load")
        if not self._tracker.may_reload(force):
            logger.info("closing_reload_refused", extra={"record_id": str(record_id)})
            return LoadOutcome(LoadStatus.REFUSED, MSG_UNSAVED_CHANGES, self._record_id)

        with LogContext.bind(session_id=self.session_id, record_id=str(record_id)):
            binding = None
            try:
                snapshot = self._closings.load(record_id)
                if snapshot.header.branch_name != self._header.branch_name:
                    binding = self._read_branch(snapshot.header.branch_name)
            except ClosingNotFoundError as exc:
                return LoadOutcome(LoadStatus.NOT_FOUND, str(exc), record_id)
            except PersistenceError as exc:
                logger.warning("closing_load_failed", extra={"error_code": exc.code})
                return LoadOutcome(LoadStatus.FAILED, MSG_LOAD_FAILED, record_id)

            if not self._active:
                return self._ignored_load()

            if binding is not None:
                self._bind_branch(snapshot.header.branch_name, *binding)
            self._apply_snapshot(snapshot, WorkspaceMode.SAVED)
            return LoadOutcome(LoadStatus.LOADED, record_id=record_id)

    def reload(self, force: bool = False) -> LoadOutcome:
        """Re-read the current record from the server."""
        self._ensure_active("reload")
        if self._record_id is None:
            return LoadOutcome(LoadStatus.NOT_FOUND, "Nothing has been saved for this closing yet.")
        return self.load(self._record_id, force=force)

    # =========================================================================
    # Save
    # =========================================================================

    def save(
        self,
        actor_id: UUID | None = None,
        allow_live_overwrite: bool = False,
    ) -> SaveOutcome:
        """
        Persist the draft.

        Postconditions:
            On SAVED the draft carries the record id, ``is_dirty()`` is False
            and the post-save silence window is running.  On any other
            status the draft and the tracker are unchanged.
        """
        self._ensure_active("save")
        if self._saving:
            return SaveOutcome(SaveStatus.IN_PROGRESS, MSG_SAVE_IN_PROGRESS)
        if not self._header.has_branch:
            logger.warning("closing_save_blocked_no_branch", extra={"session_id": self.session_id})
            return SaveOutcome(SaveStatus.BLOCKED, MSG_NO_BRANCH)
        if (
            self._mode is WorkspaceMode.LIVE
            and self._record_id is not None
            and not allow_live_overwrite
        ):
            return SaveOutcome(
                SaveStatus.CONFIRMATION_REQUIRED, MSG_CONFIRM_OVERWRITE, self._record_id,
            )

        snapshot = self.snapshot()
        self._saving = True
        try:
            result = self._closings.save(snapshot, actor_id=actor_id)
        except DuplicateClosingError as exc:
            return SaveOutcome(SaveStatus.DUPLICATE, str(exc), self._record_id)
        except PersistenceError as exc:
            logger.error("closing_save_failed", extra={
                "session_id": self.session_id,
                "error_code": exc.code,
            })
            return SaveOutcome(SaveStatus.FAILED, MSG_SAVE_FAILED, self._record_id)
        finally:
            self._saving = False

        if not self._active:
            logger.info("closing_result_ignored", extra={
                "operation": "save",
                "record_id": str(result.record_id),
            })
            return SaveOutcome(SaveStatus.IGNORED, MSG_SESSION_CLOSED, result.record_id, result.attempts)

        saved = result.snapshot
        self._record_id = result.record_id
        self._header = saved.header
        self._saved_float = saved.float_target
        self._applying = True
        try:
            self._resolver.set_record_value(saved.float_target)
        finally:
            self._applying = False
        self._run_pipeline(self._summarize())
        self._tracker.mark_saved(record_signature(saved, self._table))

        logger.info("closing_saved", extra={
            "session_id": self.session_id,
            "record_id": str(result.record_id),
            "created": result.created,
            "attempts": result.attempts,
            "signature": signature_digest(self._tracker.server_signature),
        })
        return SaveOutcome(SaveStatus.SAVED, record_id=result.record_id, attempts=result.attempts)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Tear down; later results and deliveries are ignored."""
        if not self._active:
            return
        self._active = False
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        logger.info("closing_workspace_closed", extra={
            "session_id": self.session_id,
            "dirty": self._tracker.is_dirty(),
        })

    def __enter__(self) -> CashierClosingWorkspace:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_active(self, operation: str) -> None:
        if not self._active:
            raise SessionClosedError(operation)

    def _ignored_load(self) -> LoadOutcome:
        logger.info("closing_result_ignored", extra={"operation": "load"})
        return LoadOutcome(LoadStatus.IGNORED, MSG_SESSION_CLOSED)

    def _replan(self) -> AllocationResult:
        return self._planner.replan(
            ledger=self._ledger, float_target=self.float_target, current=self._plan,
        )

    def _summarize(self) -> AllocationResult:
        return self._planner.summarize(self._ledger, self._plan, self.float_target)

    def _run_pipeline(self, allocation: AllocationResult) -> ClosingView:
        """Plan -> variance -> signature -> tracker, from an allocation result."""
        self._plan = allocation.plan
        float_target = self.float_target
        net_cash = compute_net_cash(self._payments, self._adjustments)
        variance = self._variance.drawer_variance(
            net_cash=net_cash,
            float_target=float_target,
            counted_cash=self._ledger.total(),
        )
        signature = record_signature(self.snapshot(), self._table)
        self._view = ClosingView(
            allocation=allocation,
            variance=variance,
            net_cash=net_cash,
            float_target=float_target,
            float_source=self.float_source,
            signature=signature,
        )
        self._tracker.set_draft(signature)
        return self._view

    def _read_branch(self, branch_name: str) -> tuple[int | None, int | None]:
        """Configured float and bump marker for ``branch_name``; the only I/O of a rebind."""
        if not branch_name:
            return None, None
        return self._settings.get_float_target(branch_name), self._settings.marker()

    def _bind_branch(
        self,
        branch_name: str,
        branch_float: int | None,
        marker: int | None,
    ) -> None:
        """Point the resolver and the float subscription at ``branch_name``."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._applying = True
        try:
            self._resolver.reset()
            if branch_name:
                self._resolver.set_branch_value(branch_float)
                self._subscription = FloatTargetSubscription(
                    self._resolver,
                    branch=branch_name,
                    bus=self._bus,
                    channel=self._channel,
                    cache=self._settings,
                    marker=marker,
                )
        finally:
            self._applying = False

    def _start_blank(self, header: ClosingHeader) -> None:
        self._mode = WorkspaceMode.LIVE
        self._record_id = None
        self._saved_float = None
        self._header = header
        self._payments = PaymentBreakdown()
        self._adjustments = Adjustments()
        self._ledger = CashLedger(self._table)
        self._plan = WithdrawalPlan.inactive(self._table)
        view = self._run_pipeline(self._summarize())
        self._tracker.start(view.signature)

    def _apply_snapshot(self, snapshot: ClosingSnapshot, mode: WorkspaceMode) -> None:
        self._mode = mode
        self._record_id = snapshot.record_id
        self._saved_float = snapshot.float_target
        self._header = snapshot.header
        self._payments = snapshot.payments
        self._adjustments = snapshot.adjustments
        self._ledger = CashLedger.from_mapping(self._table, snapshot.cash)
        self._plan = WithdrawalPlan.from_mapping(self._table, snapshot.plan)
        self._applying = True
        try:
            self._resolver.set_record_value(snapshot.float_target)
        finally:
            self._applying = False
        view = self._run_pipeline(self._summarize())
        self._tracker.mark_loaded(view.signature)
        logger.info("closing_loaded", extra={
            "record_id": str(snapshot.record_id),
            "mode": mode.value,
            "signature": signature_digest(view.signature),
        })
