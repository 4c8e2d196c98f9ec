"""
Shared fixtures for closing module tests.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test declares the
services it depends on in its function signature.

``FlakySessionFactory`` wraps the real session factory and makes the commit
of the next N sessions fail (by default the way a dropped connection does), so the
retry path runs against a real database.
"""

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from drawer_kernel.domain.dtos import (
    Adjustments,
    ClosingHeader,
    ClosingSnapshot,
    PaymentBreakdown,
    ThirdPartyAmount,
)
from drawer_modules.closing import (
    BranchSettingsService,
    CashierClosingService,
    CashierClosingWorkspace,
)
from drawer_modules.closing.orm import CashierClosingModel
from drawer_services.broadcast import BroadcastHub, LocalEventBus
from drawer_services.float_target import SETTINGS_CHANNEL

TEST_BRANCH = "Canggu"
OTHER_BRANCH = "Ubud"
TEST_DATE = date(2024, 1, 1)


class FlakySessionFactory:
    """
    Session factory whose next ``fail_next(n)`` commits raise.

    The default error is an OperationalError shaped like a dropped
    connection; pass ``error`` to raise something else.
    """

    def __init__(self, factory):
        self._factory = factory
        self._failures = 0
        self._error = None
        self.failed_commits = 0

    def fail_next(self, count: int = 1, error: Exception | None = None) -> None:
        self._failures = count
        self._error = error

    def _commit_error(self) -> Exception:
        if self._error is not None:
            return self._error
        return OperationalError("COMMIT", {}, ConnectionResetError("connection reset by peer"))

    def __call__(self):
        session = self._factory()
        if self._failures > 0:
            self._failures -= 1

            def _commit():
                self.failed_commits += 1
                raise self._commit_error()

            session.commit = _commit
        return session


def rejected_commit(reason: str = "CHECK constraint failed: cashier_closings") -> IntegrityError:
    """An IntegrityError that is not about the branch + date key."""
    return IntegrityError("INSERT INTO cashier_closings", {}, Exception(reason))


def closing_row_count(session_factory) -> int:
    with session_factory() as s:
        return s.scalar(select(func.count()).select_from(CashierClosingModel))


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@pytest.fixture
def closing_snapshot():
    """A complete closing for TEST_BRANCH on TEST_DATE."""
    return ClosingSnapshot(
        header=ClosingHeader(
            report_date=TEST_DATE,
            branch_name=TEST_BRANCH,
            shift="evening",
            cashier_name="Ari",
            notes="",
        ),
        payments=PaymentBreakdown(
            revenue=10_000_000,
            mpos=3_000_000,
            bank_transfer_ewallet=1_000_000,
            third_party=(
                ThirdPartyAmount("gojek", 2_000_000),
                ThirdPartyAmount("grab", 1_500_000),
            ),
        ),
        adjustments=Adjustments(payouts=200_000, deposits=0),
        float_target=3_000_000,
        cash={"d500k": 10, "d100k": 5},
        plan={"d500k": 5},
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def flaky_factory(session_factory):
    return FlakySessionFactory(session_factory)


@pytest.fixture
def closing_service(flaky_factory, deterministic_clock, drawer_config, no_sleep):
    return CashierClosingService(
        flaky_factory, deterministic_clock, retry=drawer_config.retry, sleep=no_sleep,
    )


@pytest.fixture
def settings_service(session_factory, drawer_config, no_sleep):
    return BranchSettingsService(session_factory, retry=drawer_config.retry, sleep=no_sleep)


@pytest.fixture
def event_bus():
    return LocalEventBus()


@pytest.fixture
def broadcast_hub():
    return BroadcastHub()


@pytest.fixture
def make_workspace(
    drawer_config,
    closing_service,
    settings_service,
    deterministic_clock,
    event_bus,
    broadcast_hub,
):
    """Build workspaces that share one bus and one broadcast hub (tabs of one device)."""
    created = []

    def _make(**overrides) -> CashierClosingWorkspace:
        kwargs = dict(
            config=drawer_config,
            closings=closing_service,
            settings=settings_service,
            clock=deterministic_clock,
            bus=event_bus,
            channel=broadcast_hub.channel(SETTINGS_CHANNEL),
        )
        kwargs.update(overrides)
        workspace = CashierClosingWorkspace(**kwargs)
        created.append(workspace)
        return workspace

    yield _make

    for workspace in created:
        workspace.close()


@pytest.fixture
def workspace(make_workspace):
    return make_workspace()
