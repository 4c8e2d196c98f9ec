"""
Tests for CashierClosingService.

Covers:
- Insert, update, load, find_by_key
- Duplicate (branch, date) detection writes nothing
- Blank branch rejected before any transaction
- One retry on a transient commit failure without a duplicate row
- Other refused commits surface as StorageRejectedError, unretried
- Branch names stored trimmed
"""

from dataclasses import replace
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from drawer_kernel.domain.dtos import ClosingHeader
from drawer_kernel.exceptions import (
    BranchNotSelectedError,
    ClosingNotFoundError,
    DuplicateClosingError,
    PersistenceError,
    StorageRejectedError,
    TransientIOError,
)
from tests.conftest import TEST_ACTOR_ID
from tests.modules.conftest import TEST_BRANCH, TEST_DATE, closing_row_count, rejected_commit


# =============================================================================
# Writes
# =============================================================================


class TestSave:

    def test_insert(self, closing_service, closing_snapshot, session_factory):
        result = closing_service.save(closing_snapshot, actor_id=TEST_ACTOR_ID)

        assert result.created is True
        assert result.attempts == 1
        assert result.snapshot.record_id == result.record_id
        assert closing_row_count(session_factory) == 1

    def test_update_keeps_one_row(self, closing_service, closing_snapshot, session_factory):
        first = closing_service.save(closing_snapshot)
        edited = replace(first.snapshot, float_target=2_500_000, cash={"d500k": 9})

        second = closing_service.save(edited)

        assert second.created is False
        assert second.record_id == first.record_id
        assert closing_service.load(first.record_id).float_target == 2_500_000
        assert closing_row_count(session_factory) == 1

    def test_duplicate_branch_and_date(self, closing_service, closing_snapshot, session_factory):
        first = closing_service.save(closing_snapshot)

        with pytest.raises(DuplicateClosingError) as exc_info:
            closing_service.save(replace(closing_snapshot, float_target=1))

        assert exc_info.value.existing_id == str(first.record_id)
        assert exc_info.value.branch_name == TEST_BRANCH
        assert closing_row_count(session_factory) == 1
        assert closing_service.load(first.record_id).float_target == 3_000_000

    def test_same_branch_other_date_allowed(self, closing_service, closing_snapshot, session_factory):
        closing_service.save(closing_snapshot)
        other_day = replace(
            closing_snapshot,
            header=replace(closing_snapshot.header, report_date=date(2024, 1, 2)),
        )
        closing_service.save(other_day)
        assert closing_row_count(session_factory) == 2

    @pytest.mark.parametrize("branch", ["", "   "])
    def test_blank_branch_rejected(self, closing_service, closing_snapshot, flaky_factory, branch):
        snapshot = replace(closing_snapshot, header=replace(closing_snapshot.header, branch_name=branch))

        with pytest.raises(BranchNotSelectedError):
            closing_service.save(snapshot)

        assert closing_row_count(flaky_factory) == 0

    def test_missing_date_defaults_to_clock(self, closing_service, closing_snapshot):
        snapshot = replace(closing_snapshot, header=ClosingHeader(branch_name=TEST_BRANCH))

        result = closing_service.save(snapshot)

        assert result.snapshot.header.report_date == date(2024, 1, 1)

    def test_branch_stored_trimmed(self, closing_service, closing_snapshot, session_factory):
        padded = replace(closing_snapshot, header=replace(closing_snapshot.header, branch_name="  Canggu "))

        result = closing_service.save(padded)

        assert result.snapshot.header.branch_name == TEST_BRANCH
        assert closing_service.load(result.record_id).header.branch_name == TEST_BRANCH
        assert closing_service.find_by_key(" Canggu", TEST_DATE).record_id == result.record_id

        with pytest.raises(DuplicateClosingError) as exc_info:
            closing_service.save(closing_snapshot)

        assert exc_info.value.branch_name == TEST_BRANCH
        assert closing_row_count(session_factory) == 1

    def test_logs(self, closing_service, closing_snapshot, captured_logs):
        closing_service.save(closing_snapshot)

        completed = [r for r in captured_logs() if r["message"] == "closing_save_completed"]
        assert len(completed) == 1
        assert completed[0]["branch"] == TEST_BRANCH
        assert completed[0]["created"] is True


class TestTransientFailure:
    """A dropped connection during commit is retried once."""

    def test_retry_succeeds_without_duplicate(
        self, closing_service, closing_snapshot, flaky_factory, no_sleep,
    ):
        flaky_factory.fail_next(1)

        result = closing_service.save(closing_snapshot)

        assert result.attempts == 2
        assert result.created is True
        assert flaky_factory.failed_commits == 1
        assert no_sleep.calls == [1.2]
        assert closing_row_count(flaky_factory) == 1

    def test_second_failure_surfaces(
        self, closing_service, closing_snapshot, flaky_factory, no_sleep,
    ):
        flaky_factory.fail_next(2)

        with pytest.raises(TransientIOError):
            closing_service.save(closing_snapshot)

        assert flaky_factory.failed_commits == 2
        assert no_sleep.calls == [1.2]
        assert closing_row_count(flaky_factory) == 0

    def test_load_retried(self, closing_service, closing_snapshot, flaky_factory):
        saved = closing_service.save(closing_snapshot)
        flaky_factory.fail_next(1)

        loaded = closing_service.load(saved.record_id)

        assert loaded.record_id == saved.record_id
        assert flaky_factory.failed_commits == 1


class TestRejectedWrite:
    """A commit the database refuses for another reason is not retried."""

    def test_constraint_failure_surfaces(
        self, closing_service, closing_snapshot, flaky_factory, no_sleep,
    ):
        flaky_factory.fail_next(1, error=rejected_commit())

        with pytest.raises(StorageRejectedError) as exc_info:
            closing_service.save(closing_snapshot)

        assert exc_info.value.code == "STORAGE_REJECTED"
        assert isinstance(exc_info.value, PersistenceError)
        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert "CHECK constraint failed" in str(exc_info.value)
        assert flaky_factory.failed_commits == 1
        assert no_sleep.calls == []
        assert closing_row_count(flaky_factory) == 0

    def test_not_reported_as_duplicate(self, closing_service, closing_snapshot, flaky_factory):
        other_day = replace(
            closing_snapshot,
            header=replace(closing_snapshot.header, report_date=date(2024, 1, 2)),
        )
        closing_service.save(other_day)
        flaky_factory.fail_next(1, error=rejected_commit())

        with pytest.raises(StorageRejectedError):
            closing_service.save(closing_snapshot)

        assert closing_row_count(flaky_factory) == 1


# =============================================================================
# Reads
# =============================================================================


class TestLoad:

    def test_load_round_trip(self, closing_service, closing_snapshot):
        saved = closing_service.save(closing_snapshot)

        loaded = closing_service.load(saved.record_id)

        assert loaded.header == closing_snapshot.header
        assert loaded.payments == closing_snapshot.payments
        assert dict(loaded.cash) == dict(closing_snapshot.cash)

    def test_unknown_id(self, closing_service):
        with pytest.raises(ClosingNotFoundError):
            closing_service.load(uuid4())

    def test_find_by_key(self, closing_service, closing_snapshot):
        assert closing_service.find_by_key(TEST_BRANCH, TEST_DATE) is None

        saved = closing_service.save(closing_snapshot)

        found = closing_service.find_by_key(TEST_BRANCH, TEST_DATE)
        assert found.record_id == saved.record_id
        assert closing_service.find_by_key("Ubud", TEST_DATE) is None
