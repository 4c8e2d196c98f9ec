"""
Tests for retry_on_transient.
"""

import pytest

from drawer_kernel.exceptions import ClosingNotFoundError, TransientIOError
from drawer_services.retry import retry_on_transient


class _Flaky:
    """Fails transiently ``failures`` times, then returns ``result``."""

    def __init__(self, failures, result="ok"):
        self.failures = failures
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientIOError("closing_save", "connection reset")
        return self.result


class TestRetryOnTransient:

    def test_success_first_time(self, no_sleep):
        op = _Flaky(0)
        assert retry_on_transient(op, name="closing_save", sleep=no_sleep) == "ok"
        assert op.calls == 1
        assert no_sleep.calls == []

    def test_one_retry_after_fixed_delay(self, no_sleep, captured_logs):
        op = _Flaky(1)

        assert retry_on_transient(op, name="closing_save", sleep=no_sleep) == "ok"

        assert op.calls == 2
        assert no_sleep.calls == [1.2]
        retries = [r for r in captured_logs() if r["message"] == "transient_retry"]
        assert retries[0]["operation"] == "closing_save"
        assert retries[0]["delay_ms"] == 1200

    def test_exhausted_reraises(self, no_sleep, captured_logs):
        op = _Flaky(5)

        with pytest.raises(TransientIOError):
            retry_on_transient(op, name="closing_load", sleep=no_sleep)

        assert op.calls == 2
        assert no_sleep.calls == [1.2]
        assert any(r["message"] == "transient_retry_exhausted" for r in captured_logs())

    def test_non_transient_propagates_immediately(self, no_sleep):
        calls = []

        def _missing():
            calls.append(1)
            raise ClosingNotFoundError("abc")

        with pytest.raises(ClosingNotFoundError):
            retry_on_transient(_missing, name="closing_load", sleep=no_sleep)

        assert calls == [1]
        assert no_sleep.calls == []

    def test_configurable_attempts(self, no_sleep):
        op = _Flaky(3)
        assert retry_on_transient(
            op, name="closing_save", retries=3, delay_ms=50, sleep=no_sleep,
        ) == "ok"
        assert no_sleep.calls == [0.05, 0.05, 0.05]

    def test_zero_retries(self, no_sleep):
        with pytest.raises(TransientIOError):
            retry_on_transient(_Flaky(1), name="closing_save", retries=0, sleep=no_sleep)
        assert no_sleep.calls == []
