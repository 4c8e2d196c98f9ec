"""
Tests for the drawer variance calculator and the engine tracer.

Covers:
- Expected drawer cash and variance sign convention
- Zero and negative net cash
- DRAWER_ENGINE_TRACE emission and input fingerprints
"""

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from drawer_engines.tracer import compute_input_fingerprint
from drawer_engines.variance import VarianceCalculator, VarianceStatus


class TestDrawerVariance:
    """Tests for counted-vs-expected variance."""

    def setup_method(self):
        self.calculator = VarianceCalculator()

    def test_overage(self):
        """2M net cash, 3M float, 5.1M counted: 100k over."""
        result = self.calculator.drawer_variance(
            net_cash=2_000_000,
            float_target=3_000_000,
            counted_cash=5_100_000,
        )

        assert result.expected_drawer_cash == 5_000_000
        assert result.variance == 100_000
        assert result.status == VarianceStatus.OVERAGE

    def test_shortage(self):
        result = self.calculator.drawer_variance(
            net_cash=2_000_000,
            float_target=3_000_000,
            counted_cash=4_950_000,
        )

        assert result.variance == -50_000
        assert result.status == VarianceStatus.SHORTAGE
        assert result.absolute_variance == 50_000

    def test_balanced(self):
        result = self.calculator.drawer_variance(
            net_cash=0,
            float_target=3_000_000,
            counted_cash=3_000_000,
        )

        assert result.variance == 0
        assert result.status == VarianceStatus.BALANCED

    def test_negative_net_cash(self):
        """More cash left the drawer than came in."""
        result = self.calculator.drawer_variance(
            net_cash=-400_000,
            float_target=3_000_000,
            counted_cash=2_600_000,
        )

        assert result.expected_drawer_cash == 2_600_000
        assert result.status == VarianceStatus.BALANCED

    @given(
        net_cash=st.integers(min_value=-10**12, max_value=10**12),
        float_target=st.integers(min_value=0, max_value=10**10),
        counted=st.integers(min_value=0, max_value=10**12),
    )
    @settings(
        max_examples=200,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    def test_exact_for_all_integers(self, net_cash, float_target, counted):
        result = VarianceCalculator().drawer_variance(
            net_cash=net_cash, float_target=float_target, counted_cash=counted,
        )
        assert result.variance == counted - (net_cash + float_target)


class TestEngineTracer:
    """Tests for the @traced_engine decorator."""

    def test_trace_record(self, captured_logs):
        VarianceCalculator().drawer_variance(
            net_cash=1, float_target=2, counted_cash=3,
        )

        traces = [r for r in captured_logs() if r["message"] == "DRAWER_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "drawer_variance"
        assert trace["engine_version"] == "1.0"
        assert trace["logger"] == "drawer_kernel.engines.tracer"
        assert trace["duration_ms"] >= 0

    def test_fingerprint_deterministic(self):
        fields = ("net_cash", "float_target")
        a = compute_input_fingerprint(fields, {"net_cash": 1, "float_target": 2})
        b = compute_input_fingerprint(fields, {"float_target": 2, "net_cash": 1})
        assert a == b
        assert len(a) == 16

    def test_fingerprint_sensitive_to_inputs(self):
        fields = ("net_cash",)
        assert compute_input_fingerprint(fields, {"net_cash": 1}) != compute_input_fingerprint(
            fields, {"net_cash": 2},
        )

    def test_fingerprint_uses_object_fingerprint(self, make_ledger):
        fields = ("ledger",)
        same = compute_input_fingerprint(fields, {"ledger": make_ledger(d1k=1)})
        again = compute_input_fingerprint(fields, {"ledger": make_ledger(d1k=1)})
        other = compute_input_fingerprint(fields, {"ledger": make_ledger(d1k=2)})
        assert same == again
        assert same != other

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None},
        )


@pytest.mark.parametrize(
    "variance, status",
    [(1, VarianceStatus.OVERAGE), (-1, VarianceStatus.SHORTAGE), (0, VarianceStatus.BALANCED)],
)
def test_status_from_sign(variance, status):
    result = VarianceCalculator().drawer_variance(
        net_cash=0, float_target=0, counted_cash=variance,
    )
    assert result.status == status
