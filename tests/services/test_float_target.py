"""
Tests for float target resolution and propagation.

Covers:
- Source precedence (override > branch > record > default)
- Override cleared when it matches the branch configuration
- Listener notification only on a changed value
- Publisher / subscription across the local bus, the same-device
  broadcast, and the polled bump marker
"""

import pytest

from drawer_services.broadcast import (
    BroadcastHub,
    FloatTargetChanged,
    InMemoryFloatCache,
    LocalEventBus,
)
from drawer_services.float_target import (
    SETTINGS_CHANNEL,
    FloatTargetPublisher,
    FloatTargetResolver,
    FloatTargetSource,
    FloatTargetSubscription,
)

DEFAULT = 3_000_000


@pytest.fixture
def resolver():
    return FloatTargetResolver(default=DEFAULT)


# =============================================================================
# Resolver
# =============================================================================


class TestFloatTargetResolver:
    """Tests for source precedence."""

    def test_default(self, resolver):
        resolved = resolver.resolve()
        assert resolved.value == DEFAULT
        assert resolved.source == FloatTargetSource.DEFAULT

    def test_record_beats_default(self, resolver):
        resolver.set_record_value(2_000_000)
        assert resolver.resolve().source == FloatTargetSource.RECORD
        assert resolver.value == 2_000_000

    def test_record_zero_is_a_value(self, resolver):
        resolver.set_record_value(0)
        assert resolver.value == 0

    def test_branch_beats_record(self, resolver):
        resolver.set_record_value(2_000_000)
        resolver.set_branch_value(2_500_000)
        assert resolver.resolve().source == FloatTargetSource.BRANCH_CONFIG
        assert resolver.value == 2_500_000

    def test_override_beats_branch(self, resolver):
        resolver.set_branch_value(2_500_000)
        resolver.set_override(1_500_000)
        assert resolver.resolve().source == FloatTargetSource.SESSION_OVERRIDE
        assert resolver.value == 1_500_000

    @pytest.mark.parametrize("raw", [0, -5, "", "abc", None, float("nan")])
    def test_non_positive_branch_is_absent(self, resolver, raw):
        resolver.set_branch_value(raw)
        assert resolver.branch_value is None
        assert resolver.value == DEFAULT

    @pytest.mark.parametrize("raw", [0, "", float("inf")])
    def test_non_positive_override_is_absent(self, resolver, raw):
        resolver.set_branch_value(2_500_000)
        resolver.set_override(raw)
        assert resolver.override is None
        assert resolver.value == 2_500_000

    def test_override_cleared_when_branch_catches_up(self, resolver):
        resolver.set_branch_value(2_500_000)
        resolver.set_override(2_000_000)

        resolver.set_branch_value(2_000_000)

        assert resolver.override is None
        assert resolver.resolve().source == FloatTargetSource.BRANCH_CONFIG

    def test_override_equal_to_branch_not_held(self, resolver):
        resolver.set_branch_value(2_000_000)
        resolver.set_override("2,000,000")
        assert resolver.override is None

    def test_reset(self, resolver):
        resolver.set_override(1)
        resolver.set_branch_value(2)
        resolver.set_record_value(3)
        resolver.reset()
        assert resolver.resolve().source == FloatTargetSource.DEFAULT

    def test_listener_only_on_change(self, resolver):
        heard = []
        resolver.add_listener(heard.append)

        resolver.set_record_value(DEFAULT)  # same value, different source
        resolver.set_branch_value(2_000_000)
        resolver.set_branch_value(2_000_000)

        assert [r.value for r in heard] == [2_000_000]

    def test_remove_listener(self, resolver):
        heard = []
        remove = resolver.add_listener(heard.append)
        remove()
        resolver.set_override(1_000_000)
        assert heard == []


# =============================================================================
# Propagation
# =============================================================================


@pytest.fixture
def wiring():
    bus = LocalEventBus()
    hub = BroadcastHub()
    cache = InMemoryFloatCache()
    return bus, hub, cache


class TestPropagation:
    """Publisher and subscription across the three paths."""

    def test_local_bus_sets_override(self, wiring, resolver):
        bus, hub, cache = wiring
        FloatTargetSubscription(resolver, "Canggu", bus, hub.channel(SETTINGS_CHANNEL), cache)
        publisher = FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache)

        message = publisher.publish("Canggu", 2_500_000)

        assert message == FloatTargetChanged(branch_id="Canggu", value=2_500_000)
        assert resolver.value == 2_500_000
        assert resolver.resolve().source == FloatTargetSource.SESSION_OVERRIDE

    def test_broadcast_reaches_other_session(self, wiring):
        """Second tab on another bus still hears the change via the channel."""
        bus, hub, cache = wiring
        other_resolver = FloatTargetResolver(default=DEFAULT)
        FloatTargetSubscription(
            other_resolver, "Canggu", LocalEventBus(), hub.channel(SETTINGS_CHANNEL), cache,
        )

        FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache).publish("Canggu", 1_800_000)

        assert other_resolver.value == 1_800_000

    def test_poll_reads_changed_marker(self, wiring):
        """A session reachable only through the persisted marker."""
        _, _, cache = wiring
        isolated = FloatTargetResolver(default=DEFAULT)
        subscription = FloatTargetSubscription(
            isolated, "Canggu", LocalEventBus(), BroadcastHub().channel(SETTINGS_CHANNEL), cache,
        )
        assert subscription.poll() is False

        cache.write_float("Canggu", 2_200_000)

        assert subscription.poll() is True
        assert isolated.value == 2_200_000
        assert isolated.resolve().source == FloatTargetSource.BRANCH_CONFIG
        assert subscription.poll() is False

    def test_given_marker_catches_earlier_write(self, wiring):
        """A marker read before subscribing sees writes made in between."""
        _, _, cache = wiring
        isolated = FloatTargetResolver(default=DEFAULT)
        marker = cache.marker()
        cache.write_float("Canggu", 2_200_000)

        subscription = FloatTargetSubscription(
            isolated, "Canggu", LocalEventBus(), BroadcastHub().channel(SETTINGS_CHANNEL), cache,
            marker=marker,
        )

        assert subscription.poll() is True
        assert isolated.value == 2_200_000

    def test_poll_marker_for_other_branch_keeps_value(self, wiring, resolver):
        _, _, cache = wiring
        resolver.set_branch_value(2_000_000)
        subscription = FloatTargetSubscription(
            resolver, "Canggu", LocalEventBus(), BroadcastHub().channel(SETTINGS_CHANNEL), cache,
        )

        cache.write_float("Ubud", 1_000_000)

        assert subscription.poll() is True
        assert resolver.value == 2_000_000

    def test_other_branch_ignored(self, wiring, resolver):
        bus, hub, cache = wiring
        FloatTargetSubscription(resolver, "Canggu", bus, hub.channel(SETTINGS_CHANNEL), cache)

        FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache).publish("Ubud", 1_000_000)

        assert resolver.value == DEFAULT

    def test_duplicates_harmless(self, wiring, resolver):
        bus, hub, cache = wiring
        FloatTargetSubscription(resolver, "Canggu", bus, hub.channel(SETTINGS_CHANNEL), cache)
        heard = []
        resolver.add_listener(heard.append)
        message = FloatTargetChanged(branch_id="Canggu", value=2_500_000)

        bus.publish(message)
        bus.publish(message)

        assert resolver.value == 2_500_000
        assert len(heard) == 1

    def test_publish_rejects_invalid(self, wiring, captured_logs):
        bus, hub, cache = wiring
        publisher = FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache)

        assert publisher.publish("Canggu", 0) is None
        assert publisher.publish("", 1_000_000) is None
        assert cache.marker() == 0
        assert any(r["message"] == "float_publish_rejected" for r in captured_logs())

    def test_publish_writes_cache_first(self, wiring):
        bus, hub, cache = wiring
        seen_markers = []
        bus.subscribe(lambda message: seen_markers.append(cache.marker()))

        FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache).publish("Canggu", 2_000_000)

        assert seen_markers == [1]

    def test_closed_subscription_ignores_everything(self, wiring, resolver):
        bus, hub, cache = wiring
        subscription = FloatTargetSubscription(
            resolver, "Canggu", bus, hub.channel(SETTINGS_CHANNEL), cache,
        )
        subscription.close()

        FloatTargetPublisher(bus, hub.channel(SETTINGS_CHANNEL), cache).publish("Canggu", 2_500_000)

        assert resolver.value == DEFAULT
        assert subscription.poll() is False
        assert bus.listener_count == 0
