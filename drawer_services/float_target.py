"""
drawer_services.float_target -- Float target resolution and propagation.

Responsibility:
    Resolve the one float target the planner and the variance calculator
    use, from four competing sources, and keep concurrent sessions of the
    same branch in step when the branch configuration changes.

Architecture position:
    Services -- ORM-free shell.  Depends on the broadcast channels only.

Invariants enforced:
    - Precedence, first present wins:
        1. session override pushed by a configuration screen,
        2. branch configuration,
        3. float target stored in the loaded record (only once loaded),
        4. system default.
    - Sources 1 and 2 accept only positive finite numbers; anything else is
      treated as absent.
    - When the override equals the branch configuration the override is
      cleared, so configuration is again the source of truth.
    - Listeners hear about a change only when the resolved value changes.
    - Messages for another branch are ignored.

Usage:
    resolver = FloatTargetResolver(default=3_000_000)
    subscription = FloatTargetSubscription(
        resolver, branch="Canggu", bus=bus, channel=hub.channel("drawer-settings"),
        cache=cache,
    )
    FloatTargetPublisher(bus, hub.channel("drawer-settings"), cache).publish("Canggu", 2_500_000)
    resolver.value  # 2_500_000
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from drawer_kernel.domain.values import positive_amount, whole_units
from drawer_kernel.logging_config import get_logger
from drawer_services.broadcast import (
    BroadcastChannel,
    DrawerMessage,
    FloatCache,
    FloatTargetChanged,
    LocalEventBus,
)

logger = get_logger("services.float_target")

SETTINGS_CHANNEL = "drawer-settings"


class FloatTargetSource(str, Enum):
    """Where the resolved float target came from."""

    SESSION_OVERRIDE = "session_override"
    BRANCH_CONFIG = "branch_config"
    RECORD = "record"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedFloatTarget:
    value: int
    source: FloatTargetSource


class FloatTargetResolver:
    """
    Holds the four float-target sources for one session and resolves them.

    Contract:
        Setters accept raw values.  ``resolve()`` is a pure function of the
        current sources.  Listeners receive the new ResolvedFloatTarget
        after any setter that changed the resolved value.
    """

    def __init__(self, default: int):
        self._default = max(0, whole_units(default))
        self._override: int | None = None
        self._branch_value: int | None = None
        self._record_value: int | None = None
        self._listeners: list[Callable[[ResolvedFloatTarget], None]] = []
        self._last = self.resolve()

    # -- sources ---------------------------------------------------------

    @property
    def override(self) -> int | None:
        return self._override

    @property
    def branch_value(self) -> int | None:
        return self._branch_value

    @property
    def record_value(self) -> int | None:
        return self._record_value

    def set_override(self, raw: Any) -> ResolvedFloatTarget:
        """Session-local value pushed by a configuration screen."""
        self._override = positive_amount(raw)
        self._drop_redundant_override()
        return self._changed()

    def clear_override(self) -> ResolvedFloatTarget:
        self._override = None
        return self._changed()

    def set_branch_value(self, raw: Any) -> ResolvedFloatTarget:
        """Persisted branch configuration (None when the branch has none)."""
        self._branch_value = positive_amount(raw)
        self._drop_redundant_override()
        return self._changed()

    def set_record_value(self, raw: Any) -> ResolvedFloatTarget:
        """
        Float stored in the loaded record; pass None for a new record.

        A stored zero is a real value (the record was saved with no float).
        """
        self._record_value = None if raw is None else max(0, whole_units(raw))
        return self._changed()

    def reset(self) -> ResolvedFloatTarget:
        """Forget every session source (branch switch)."""
        self._override = None
        self._branch_value = None
        self._record_value = None
        return self._changed()

    # -- resolution ------------------------------------------------------

    def resolve(self) -> ResolvedFloatTarget:
        if self._override is not None:
            return ResolvedFloatTarget(self._override, FloatTargetSource.SESSION_OVERRIDE)
        if self._branch_value is not None:
            return ResolvedFloatTarget(self._branch_value, FloatTargetSource.BRANCH_CONFIG)
        if self._record_value is not None:
            return ResolvedFloatTarget(self._record_value, FloatTargetSource.RECORD)
        return ResolvedFloatTarget(self._default, FloatTargetSource.DEFAULT)

    @property
    def value(self) -> int:
        return self.resolve().value

    def add_listener(
        self, listener: Callable[[ResolvedFloatTarget], None],
    ) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _drop_redundant_override(self) -> None:
        if (
            self._override is not None
            and self._branch_value is not None
            and self._override == self._branch_value
        ):
            logger.debug("float_override_cleared", extra={"value": self._override})
            self._override = None

    def _changed(self) -> ResolvedFloatTarget:
        current = self.resolve()
        if current.value != self._last.value:
            logger.info("float_target_resolved", extra={
                "previous": self._last.value,
                "value": current.value,
                "source": current.source.value,
            })
            self._last = current
            for listener in list(self._listeners):
                listener(current)
        else:
            self._last = current
        return current


class FloatTargetPublisher:
    """
    Announces a new branch float target on every propagation path.

    Order: persisted cache and bump marker first, then the in-process bus,
    then the same-device broadcast (sender excluded).
    """

    def __init__(
        self,
        bus: LocalEventBus,
        channel: BroadcastChannel,
        cache: FloatCache,
    ):
        self._bus = bus
        self._channel = channel
        self._cache = cache

    def publish(self, branch: str, raw: Any) -> FloatTargetChanged | None:
        """
        Returns:
            The message sent, or None when ``branch`` is empty or ``raw`` is
            not a positive amount.
        """
        value = positive_amount(raw)
        if not branch or value is None:
            logger.warning("float_publish_rejected", extra={
                "branch": branch,
                "raw": str(raw),
            })
            return None

        message = FloatTargetChanged(branch_id=branch, value=value)
        self._cache.write_float(branch, value)
        local = self._bus.publish(message)
        remote = self._channel.post(message)
        logger.info("float_target_published", extra={
            "branch": branch,
            "value": value,
            "local_deliveries": local,
            "broadcast_deliveries": remote,
        })
        return message


class FloatTargetSubscription:
    """
    Wires one session's resolver to the three propagation paths.

    Contract:
        - Local and broadcast messages for ``branch`` set the session
          override.
        - ``poll()`` re-reads the persisted branch value when the bump
          marker moved since the last look, and feeds it to the resolver as
          branch configuration.  A branch with nothing cached is left as is
          (the marker also moves for other branches).
        - ``close()`` detaches from every path; later deliveries are no-ops.
    """

    def __init__(
        self,
        resolver: FloatTargetResolver,
        branch: str,
        bus: LocalEventBus,
        channel: BroadcastChannel,
        cache: FloatCache,
        marker: int | None = None,
    ):
        self._resolver = resolver
        self.branch = branch
        self._cache = cache
        self._seen_marker = cache.marker() if marker is None else marker
        self._unsubscribers = [
            bus.subscribe(self._on_message),
            channel.on_message(self._on_message),
        ]
        self.active = True

    def _on_message(self, message: DrawerMessage) -> None:
        if not self.active or not isinstance(message, FloatTargetChanged):
            return
        if message.branch_id != self.branch:
            logger.debug("float_message_ignored", extra={
                "branch": self.branch,
                "message_branch": message.branch_id,
            })
            return
        self._resolver.set_override(message.value)

    def poll(self) -> bool:
        """Returns True when the marker had moved and the value was re-read."""
        if not self.active:
            return False
        marker = self._cache.marker()
        if marker == self._seen_marker:
            return False
        self._seen_marker = marker
        value = self._cache.read_float(self.branch)
        if value is not None:
            self._resolver.set_branch_value(value)
        logger.debug("float_marker_changed", extra={
            "branch": self.branch,
            "marker": marker,
        })
        return True

    def close(self) -> None:
        if not self.active:
            return
        self.active = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
