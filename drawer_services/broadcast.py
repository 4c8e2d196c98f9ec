"""
drawer_services.broadcast -- Change-notification channels for shared settings.

Responsibility:
    Carries typed setting-change messages between concurrent closing
    sessions over three independent paths:

    * ``LocalEventBus`` -- in-process publish/subscribe (same session).
    * ``BroadcastHub`` / ``BroadcastChannel`` -- same-device fan-out to every
      other channel opened under the same name; the sender never receives
      its own post.
    * ``InMemoryFloatCache`` -- a per-branch value cache plus a bump marker
      whose mere change tells pollers to re-read.  ``BranchSettingsService``
      provides the database-backed equivalent.

Architecture position:
    Services -- ORM-free shell.  No engine or module imports.

Invariants enforced:
    - Messages are a small closed set of frozen dataclasses carrying only
      primitive fields.
    - Delivery is best-effort and at-least-once; receivers adopt the latest
      value, so duplicates are harmless.
    - A failing listener is logged and does not stop delivery to the rest.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from drawer_kernel.logging_config import get_logger

logger = get_logger("services.broadcast")


@dataclass(frozen=True)
class FloatTargetChanged:
    """The float target configured for ``branch_id`` is now ``value``."""

    branch_id: str
    value: int

    type: str = "float_target_changed"


DrawerMessage = FloatTargetChanged

Listener = Callable[[DrawerMessage], None]


def _deliver(listeners: list[Listener], message: DrawerMessage, path: str) -> int:
    delivered = 0
    for listener in list(listeners):
        try:
            listener(message)
            delivered += 1
        except Exception:
            logger.exception("broadcast_listener_failed", extra={
                "path": path,
                "message_type": message.type,
                "branch": message.branch_id,
            })
    return delivered


class LocalEventBus:
    """In-process publish/subscribe."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, message: DrawerMessage) -> int:
        """Dispatch to every listener; returns how many accepted it."""
        return _deliver(self._listeners, message, "local")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class BroadcastChannel:
    """
    One session's end of a named same-device channel.

    Obtain channels from ``BroadcastHub.channel(name)``.
    """

    def __init__(self, hub: BroadcastHub, name: str) -> None:
        self._hub = hub
        self.name = name
        self._listeners: list[Listener] = []
        self.closed = False

    def on_message(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def post(self, message: DrawerMessage) -> int:
        """Send to every other open channel with the same name."""
        if self.closed:
            logger.warning("broadcast_post_on_closed_channel", extra={"channel": self.name})
            return 0
        return self._hub._fan_out(self, message)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._listeners.clear()
            self._hub._detach(self)

    def _receive(self, message: DrawerMessage) -> int:
        return _deliver(self._listeners, message, f"broadcast:{self.name}")


class BroadcastHub:
    """Registry of open channels on one device, keyed by channel name."""

    def __init__(self) -> None:
        self._channels: dict[str, list[BroadcastChannel]] = {}

    def channel(self, name: str) -> BroadcastChannel:
        channel = BroadcastChannel(self, name)
        self._channels.setdefault(name, []).append(channel)
        logger.debug("broadcast_channel_opened", extra={
            "channel": name,
            "open_count": len(self._channels[name]),
        })
        return channel

    def open_count(self, name: str) -> int:
        return len(self._channels.get(name, ()))

    def _fan_out(self, sender: BroadcastChannel, message: DrawerMessage) -> int:
        delivered = 0
        for channel in list(self._channels.get(sender.name, ())):
            if channel is not sender:
                delivered += channel._receive(message)
        return delivered

    def _detach(self, channel: BroadcastChannel) -> None:
        peers = self._channels.get(channel.name, [])
        if channel in peers:
            peers.remove(channel)
        if not peers:
            self._channels.pop(channel.name, None)


class FloatCache(Protocol):
    """Persisted per-branch float values plus a change marker."""

    def write_float(self, branch: str, value: int) -> None: ...

    def read_float(self, branch: str) -> int | None: ...

    def marker(self) -> int: ...


class InMemoryFloatCache:
    """
    ``FloatCache`` held in memory, shared by every session of one device.

    ``marker()`` increases on every write, whatever the branch or value.
    """

    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._marker = 0

    def write_float(self, branch: str, value: int) -> None:
        self._values[branch] = int(value)
        self._marker += 1

    def read_float(self, branch: str) -> int | None:
        return self._values.get(branch)

    def marker(self) -> int:
        return self._marker


__all__ = [
    "FloatTargetChanged",
    "DrawerMessage",
    "LocalEventBus",
    "BroadcastHub",
    "BroadcastChannel",
    "FloatCache",
    "InMemoryFloatCache",
]
