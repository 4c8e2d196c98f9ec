"""
Injectable time source.

The signature tracker measures its cold-start and post-save windows in
milliseconds against a ``Clock``, and the closing service stamps a missing
report date from it.  Nothing in the drawer packages reads the wall clock
directly; ``SystemClock`` is the one place that does.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_EPOCH_OF_TESTS = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware "now"."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def elapsed_ms(self, since: datetime) -> float:
        """Milliseconds from ``since`` to now (negative if ``since`` is ahead)."""
        return (self.now_utc() - since) / timedelta(milliseconds=1)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at 2024-01-01 12:00 UTC unless given a start time.  Tests step
    it through the tracker windows with ``advance_ms``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or _EPOCH_OF_TESTS

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: float = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_ms(self, milliseconds: float) -> None:
        self._current += timedelta(milliseconds=milliseconds)
