"""
drawer_services.signature_tracker -- Dirty tracking for the closing draft.

Responsibility:
    Compare the draft record signature with the last saved/loaded (server)
    signature, gate "save" and "reload from server", and emit dirty-state
    notifications without the false positives that follow a load or a save.

Architecture position:
    Services -- ORM-free shell.  Time comes from an injected Clock.

Invariants enforced:
    - ``is_dirty()`` is exactly ``draft != server``; it is never delayed.
    - Immediately after ``mark_saved`` the record is clean.
    - Dirty notifications are emitted only outside the cold-start window
      (after ``start`` / ``mark_loaded``) and the post-save silence window
      (after ``mark_saved``).
    - Reload is refused while dirty unless forced.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from drawer_engines.signature import signature_digest
from drawer_kernel.domain.clock import Clock
from drawer_kernel.logging_config import get_logger

logger = get_logger("services.signature_tracker")


class RecordSignatureTracker:
    """
    Draft-vs-server signature tracker for one workspace.

    Contract:
        The owner pushes the draft signature after every committed mutation
        (``set_draft``) and reports loads and successful saves.  Everything
        else is derived.
    """

    def __init__(
        self,
        clock: Clock,
        cold_start_ms: int = 900,
        post_save_silence_ms: int = 1200,
    ):
        self._clock = clock
        self._cold_start_ms = cold_start_ms
        self._post_save_ms = post_save_silence_ms
        self._draft = ""
        self._server = ""
        self._started_at: datetime | None = None
        self._saved_at: datetime | None = None
        self._notified_dirty = False
        self._listeners: list[Callable[[bool], None]] = []

    # -- inputs ----------------------------------------------------------

    def start(self, signature: str) -> None:
        """Begin tracking a fresh draft; it is clean by definition."""
        self._draft = signature
        self._server = signature
        self._started_at = self._clock.now_utc()
        self._saved_at = None
        self._notify(False)

    def set_draft(self, signature: str) -> None:
        self._draft = signature
        self.refresh()

    def mark_loaded(self, signature: str) -> None:
        """Server and draft both become the loaded record; cold start restarts."""
        self.start(signature)
        logger.debug("signature_loaded", extra={"signature": signature_digest(signature)})

    def mark_saved(self, signature: str | None = None) -> None:
        """
        Record a successful save.

        Args:
            signature: Signature of the snapshot that was written.  Defaults
                to the current draft.
        """
        self._server = self._draft if signature is None else signature
        self._saved_at = self._clock.now_utc()
        logger.debug("signature_saved", extra={"signature": signature_digest(self._server)})
        self._notify(self.is_dirty())

    # -- queries ---------------------------------------------------------

    @property
    def draft_signature(self) -> str:
        return self._draft

    @property
    def server_signature(self) -> str:
        return self._server

    def is_dirty(self) -> bool:
        return self._draft != self._server

    def in_cold_start(self) -> bool:
        return self._within(self._started_at, self._cold_start_ms)

    def in_post_save_silence(self) -> bool:
        return self._within(self._saved_at, self._post_save_ms)

    def display_dirty(self) -> bool:
        """Dirty state as shown to the operator; False inside either window."""
        if self.in_cold_start() or self.in_post_save_silence():
            return False
        return self.is_dirty()

    def can_save(self, saving: bool = False) -> bool:
        return self.display_dirty() and not saving

    def may_reload(self, force: bool = False) -> bool:
        return force or not self.is_dirty()

    # -- notifications ---------------------------------------------------

    def add_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def refresh(self) -> None:
        """Re-evaluate and notify; call again once a window has elapsed."""
        if self.in_cold_start() or self.in_post_save_silence():
            return
        self._notify(self.is_dirty())

    def _notify(self, dirty: bool) -> None:
        if dirty == self._notified_dirty:
            return
        self._notified_dirty = dirty
        for listener in list(self._listeners):
            listener(dirty)

    def _within(self, since: datetime | None, window_ms: int) -> bool:
        if since is None:
            return False
        return self._clock.elapsed_ms(since) < window_ms
