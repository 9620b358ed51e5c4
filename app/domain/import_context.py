"""
app/domain/import_context.py

Per-invocation state for one import run: identity, deadline, cancellation
and the current pipeline phase. Nothing here outlives the call that created it.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class ImportPhase:
    IDLE = "idle"
    VALIDATING = "validating"
    PREVIEWING = "previewing"
    INSERTING = "inserting"
    DONE = "done"


_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ImportPhase.IDLE: frozenset({ImportPhase.VALIDATING}),
    ImportPhase.VALIDATING: frozenset({ImportPhase.PREVIEWING, ImportPhase.INSERTING, ImportPhase.DONE}),
    ImportPhase.PREVIEWING: frozenset({ImportPhase.DONE}),
    ImportPhase.INSERTING: frozenset({ImportPhase.DONE}),
    ImportPhase.DONE: frozenset(),
}


@dataclass
class ImportContext:
    """
    Explicit context passed through every pipeline stage.

    ``deadline`` is a ``time.monotonic()`` value; ``None`` disables the timeout.
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    deadline: float | None = None
    phase: str = ImportPhase.IDLE
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _timed_out: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, *, timeout_seconds: float | None = None) -> ImportContext:
        deadline = None
        if timeout_seconds is not None and timeout_seconds > 0:
            deadline = time.monotonic() + timeout_seconds
        return cls(deadline=deadline)

    def transition(self, phase: str) -> None:
        if phase not in _ALLOWED_TRANSITIONS.get(self.phase, frozenset()):
            raise RuntimeError(f"Invalid import phase transition {self.phase!r} -> {phase!r}.")
        logger.debug("Import run=%s phase %s -> %s", self.run_id, self.phase, phase)
        self.phase = phase

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def timed_out(self) -> bool:
        if not self._timed_out and self.deadline is not None and time.monotonic() >= self.deadline:
            self._timed_out = True
        return self._timed_out

    def should_stop(self) -> bool:
        """
        True once the caller cancelled or the deadline has passed.
        """

        return self.cancelled or self.timed_out
