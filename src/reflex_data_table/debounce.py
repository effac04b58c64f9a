"""Debounced commit of the search input.

The debouncer holds at most one pending value.  Each ``push`` replaces it
and restarts the deadline; the value is committed by ``poll`` once the
clock passes the deadline, or immediately by ``flush``.  There are no
threads or timers: the owner calls ``poll`` (e.g. from a Reflex
background task or on the next event), which keeps it deterministic under
a manual clock.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

_DEFAULT_DELAY_MS: int = 300

_UNSET: Any = object()


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class Debouncer:
    """Buffer a value and commit it after *delay_ms* of quiet.

    Args:
        on_commit: Receives the committed value.
        delay_ms: Quiet period before a pushed value commits.
        clock: Returns the current time in milliseconds.
        immediate: Commit on every push (no buffering).
    """

    def __init__(
        self,
        on_commit: Callable[[Any], Any],
        *,
        delay_ms: int = _DEFAULT_DELAY_MS,
        clock: Callable[[], float] = _monotonic_ms,
        immediate: bool = False,
    ) -> None:
        self._on_commit = on_commit
        self.delay_ms = delay_ms
        self._clock = clock
        self.immediate = immediate
        self._pending: Any = _UNSET
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not _UNSET

    @property
    def pending_value(self) -> Any:
        return None if self._pending is _UNSET else self._pending

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def push(self, value: Any) -> None:
        """Replace any pending value with *value* and restart the deadline."""
        if self.immediate or self.delay_ms <= 0:
            self._pending = _UNSET
            self._deadline = None
            self._on_commit(value)
            return
        self._pending = value
        self._deadline = self._clock() + self.delay_ms

    def poll(self) -> bool:
        """Commit the pending value if its deadline has passed."""
        if self._deadline is None or self._clock() < self._deadline:
            return False
        return self.flush()

    def flush(self) -> bool:
        """Commit the pending value now.  Returns ``False`` when nothing was pending."""
        if self._pending is _UNSET:
            return False
        value = self._pending
        self._pending = _UNSET
        self._deadline = None
        logger.debug("[DataTable] search commit: %r", value)
        self._on_commit(value)
        return True

    def cancel(self) -> None:
        self._pending = _UNSET
        self._deadline = None
