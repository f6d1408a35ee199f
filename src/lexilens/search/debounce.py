"""Keystroke debouncing for search input."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Default quiescent window before a query is issued
DEFAULT_DEBOUNCE_MS = 500


class QueryDebouncer:
    """Collapses bursts of keystrokes into a single trigger.

    Every notify() cancels the pending timer and schedules a new one, so the
    callback fires once per quiescent period with the most recent keyword
    (true debounce, waits after the last event).

    Example:
        debouncer = QueryDebouncer(lambda kw: print("search", kw), debounce_ms=300)
        for kw in ("c", "ca", "cat"):
            debouncer.notify(kw)
        # ~300ms later: prints "search cat" once
    """

    def __init__(
        self,
        on_trigger: Callable[[str], None],
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        """Initialize debouncer.

        Args:
            on_trigger: Callback invoked with the latest keyword
            debounce_ms: Quiescent window in milliseconds
        """
        self.on_trigger = on_trigger
        self.debounce_ms = debounce_ms

        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending_keyword: Optional[str] = None

    def notify(self, keyword: str) -> None:
        """Record a keystroke and restart the quiescent window."""
        with self._lock:
            self._pending_keyword = keyword

            if self._timer:
                self._timer.cancel()

            self._timer = threading.Timer(
                self.debounce_ms / 1000.0,
                self._fire,
            )
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            # A timer that lost the race with cancel() or a newer notify()
            # must not fire.
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            keyword = self._pending_keyword
            self._timer = None
            self._pending_keyword = None

        if keyword is not None:
            self._invoke(keyword)

    def _invoke(self, keyword: str) -> None:
        try:
            self.on_trigger(keyword)
        except Exception as exc:
            logger.error("Error in debounce trigger callback: %s", exc)

    def flush_now(self) -> None:
        """Fire the pending trigger immediately (manual trigger)."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            keyword = self._pending_keyword
            self._pending_keyword = None

        if keyword is not None:
            self._invoke(keyword)

    def cancel(self) -> None:
        """Drop the pending trigger without firing it."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._pending_keyword = None

    @property
    def pending(self) -> bool:
        """Check if a trigger is scheduled."""
        with self._lock:
            return self._timer is not None
