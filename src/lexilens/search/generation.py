"""Monotonic generation ids used to tell current results from superseded ones."""

from __future__ import annotations

import threading

# Wrap bound for generation ids (largest integer a double represents exactly)
MAX_GENERATION = 2**53 - 1


class GenerationGuard:
    """Issues strictly increasing generation ids.

    The guard only answers whether an id is current; consumers are
    responsible for dropping outcomes tagged with a stale id.

    Example:
        guard = GenerationGuard()
        g = guard.next()
        ...
        if not guard.is_current(g):
            return  # superseded
    """

    def __init__(self, base: int = 0, max_value: int = MAX_GENERATION) -> None:
        self._base = base
        self._max_value = max_value
        self._current = base
        self._lock = threading.Lock()

    def next(self) -> int:
        """Issue a new generation id and make it current."""
        with self._lock:
            if self._current >= self._max_value:
                self._current = self._base
            else:
                self._current += 1
            return self._current

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._current

    @property
    def current(self) -> int:
        """The most recently issued id (base value before the first call)."""
        with self._lock:
            return self._current
