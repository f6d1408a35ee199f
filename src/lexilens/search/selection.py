"""Current-match tracking and cyclic navigation over merged results."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from lexilens.entities import Match, ResultSet

logger = logging.getLogger(__name__)

SelectionListener = Callable[[Optional[Match]], None]


class SelectionPolicy:
    """Tracks the selected match for the active ResultSet.

    The policy shares its lock with the ResultMerger so that the selected
    match is always a member of the tiers it reads. Listeners are notified
    after that lock has been released, one notification at a time; every
    change carries a version taken under the lock, and a notification older
    than the last one delivered is dropped. The last value a listener sees
    is therefore always the current selection.

    Attributes:
        lock: Re-entrant lock guarding the ResultSet and the selection
    """

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self.lock = lock or threading.RLock()
        self._results = ResultSet()
        self._current: Optional[Match] = None
        self._auto_select_enabled = True
        self._listeners: List[SelectionListener] = []

        self._version = 0
        self._delivered = 0
        self._notify_lock = threading.RLock()

    @property
    def current(self) -> Optional[Match]:
        with self.lock:
            return self._current

    def add_listener(self, callback: SelectionListener) -> None:
        """Register callback for selection change notifications."""
        self._listeners.append(callback)

    def remove_listener(self, callback: SelectionListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def bind(self, results: ResultSet, notify: bool = True) -> int:
        """Attach a fresh ResultSet for a new generation and clear the selection.

        Args:
            results: ResultSet of the new generation
            notify: Notify listeners now; callers holding the lock pass False
                and hand the returned version to publish() once released

        Returns:
            Version of the change, 0 if nothing was selected
        """
        with self.lock:
            self._results = results
            self._auto_select_enabled = True
            version = self._set(None)
        if notify and version:
            self.publish(None, version)
        return version

    def clear(self) -> None:
        with self.lock:
            version = self._set(None)
        if version:
            self.publish(None, version)

    def auto_select_if_empty(self) -> bool:
        """Select exact[0] if nothing is selected yet.

        Returns:
            True if the selection changed
        """
        with self.lock:
            if (
                self._current is not None
                or not self._auto_select_enabled
                or not self._results.exact
            ):
                return False
            match = self._results.exact[0]
            version = self._set(match)
        logger.debug("Auto-selected %r from %s", match.term, match.source_name)
        self.publish(match, version)
        return True

    def select(self, match: Match) -> bool:
        """Explicitly select a match (e.g. a user click).

        Disables auto-selection for the rest of the generation.

        Returns:
            False if the match is not part of the active results
        """
        with self.lock:
            idx = self._results.index_of(match)
            if idx < 0:
                logger.debug("Ignoring selection of %r: not in active results", match.term)
                return False
            self._auto_select_enabled = False
            selected = self._results.all()[idx]
            version = self._set(selected)
        if version:
            self.publish(selected, version)
        return True

    def next(self) -> Optional[Match]:
        """Select the following match, wrapping to the first."""
        return self._step(1)

    def previous(self) -> Optional[Match]:
        """Select the preceding match, wrapping to the last."""
        return self._step(-1)

    def _step(self, delta: int) -> Optional[Match]:
        with self.lock:
            items = self._results.all()
            if not items:
                return self._current
            length = len(items)
            idx = self._results.index_of(self._current) if self._current else -1
            if idx < 0:
                target = 0 if delta > 0 else length - 1
            else:
                target = (idx + delta + length) % length
            selected = items[target]
            version = self._set(selected)
        if version:
            self.publish(selected, version)
        return selected

    def _set(self, match: Optional[Match]) -> int:
        """Store match; returns the new version, or 0 if unchanged."""
        if match == self._current:
            return 0
        self._current = match
        self._version += 1
        return self._version

    def publish(self, match: Optional[Match], version: int) -> bool:
        """Deliver a selection change to listeners unless a newer one was delivered.

        Must be called without holding the selection lock.

        Returns:
            True if listeners were notified
        """
        with self._notify_lock:
            if version <= self._delivered:
                logger.debug("Dropping superseded selection notification %d", version)
                return False
            self._delivered = version
            for callback in list(self._listeners):
                if self._delivered != version:
                    # A listener changed the selection; the newer value was delivered
                    break
                try:
                    callback(match)
                except Exception as exc:
                    logger.error("Selection listener error: %s", exc)
        return True
