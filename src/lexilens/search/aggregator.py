"""Facade tying debouncing, fan-out, merging and selection together."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from lexilens.backends.base import BaseDictionaryBackend
from lexilens.entities import Match, Query, ResultSet, Source
from lexilens.search.debounce import DEFAULT_DEBOUNCE_MS, QueryDebouncer
from lexilens.search.generation import GenerationGuard
from lexilens.search.merger import ResultMerger
from lexilens.search.orchestrator import SearchOptions, SearchOrchestrator, SearchRun
from lexilens.search.selection import SelectionPolicy

if TYPE_CHECKING:
    from lexilens.config.models import Settings

logger = logging.getLogger(__name__)


class SearchAggregator:
    """Incremental multi-source search exposed to the UI layer.

    The UI calls search() on every keystroke and reads results/selection
    at any time; both are updated incrementally as sources answer. Nothing
    a source raises escapes this class.

    Example:
        with SearchAggregator(backend, settings.sources()) as aggregator:
            aggregator.search("cat")
            ...
            aggregator.select_next()
            print(aggregator.selection)
    """

    def __init__(
        self,
        backend: BaseDictionaryBackend,
        sources: Iterable[Source] = (),
        options: Optional[SearchOptions] = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        auto_select_waits_for_priority: bool = False,
    ) -> None:
        """Initialize the aggregator.

        Args:
            backend: Collaborator resolving keywords within one dictionary
            sources: Configured sources in priority order
            options: Options forwarded to every source query
            debounce_ms: Quiescent window before a keystroke becomes a query
            auto_select_waits_for_priority: Only auto-select once every
                higher-priority source has answered
        """
        self.options = options or SearchOptions()
        self.guard = GenerationGuard()
        self.selection_policy = SelectionPolicy()
        self.merger = ResultMerger(
            self.guard,
            self.selection_policy,
            auto_select_waits_for_priority=auto_select_waits_for_priority,
        )
        self.orchestrator = SearchOrchestrator(backend, self.guard, self.merger)
        self.debouncer = QueryDebouncer(self._on_trigger, debounce_ms)

        self._sources: List[Source] = list(sources)
        self._lock = threading.RLock()
        self._last: Optional[Tuple[str, Tuple[Source, ...]]] = None
        self._query: Optional[Query] = None
        self._run: Optional[SearchRun] = None

    @classmethod
    def from_settings(
        cls, settings: "Settings", backend: BaseDictionaryBackend
    ) -> "SearchAggregator":
        """Build an aggregator from loaded settings."""
        return cls(
            backend,
            settings.sources(),
            options=settings.search_options(),
            debounce_ms=settings.debounce_ms,
            auto_select_waits_for_priority=settings.auto_select_waits_for_priority,
        )

    # Input

    def search(self, keyword: str) -> None:
        """Debounced search; the query is issued after input goes quiet."""
        self.debouncer.notify(keyword)

    def _on_trigger(self, keyword: str) -> None:
        self.search_now(keyword)

    def search_now(self, keyword: str) -> Optional[SearchRun]:
        """Issue a query immediately, bypassing the debouncer.

        The keyword is trimmed. An unchanged keyword over an unchanged
        source set is not re-issued; use refresh() to force it.

        Returns:
            The run for keyword, or None for an empty keyword
        """
        keyword = keyword.strip()
        with self._lock:
            active = self._active_sources()
            signature = (keyword, tuple(active))
            if signature == self._last:
                logger.debug("Keyword %r unchanged, not re-issuing", keyword)
                return self._run
            self._last = signature
            return self._issue(keyword, active)

    def refresh(self) -> Optional[SearchRun]:
        """Re-issue the last keyword as a new generation."""
        with self._lock:
            if self._last is None:
                return None
            keyword = self._last[0]
            active = self._active_sources()
            self._last = (keyword, tuple(active))
            return self._issue(keyword, active)

    def set_sources(self, sources: Iterable[Source]) -> Optional[SearchRun]:
        """Replace the configured sources.

        Sources never join a running query; if the available set changed,
        the current keyword is re-issued as a new generation.
        """
        with self._lock:
            self._sources = list(sources)
            if self._last is None:
                return None
            keyword, previous = self._last
            active = self._active_sources()
            if tuple(active) == previous:
                return self._run
            self._last = (keyword, tuple(active))
            return self._issue(keyword, active)

    def _active_sources(self) -> List[Source]:
        return sorted(
            (s for s in self._sources if s.available),
            key=lambda s: s.priority,
        )

    def _issue(self, keyword: str, active: List[Source]) -> Optional[SearchRun]:
        if not keyword:
            # New generation so in-flight lanes of the previous query go stale
            generation = self.guard.next()
            self.merger.reset(generation, "")
            self._query = Query(keyword="", generation=generation)
            self._run = None
            logger.debug("Generation %d: empty keyword, results cleared", generation)
            return None

        self._run = self.orchestrator.start(keyword, active, self.options)
        self._query = Query(keyword=keyword, generation=self._run.generation)
        return self._run

    # Observable state

    @property
    def results(self) -> ResultSet:
        """Snapshot of the current exact/fuzzy tiers."""
        return self.merger.snapshot()

    @property
    def selection(self) -> Optional[Match]:
        return self.selection_policy.current

    @property
    def query(self) -> Optional[Query]:
        """The last issued query and its generation."""
        with self._lock:
            return self._query

    @property
    def sources(self) -> List[Source]:
        with self._lock:
            return list(self._sources)

    @property
    def last_run(self) -> Optional[SearchRun]:
        with self._lock:
            return self._run

    # Navigation

    def select(self, match: Match) -> bool:
        return self.selection_policy.select(match)

    def select_next(self) -> Optional[Match]:
        return self.selection_policy.next()

    def select_previous(self) -> Optional[Match]:
        return self.selection_policy.previous()

    # Lifecycle

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until all in-flight runs have stopped (mainly for tests)."""
        return self.orchestrator.wait_all(timeout)

    def close(self) -> None:
        """Cancel pending input and make in-flight lanes stale."""
        self.debouncer.cancel()
        self.guard.next()

    def __enter__(self) -> "SearchAggregator":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()
