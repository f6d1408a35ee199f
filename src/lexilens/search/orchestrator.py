"""Bounded fan-out of one keyword over priority-ordered dictionary sources.

A run starts R lanes on its own worker pool. Each lane queries one source,
hands the terms to the ResultMerger, then claims the next unstarted source
until the list is exhausted or its generation has been superseded.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from lexilens.backends.base import BaseDictionaryBackend
from lexilens.entities import Source
from lexilens.search.generation import GenerationGuard
from lexilens.search.merger import ResultMerger

logger = logging.getLogger(__name__)

# Default number of concurrent lanes
DEFAULT_MAX_WORKERS = 3


@contextmanager
def timed(label: str, level: int = logging.DEBUG) -> Iterator[None]:
    """Log the wall time of the enclosed block as a [TIMING] line."""
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "[TIMING] %s: %.2fms", label, (time.perf_counter() - started) * 1000)


@dataclass
class SearchOptions:
    """Options forwarded to every source query.

    Attributes:
        strict: Case-sensitive exact matching
        prefix_limit: Maximum prefix matches per source (opaque to the aggregator)
        phrase_limit: Maximum phrase matches per source (opaque to the aggregator)
        max_workers: Concurrency budget R, capped at the source count
    """
    strict: bool = False
    prefix_limit: int = 5
    phrase_limit: int = 10
    max_workers: int = DEFAULT_MAX_WORKERS


@dataclass
class SearchStats:
    """Statistics collected during a run.

    Attributes:
        sources_searched: Sources whose query completed (including failures)
        sources_failed: Sources whose query raised
        terms_merged: Terms handed to the merger while the run was current
        time_ms: Wall time until the last lane stopped
        errors: Error messages from failed sources
    """
    sources_searched: int = 0
    sources_failed: int = 0
    terms_merged: int = 0
    time_ms: float = 0
    errors: List[str] = field(default_factory=list)


class SearchRun:
    """Handle for one generation's fan-out.

    No completion signal is needed to read results, which are observable
    incrementally through the merger; the handle exists for callers that
    want to wait or inspect statistics.
    """

    def __init__(
        self,
        generation: int,
        keyword: str,
        sources: Sequence[Source],
        options: SearchOptions,
    ) -> None:
        self.generation = generation
        self.keyword = keyword
        self.sources = list(sources)
        self.options = options
        self.stats = SearchStats()
        self.futures: List[Future] = []

        self._cursor = 0
        self._lock = threading.Lock()
        self._started = time.perf_counter()
        self._lanes_running = 0

    def claim(self) -> Optional[Source]:
        """Atomically claim the next unstarted source, or None when exhausted."""
        with self._lock:
            if self._cursor >= len(self.sources):
                return None
            source = self.sources[self._cursor]
            self._cursor += 1
            return source

    def record(self, terms: int = 0, error: Optional[str] = None) -> None:
        with self._lock:
            self.stats.sources_searched += 1
            self.stats.terms_merged += terms
            if error is not None:
                self.stats.sources_failed += 1
                self.stats.errors.append(error)

    def open_lanes(self, count: int) -> None:
        with self._lock:
            self._lanes_running = count

    def finish_lane(self) -> None:
        with self._lock:
            self.stats.time_ms = (time.perf_counter() - self._started) * 1000
            self._lanes_running -= 1
            last = self._lanes_running == 0
        if last:
            logger.debug("[TIMING] run[g%d %r]: %.2fms", self.generation, self.keyword, self.stats.time_ms)

    @property
    def settled(self) -> bool:
        """True once every lane has stopped."""
        return all(future.done() for future in self.futures)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every lane has stopped.

        Returns:
            True if the run settled within timeout
        """
        if not self.futures:
            return True
        _, not_done = wait_futures(self.futures, timeout=timeout)
        return not not_done


class SearchOrchestrator:
    """Drives the bounded, priority-ordered fan-out for each query.

    Every run gets a fresh generation id from the guard and its own pool of
    R worker threads. A lane whose source answers after a newer run has
    started drops the answer and stops chaining; in-flight backend calls are
    never aborted, so a slow stale lane only occupies its own run's pool.

    Example:
        orchestrator = SearchOrchestrator(backend, guard, merger)
        run = orchestrator.start("cat", sources)
        run.wait(timeout=5)
        print(merger.snapshot().exact)
    """

    def __init__(
        self,
        backend: BaseDictionaryBackend,
        guard: GenerationGuard,
        merger: ResultMerger,
    ) -> None:
        self.backend = backend
        self.guard = guard
        self.merger = merger
        self._runs: List[SearchRun] = []
        self._lock = threading.Lock()

    def start(
        self,
        keyword: str,
        sources: Sequence[Source],
        options: Optional[SearchOptions] = None,
    ) -> SearchRun:
        """Start a new generation for keyword without blocking.

        Args:
            keyword: Trimmed, non-empty keyword
            sources: Configured sources; unavailable ones are skipped
            options: Query options (uses defaults if None)

        Returns:
            SearchRun handle for the new generation
        """
        options = options or SearchOptions()
        active = sorted(
            (s for s in sources if s.available),
            key=lambda s: s.priority,
        )

        generation = self.guard.next()
        self.merger.reset(generation, keyword, (s.priority for s in active))
        run = SearchRun(generation, keyword, active, options)

        lanes = min(max(options.max_workers, 1), len(active))
        if lanes == 0:
            logger.debug("Generation %d: no available sources", generation)
            return run

        logger.debug(
            "Generation %d: searching %r across %d sources with %d lanes",
            generation, keyword, len(active), lanes,
        )
        executor = ThreadPoolExecutor(
            max_workers=lanes,
            thread_name_prefix=f"lexilens-g{generation}",
        )
        run.open_lanes(lanes)
        # Claim the initial sources here so lane k always starts on source k
        for _ in range(lanes):
            first = run.claim()
            run.futures.append(executor.submit(self._run_lane, run, first))
        # Lanes finish on their own; the pool is not reused across runs
        executor.shutdown(wait=False)
        with self._lock:
            self._runs = [r for r in self._runs if not r.settled]
            self._runs.append(run)
        return run

    def _run_lane(self, run: SearchRun, source: Optional[Source]) -> None:
        try:
            while source is not None:
                terms, error = self._query_source(run, source)
                if not self.guard.is_current(run.generation):
                    logger.debug(
                        "Generation %d superseded; lane stops after %s",
                        run.generation, source.name,
                    )
                    return
                merged = self.merger.apply(
                    run.generation,
                    source.priority,
                    source.id,
                    source.name,
                    terms,
                    strict=run.options.strict,
                )
                run.record(merged, error)
                source = run.claim()
        finally:
            run.finish_lane()

    def _query_source(self, run: SearchRun, source: Source) -> tuple[List[str], Optional[str]]:
        """Query one source, converting any failure into an empty result."""
        try:
            with timed(f"source_query[{source.name}]"):
                terms = self.backend.search(
                    source.id,
                    run.keyword,
                    strict=run.options.strict,
                    prefix_limit=run.options.prefix_limit,
                    phrase_limit=run.options.phrase_limit,
                )
            return list(terms or []), None
        except Exception as exc:
            error_msg = f"Search failed for {source.name}: {exc}"
            logger.error(error_msg)
            return [], error_msg

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        """Block until every unsettled run has stopped.

        Returns:
            True if all runs settled within timeout
        """
        with self._lock:
            runs, self._runs = self._runs, []
        deadline = None if timeout is None else time.monotonic() + timeout
        settled = True
        for run in runs:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            settled = run.wait(remaining) and settled
        return settled
