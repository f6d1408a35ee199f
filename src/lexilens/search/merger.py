"""Priority-aware incremental merge of per-source term lists."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set

from lexilens.entities import Match, MatchTier, ResultSet, is_exact
from lexilens.search.generation import GenerationGuard
from lexilens.search.selection import SelectionPolicy

logger = logging.getLogger(__name__)


def _insert_position(tier: List[Match], priority: int) -> int:
    """First index whose entry has a strictly larger priority (stable insert)."""
    for idx, item in enumerate(tier):
        if item.priority > priority:
            return idx
    return len(tier)


class ResultMerger:
    """Accumulates exact and fuzzy matches as sources answer.

    Matches are positionally inserted by source priority, so the final
    ResultSet only depends on priorities and each source's own ordering,
    never on which source answered first. A lower-priority source that
    answers early is pushed back when a higher-priority one arrives.

    All mutation happens under the SelectionPolicy lock; lanes running on
    worker threads may call apply() concurrently.

    Attributes:
        selection: Policy notified to auto-select after exact inserts
        auto_select_waits_for_priority: Defer auto-selection until every
            higher-priority source has settled
    """

    def __init__(
        self,
        guard: GenerationGuard,
        selection: Optional[SelectionPolicy] = None,
        auto_select_waits_for_priority: bool = False,
    ) -> None:
        self._guard = guard
        self.selection = selection or SelectionPolicy()
        self.auto_select_waits_for_priority = auto_select_waits_for_priority
        self._lock = self.selection.lock

        self._results = ResultSet()
        self._generation: Optional[int] = None
        self._keyword = ""
        self._settled: Set[int] = set()
        self._participants: Set[int] = set()

    @property
    def generation(self) -> Optional[int]:
        with self._lock:
            return self._generation

    @property
    def keyword(self) -> str:
        with self._lock:
            return self._keyword

    def reset(
        self,
        generation: int,
        keyword: str,
        priorities: Iterable[int] = (),
    ) -> None:
        """Start an empty ResultSet for a new generation.

        Args:
            generation: Generation that now owns the ResultSet
            keyword: Keyword matches are classified against
            priorities: Priorities of the sources taking part in the query
        """
        results = ResultSet()
        with self._lock:
            self._results = results
            self._generation = generation
            self._keyword = keyword
            self._settled = set()
            self._participants = set(priorities)
            version = self.selection.bind(results, notify=False)
        if version:
            self.selection.publish(None, version)

    def snapshot(self) -> ResultSet:
        """Copy of the active ResultSet, safe to read from any thread."""
        with self._lock:
            return self._results.copy()

    def apply(
        self,
        generation: int,
        source_priority: int,
        source_id: int,
        source_name: str,
        terms: Sequence[str],
        strict: bool = False,
    ) -> int:
        """Merge one source's terms into the active ResultSet.

        Args:
            generation: Generation the terms were requested under
            source_priority: Priority of the answering source
            source_id: Backend id of the answering source
            source_name: Display name of the answering source
            terms: Terms in the order the source ranked them
            strict: Require identical strings for an exact match

        Returns:
            Number of matches inserted (0 when the generation is stale)
        """
        inserted_exact = False
        with self._lock:
            if generation != self._generation or not self._guard.is_current(generation):
                logger.debug(
                    "Dropping %d terms from %s: generation %d is stale",
                    len(terms), source_name, generation,
                )
                return 0

            keyword = self._keyword
            # Next slot per tier for this call, keeps the source's own order
            next_slot = {MatchTier.EXACT: -1, MatchTier.FUZZY: -1}
            for term in terms:
                tier = MatchTier.EXACT if is_exact(term, keyword, strict) else MatchTier.FUZZY
                match = Match(
                    source_id=source_id,
                    source_name=source_name,
                    term=term,
                    tier=tier,
                    priority=source_priority,
                )
                target = self._results.tier(tier)
                slot = next_slot[tier]
                if slot < 0:
                    slot = _insert_position(target, source_priority)
                target.insert(slot, match)
                next_slot[tier] = slot + 1
                if tier is MatchTier.EXACT:
                    inserted_exact = True

            self._settled.add(source_priority)
            should_check = self._auto_select_ready(inserted_exact)

        if should_check:
            self.selection.auto_select_if_empty()
        return len(terms)

    def _auto_select_ready(self, inserted_exact: bool) -> bool:
        if not self.auto_select_waits_for_priority:
            return inserted_exact
        if not self._results.exact:
            return False
        # Every source ranked above the current best exact match must have
        # answered before it can be picked.
        head = self._results.exact[0].priority
        return all(p in self._settled for p in self._participants if p < head)
