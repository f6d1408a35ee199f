"""Tests for priority-ordered merging and auto-selection."""

import itertools

import pytest

from conftest import terms

from lexilens.entities import MatchTier
from lexilens.search.generation import GenerationGuard
from lexilens.search.merger import ResultMerger
from lexilens.search.selection import SelectionPolicy

# (priority, source_id, name, terms) for the A/B/C "cat" example
ANSWERS = {
    "A": (0, 1, "A", ["cat"]),
    "B": (1, 2, "B", ["Cat"]),
    "C": (2, 3, "C", ["cat"]),
}


@pytest.fixture
def guard():
    return GenerationGuard()


@pytest.fixture
def merger(guard):
    m = ResultMerger(guard)
    m.reset(guard.next(), "cat", (0, 1, 2))
    return m


def _apply(merger, name, strict=False):
    priority, source_id, source_name, words = ANSWERS[name]
    return merger.apply(merger.generation, priority, source_id, source_name, words, strict=strict)


class TestPriorityOrdering:
    """Merged order depends on source priority, not completion order."""

    def test_late_high_priority_source_inserted_first(self, merger):
        """B, then C, then A answering still yields A, B, C."""
        for name in ("B", "C", "A"):
            _apply(merger, name)

        assert terms(merger.snapshot().exact) == [("A", "cat"), ("B", "Cat"), ("C", "cat")]
        assert merger.snapshot().fuzzy == []

    @pytest.mark.parametrize("order", list(itertools.permutations("ABC")))
    def test_every_completion_order_gives_same_result(self, merger, order):
        """All interleavings produce the same priority-sorted tiers."""
        for name in order:
            _apply(merger, name)

        exact = merger.snapshot().exact
        assert terms(exact) == [("A", "cat"), ("B", "Cat"), ("C", "cat")]
        assert [m.priority for m in exact] == sorted(m.priority for m in exact)

    def test_strict_mode_classifies_case_difference_as_fuzzy(self, merger):
        """Under strict matching "Cat" is not an exact match for "cat"."""
        for name in ("B", "C", "A"):
            _apply(merger, name, strict=True)

        result = merger.snapshot()
        assert terms(result.exact) == [("A", "cat"), ("C", "cat")]
        assert terms(result.fuzzy) == [("B", "Cat")]
        assert result.fuzzy[0].tier is MatchTier.FUZZY

    def test_same_source_keeps_its_own_order(self, merger):
        """Terms from one source stay in the order the source ranked them."""
        g = merger.generation
        merger.apply(g, 2, 3, "C", ["catalog", "cattle"])
        merger.apply(g, 0, 1, "A", ["category", "cat", "catch"])
        merger.apply(g, 1, 2, "B", ["caterpillar", "CAT"])

        result = merger.snapshot()
        assert terms(result.exact) == [("A", "cat"), ("B", "CAT")]
        assert terms(result.fuzzy) == [
            ("A", "category"),
            ("A", "catch"),
            ("B", "caterpillar"),
            ("C", "catalog"),
            ("C", "cattle"),
        ]

    def test_same_term_from_two_sources_is_two_matches(self, merger):
        """Identical terms are distinct when their sources differ."""
        _apply(merger, "A")
        _apply(merger, "C")

        exact = merger.snapshot().exact
        assert len(exact) == 2
        assert exact[0].key != exact[1].key

    def test_empty_answer_inserts_nothing(self, merger):
        assert merger.apply(merger.generation, 0, 1, "A", []) == 0
        assert merger.snapshot().is_empty()


class TestStaleGeneration:
    """apply() for a superseded generation is a no-op."""

    def test_stale_apply_is_dropped(self, guard, merger):
        old = merger.generation
        merger.reset(guard.next(), "dog", (0,))

        assert merger.apply(old, 0, 1, "A", ["cat"]) == 0
        assert merger.snapshot().is_empty()

    def test_apply_dropped_when_guard_advanced_before_reset(self, guard, merger):
        """A generation issued but not yet reset still invalidates the old one."""
        old = merger.generation
        guard.next()

        assert merger.apply(old, 0, 1, "A", ["cat"]) == 0

    def test_reset_clears_results_and_selection(self, guard, merger):
        _apply(merger, "A")
        assert merger.selection.current is not None

        merger.reset(guard.next(), "dog")

        assert merger.snapshot().is_empty()
        assert merger.selection.current is None
        assert merger.keyword == "dog"


class TestAutoSelect:
    """First exact match is selected once, never overridden by later ones."""

    def test_first_exact_match_is_selected(self, merger):
        _apply(merger, "B")

        current = merger.selection.current
        assert current is not None
        assert (current.source_name, current.term) == ("B", "Cat")

    def test_later_higher_priority_exact_does_not_override(self, merger):
        """Selection stays on B even after A moves to exact[0]."""
        _apply(merger, "B")
        _apply(merger, "A")

        assert merger.snapshot().exact[0].source_name == "A"
        assert merger.selection.current.source_name == "B"

    def test_fuzzy_only_answers_select_nothing(self, merger):
        merger.apply(merger.generation, 0, 1, "A", ["category", "catch"])

        assert merger.selection.current is None

    def test_explicit_selection_disables_auto_select(self, merger):
        g = merger.generation
        merger.apply(g, 0, 1, "A", ["category"])
        fuzzy = merger.snapshot().fuzzy[0]
        assert merger.selection.select(fuzzy)

        _apply(merger, "B")

        assert merger.selection.current == fuzzy


class TestAutoSelectWaitingForPriority:
    """Optional mode: wait until higher-priority sources have answered."""

    @pytest.fixture
    def waiting_merger(self, guard):
        m = ResultMerger(guard, SelectionPolicy(), auto_select_waits_for_priority=True)
        m.reset(guard.next(), "cat", (0, 1, 2))
        return m

    def test_defers_while_higher_priority_source_pending(self, waiting_merger):
        _apply(waiting_merger, "B")

        assert waiting_merger.selection.current is None

    def test_selects_once_higher_priority_source_settles_without_exact(self, waiting_merger):
        _apply(waiting_merger, "B")
        waiting_merger.apply(waiting_merger.generation, 0, 1, "A", ["category"])

        assert waiting_merger.selection.current.source_name == "B"

    def test_selects_higher_priority_exact_when_it_arrives(self, waiting_merger):
        _apply(waiting_merger, "B")
        _apply(waiting_merger, "A")

        assert waiting_merger.selection.current.source_name == "A"

    def test_unavailable_priorities_are_not_waited_for(self, guard):
        """Gaps in priorities (unavailable sources) do not block selection."""
        m = ResultMerger(guard, auto_select_waits_for_priority=True)
        m.reset(guard.next(), "cat", (0, 2))
        m.apply(m.generation, 0, 1, "A", [])
        m.apply(m.generation, 2, 3, "C", ["cat"])

        assert m.selection.current.source_name == "C"
