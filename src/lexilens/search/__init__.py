"""Incremental multi-source search: debounce, fan-out, merge, selection."""

from .aggregator import SearchAggregator
from .debounce import QueryDebouncer
from .generation import GenerationGuard
from .merger import ResultMerger
from .orchestrator import SearchOptions, SearchOrchestrator, SearchRun, SearchStats
from .selection import SelectionPolicy

__all__ = [
    "GenerationGuard",
    "QueryDebouncer",
    "ResultMerger",
    "SearchAggregator",
    "SearchOptions",
    "SearchOrchestrator",
    "SearchRun",
    "SearchStats",
    "SelectionPolicy",
]
