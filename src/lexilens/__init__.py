"""LexiLens: incremental multi-source dictionary search."""

from .entities import Definition, Match, MatchTier, Query, ResultSet, Source
from .errors import BackendError, ConfigError, LexiLensError, UnknownOperationError
from .search import SearchAggregator, SearchOptions

__version__ = "0.1.0"

__all__ = [
    "BackendError",
    "ConfigError",
    "Definition",
    "LexiLensError",
    "Match",
    "MatchTier",
    "Query",
    "ResultSet",
    "SearchAggregator",
    "SearchOptions",
    "Source",
    "UnknownOperationError",
]
