"""Core data types shared by the search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class MatchTier(Enum):
    """Classification of a match relative to the query keyword."""
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class Source:
    """A dictionary source with a fixed priority ranking.

    Attributes:
        id: Backend identifier of the dictionary
        name: Display name
        priority: Position in the configured source list (0 = highest)
        available: Only available sources take part in a query
    """
    id: int
    name: str
    priority: int
    available: bool = True


@dataclass(frozen=True)
class Query:
    """A debounced keyword bound to the generation that owns it."""
    keyword: str
    generation: int


@dataclass(frozen=True)
class Match:
    """A single term returned by a source, classified into a tier."""
    source_id: int
    source_name: str
    term: str
    tier: MatchTier
    priority: int

    @property
    def key(self) -> Tuple[int, str]:
        """Identity used for navigation: the same term from two sources differs."""
        return (self.source_id, self.term)


def is_exact(term: str, keyword: str, strict: bool = False) -> bool:
    """Check whether a term matches the keyword exactly.

    Case-insensitive by default; strict mode requires identical strings.
    """
    if strict:
        return term == keyword
    return term.lower() == keyword.lower()


@dataclass
class ResultSet:
    """Exact and fuzzy match tiers for one generation.

    Within each tier matches are ordered by ascending source priority, and
    matches from one source keep the order that source returned them in.
    """
    exact: List[Match] = field(default_factory=list)
    fuzzy: List[Match] = field(default_factory=list)

    def all(self) -> List[Match]:
        """Concatenation of both tiers, exact first."""
        return self.exact + self.fuzzy

    def tier(self, tier: MatchTier) -> List[Match]:
        return self.exact if tier is MatchTier.EXACT else self.fuzzy

    def index_of(self, match: Match) -> int:
        """Position of match in all(), or -1 if absent."""
        key = match.key
        for idx, item in enumerate(self.all()):
            if item.key == key:
                return idx
        return -1

    def is_empty(self) -> bool:
        return not self.exact and not self.fuzzy

    def copy(self) -> "ResultSet":
        return ResultSet(exact=list(self.exact), fuzzy=list(self.fuzzy))

    def __len__(self) -> int:
        return len(self.exact) + len(self.fuzzy)


@dataclass
class Definition:
    """Loaded definition content for a selected match."""
    match: Match
    content: Optional[str]
    css: str = ""
    js: str = ""
