"""Base class for dictionary backends.

Defines the interface the search pipeline uses to reach dictionary storage.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple


class BaseDictionaryBackend(ABC):
    """Base class for all dictionary backends.

    A backend resolves keywords within a single dictionary; ranking inside
    a dictionary is the backend's job, merging across dictionaries is not.
    Methods may block and may raise; the orchestrator runs them on worker
    threads and treats failures as empty results.
    """

    @abstractmethod
    def search(
        self,
        source_id: int,
        keyword: str,
        *,
        strict: bool = False,
        prefix_limit: int = 5,
        phrase_limit: int = 10,
    ) -> List[str]:
        """Return ranked terms matching keyword in one dictionary.

        Args:
            source_id: Dictionary to search
            keyword: Trimmed, non-empty keyword
            strict: Case-sensitive matching
            prefix_limit: Maximum prefix matches
            phrase_limit: Maximum phrase matches

        Returns:
            Terms in the dictionary's own ranking order.
        """
        ...

    @abstractmethod
    def search_word(self, source_id: int, term: str) -> Optional[str]:
        """Return the definition content of a term, or None if missing."""
        ...

    def get_static_files(self, source_id: int) -> Optional[Tuple[str, str]]:
        """Return the dictionary's (css, js) assets, if any."""
        return None

    def search_resource(self, source_id: int, name: str) -> Optional[bytes]:
        """Return a binary resource referenced by a definition, if any."""
        return None

    def close(self) -> None:
        """Release transport resources."""
        return None
