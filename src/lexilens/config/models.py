"""Pydantic settings models for LexiLens."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from ..entities import Source
from ..search.orchestrator import SearchOptions


class DictItem(BaseModel):
    """One configured dictionary; list position is its priority."""

    id: int
    name: str
    available: bool = True

    model_config = {"extra": "allow"}


class Settings(BaseModel):
    """Root settings for the dictionary client.

    Example YAML:
        dict_dir: ~/dicts
        dicts:
          - {id: 1, name: Oxford, available: true}
          - {id: 2, name: Webster, available: true}
        prefix_limit: 5
        phrase_limit: 10
        server_url: ${LEXILENS_SERVER_URL:-http://localhost:19000}
    """

    dict_dir: str = ""
    dicts: List[DictItem] = Field(default_factory=list)
    cache_size: int = Field(default=100, ge=1)
    prefix_limit: int = Field(default=5, ge=0)
    phrase_limit: int = Field(default=10, ge=0)
    strict: bool = False

    # Aggregator tuning
    debounce_ms: int = Field(default=500, ge=0)
    max_concurrency: int = Field(default=3, ge=1)
    auto_select_waits_for_priority: bool = False

    # HTTP backend
    server_url: str = "http://localhost:19000"
    timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=2, ge=0)

    model_config = {"extra": "allow"}

    def sources(self) -> List[Source]:
        """Configured dictionaries as Sources, priority = list position."""
        return [
            Source(id=item.id, name=item.name, priority=idx, available=item.available)
            for idx, item in enumerate(self.dicts)
        ]

    def search_options(self) -> SearchOptions:
        return SearchOptions(
            strict=self.strict,
            prefix_limit=self.prefix_limit,
            phrase_limit=self.phrase_limit,
            max_workers=self.max_concurrency,
        )

    def get_dict(self, dict_id: int) -> DictItem:
        """Get a dictionary entry by id.

        Raises:
            ValueError: If no dictionary has that id
        """
        for item in self.dicts:
            if item.id == dict_id:
                return item
        raise ValueError(
            f"Dictionary '{dict_id}' not found in configuration. "
            f"Available dictionaries: {[item.id for item in self.dicts]}"
        )
