"""Loads the definition of the currently selected match."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Optional, Tuple

from .backends.base import BaseDictionaryBackend
from .cache import StaticAssetCache
from .entities import Definition, Match
from .search.generation import GenerationGuard

if TYPE_CHECKING:
    from .config.models import Settings

logger = logging.getLogger(__name__)

StaticFiles = Tuple[str, str]


class DefinitionLoader:
    """Fetches definition content whenever the selection changes.

    Each selection change supersedes the previous fetch, and only the latest
    fetch reaches on_loaded. Dictionary CSS/JS is fetched once per source
    and kept in the injected cache.

    Example:
        loader = DefinitionLoader(backend, on_loaded=render)
        aggregator.selection_policy.add_listener(loader.on_selection_changed)
    """

    def __init__(
        self,
        backend: BaseDictionaryBackend,
        on_loaded: Callable[[Definition], None],
        cache: Optional[StaticAssetCache[int, StaticFiles]] = None,
        max_workers: int = 2,
    ) -> None:
        self.backend = backend
        self.on_loaded = on_loaded
        self.cache = cache if cache is not None else StaticAssetCache()
        self._guard = GenerationGuard()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="lexilens-definition",
        )
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        backend: BaseDictionaryBackend,
        on_loaded: Callable[[Definition], None],
    ) -> "DefinitionLoader":
        """Build a loader whose asset cache holds settings.cache_size dictionaries."""
        return cls(backend, on_loaded, cache=StaticAssetCache(settings.cache_size))

    def on_selection_changed(self, match: Optional[Match]) -> Optional[Future]:
        """Selection listener: start loading match, superseding older loads."""
        token = self._guard.next()
        if match is None:
            return None
        with self._lock:
            if self._closed:
                return None
            return self._executor.submit(self._load, token, match)

    def _load(self, token: int, match: Match) -> Optional[Definition]:
        try:
            content = self.backend.search_word(match.source_id, match.term)
        except Exception as exc:
            logger.error("Failed to load definition of %r from %s: %s",
                         match.term, match.source_name, exc)
            return None
        if not self._guard.is_current(token):
            logger.debug("Definition of %r superseded", match.term)
            return None

        css, js = self._static_files(match.source_id)
        if not self._guard.is_current(token):
            return None

        definition = Definition(match=match, content=content, css=css, js=js)
        try:
            self.on_loaded(definition)
        except Exception as exc:
            logger.error("Error in on_loaded callback: %s", exc)
        return definition

    def _static_files(self, source_id: int) -> StaticFiles:
        def load(sid: int) -> StaticFiles:
            files = self.backend.get_static_files(sid)
            return files if files else ("", "")

        try:
            return self.cache.get_or_load(source_id, load)
        except Exception as exc:
            logger.warning("Failed to load static files for source %d: %s", source_id, exc)
            return ("", "")

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._guard.next()
        self._executor.shutdown(wait=False)
