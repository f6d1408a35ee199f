"""Bounded LRU cache for per-dictionary static assets."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_CACHE_SIZE = 100


class StaticAssetCache(Generic[K, V]):
    """Thread-safe least-recently-used cache.

    Owned by whoever builds the search pipeline and injected at the backend
    boundary, e.g. to keep each dictionary's CSS/JS after the first lookup.
    Eviction drops the least recently read or written entry once capacity
    is exceeded.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            self._evict()

    def get_or_load(self, key: K, loader: Callable[[K], V]) -> V:
        """Return the cached value, loading and storing it on a miss.

        The loader runs outside the lock; concurrent misses for the same key
        may load twice, and the first stored value wins.
        """
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]

        value = loader(key)

        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]
            self._entries[key] = value
            self._evict()
            return value

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def resize(self, capacity: int) -> None:
        """Change capacity, evicting the oldest entries if needed."""
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        with self._lock:
            self._capacity = capacity
            self._evict()

    def _evict(self) -> None:
        while len(self._entries) > self._capacity:
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cached assets for %r", key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
