"""Bounded key -> vector store with FIFO eviction and hit accounting.

Keys are the first ``CACHE_KEY_LENGTH`` characters of the input text. Texts
sharing that prefix share a cache entry; no case or whitespace normalization
is applied.

Eviction is by insertion order: when a new key arrives and the cache is full,
exactly one entry (the oldest inserted) is dropped. Overwriting an existing key
replaces its vector but keeps its place in the eviction queue, so this is FIFO
and not LRU.
"""

import threading
from collections import OrderedDict
from typing import List, Optional

import structlog

logger = structlog.get_logger("embedcache.cache")

CACHE_KEY_LENGTH = 300

Vector = List[float]


def make_cache_key(text: str) -> str:
    """Derive the cache key for ``text`` (its first 300 characters)."""
    return text[:CACHE_KEY_LENGTH]


class EmbeddingCache:
    """FIFO-evicting embedding cache.

    Parameters
    - capacity: maximum number of entries (must be >= 1)

    ``get`` counts hits; misses are not tracked here because a miss is only
    meaningful to the caller that goes on to generate the vector. All
    structural changes happen under a lock so eviction and insert are a single
    step even when called from worker threads.
    """

    def __init__(self, capacity: int = 5000):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, Vector]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Vector]:
        """Return the cached vector for ``key`` or ``None``; counts a hit."""
        with self._lock:
            vector = self._entries.get(key)
            if vector is not None:
                self._hits += 1
            return vector

    def put(self, key: str, vector: Vector) -> Optional[str]:
        """Store ``vector`` under ``key``.

        Returns the evicted key when the insert pushed the oldest entry out,
        otherwise ``None``.
        """
        evicted = None
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
            self._entries[key] = vector

        if evicted is not None:
            logger.debug("Evicted oldest cache entry", cache_size=len(self._entries))
        return evicted

    def clear(self) -> int:
        """Remove every entry and return how many were removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        return removed

    def reset_statistics(self) -> None:
        """Zero the hit and eviction counters."""
        with self._lock:
            self._hits = 0
            self._evictions = 0

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> List[str]:
        """Keys in eviction order (oldest first)."""
        with self._lock:
            return list(self._entries.keys())

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def evictions(self) -> int:
        return self._evictions
