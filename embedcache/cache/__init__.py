"""Bounded in-memory embedding cache.

Exports ``EmbeddingCache`` and ``make_cache_key``. The cache is a plain data
structure with no I/O and no knowledge of the model.
"""

from .embedding_cache import CACHE_KEY_LENGTH, EmbeddingCache, make_cache_key

__all__ = ["CACHE_KEY_LENGTH", "EmbeddingCache", "make_cache_key"]
