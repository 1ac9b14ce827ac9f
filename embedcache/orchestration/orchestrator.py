"""Embedding orchestrator: decides when to call the model vs. serve from cache.

Single requests and every element of a batch follow the same path: derive the
cache key, return the cached vector on a hit, otherwise generate from the full
text, store under the key and return. Batch elements run concurrently on the
event loop; results are reassembled by input position.

Concurrency
- Cache reads and writes are synchronous, so no two cache mutations interleave
- Only the model call suspends; concurrent misses for the same text may both
  generate and both insert (no in-flight de-duplication)
- A failed element fails the whole batch; sibling generations are not
  cancelled and may still populate the cache
"""

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, List, Optional

import structlog

from ..cache.embedding_cache import EmbeddingCache, Vector, make_cache_key
from ..common.metrics import MetricsCollector
from ..encoders.model_gateway import ModelGateway
from ..errors import EmbeddingCacheError, GenerationFailure, InvalidInput, ModelNotReady

logger = structlog.get_logger("embedcache.orchestrator")


@dataclass(frozen=True)
class CacheStatistics:
    """Snapshot of request and cache counters."""

    requests: int
    cache_hits: int
    cache_size: int
    evictions: int

    @property
    def hit_rate(self) -> str:
        """Hit rate as a percentage string, e.g. ``"42.5%"``."""
        if self.requests <= 0:
            return "0%"
        return f"{self.cache_hits / self.requests * 100:.1f}%"


class EmbeddingOrchestrator:
    """Mediates between ``EmbeddingCache`` and ``ModelGateway``.

    Parameters
    - cache: the shared ``EmbeddingCache``
    - gateway: the ``ModelGateway`` used on cache misses
    - metrics: optional ``MetricsCollector`` mirroring cache activity

    Returned vectors are copies; mutating one never changes the cached entry.
    """

    def __init__(
        self,
        cache: EmbeddingCache,
        gateway: ModelGateway,
        metrics: Optional[MetricsCollector] = None
    ):
        self.cache = cache
        self.gateway = gateway
        self.metrics = metrics
        self._requests = 0

    def _ensure_ready(self) -> None:
        if not self.gateway.is_ready:
            raise ModelNotReady()

    @staticmethod
    def _validate_text(text: Any, field: str = "text") -> str:
        if not isinstance(text, str) or not text:
            raise InvalidInput(f'Missing "{field}" field')
        return text

    @staticmethod
    def _validate_texts(texts: Any) -> List[str]:
        if isinstance(texts, (str, bytes)) or not isinstance(texts, Sequence):
            raise InvalidInput('Missing "texts" array')
        for index, text in enumerate(texts):
            if not isinstance(text, str) or not text:
                raise InvalidInput(f"Invalid text at position {index}: expected a non-empty string")
        return list(texts)

    async def resolve_one(self, text: Any) -> Vector:
        """Return the embedding for ``text``, generating it on a cache miss.

        Raises ``ModelNotReady`` before the model has loaded, ``InvalidInput``
        for an empty or non-string ``text`` and ``GenerationFailure`` when the
        model raises.
        """
        self._ensure_ready()
        text = self._validate_text(text)

        self._requests += 1
        return await self._resolve(text)

    async def resolve_batch(self, texts: Any) -> List[Vector]:
        """Return embeddings for ``texts`` in input order.

        Each element is resolved independently and concurrently; latency is
        bounded by the slowest miss. An empty batch returns ``[]`` without
        touching the model.
        """
        self._ensure_ready()
        texts = self._validate_texts(texts)

        self._requests += len(texts)
        if not texts:
            return []

        return list(await asyncio.gather(*(self._resolve(text) for text in texts)))

    async def _resolve(self, text: str) -> Vector:
        key = make_cache_key(text)

        cached = self.cache.get(key)
        if cached is not None:
            if self.metrics:
                self.metrics.record_cache_hit()
            return list(cached)

        if self.metrics:
            self.metrics.record_cache_miss()

        start = time.time()
        try:
            vector = await self.gateway.embed(text)
        except EmbeddingCacheError:
            raise
        except Exception as e:
            if self.metrics:
                self.metrics.record_generation_failure()
            logger.error("Embedding generation failed", text_length=len(text), error=str(e))
            raise GenerationFailure(str(e) or e.__class__.__name__) from e

        evicted = self.cache.put(key, list(vector))
        if self.metrics:
            self.metrics.record_generation(time.time() - start)
            if evicted is not None:
                self.metrics.record_cache_eviction()
            self.metrics.set_cache_size(self.cache.size())

        return vector

    def clear_cache(self) -> int:
        """Empty the cache and zero every counter. Returns entries removed."""
        removed = self.cache.clear()
        self.cache.reset_statistics()
        self._requests = 0

        if self.metrics:
            self.metrics.set_cache_size(0)

        logger.info("Cache cleared", removed=removed)
        return removed

    def stats(self) -> CacheStatistics:
        """Return a snapshot of the current counters."""
        return CacheStatistics(
            requests=self._requests,
            cache_hits=self.cache.hits,
            cache_size=self.cache.size(),
            evictions=self.cache.evictions,
        )
