"""Shared fixtures: a deterministic fake model and gateways built around it."""

import hashlib
import threading
import time

import numpy as np
import pytest
import pytest_asyncio

from embedcache.cache.embedding_cache import EmbeddingCache
from embedcache.common.config import EmbeddingCacheConfig
from embedcache.encoders.model_gateway import ModelGateway
from embedcache.orchestration.orchestrator import EmbeddingOrchestrator


class FakeModel:
    """Stands in for a SentenceTransformer.

    Vectors are derived from a hash of the text so they are deterministic.
    ``delays`` maps a text to seconds of simulated latency; texts in
    ``fail_on`` raise.
    """

    def __init__(self, dimensions=8, delays=None, fail_on=None):
        self.dimensions = dimensions
        self.delays = dict(delays or {})
        self.fail_on = set(fail_on or ())
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get_sentence_embedding_dimension(self):
        return self.dimensions

    def encode(self, text, normalize_embeddings=False):
        with self._lock:
            self.calls.append(text)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(self.delays.get(text, 0))
            if text in self.fail_on:
                raise RuntimeError(f"model failed on {text!r}")
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            return np.frombuffer(digest[:self.dimensions], dtype=np.uint8).astype(np.float32) / 255
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def config(monkeypatch):
    for name in ("PORT", "MAX_CACHE_SIZE", "EMBEDDING_MODEL", "LOG_LEVEL", "LOG_FORMAT", "MAX_REQUEST_BYTES"):
        monkeypatch.delenv(name, raising=False)
    return EmbeddingCacheConfig(max_cache_size=100, log_format="console")


@pytest.fixture
def gateway(config, fake_model):
    """An uninitialized gateway wired to ``fake_model``."""
    return ModelGateway(config, loader=lambda model_name, device: fake_model)


@pytest_asyncio.fixture
async def ready_gateway(gateway):
    await gateway.initialize()
    return gateway


@pytest_asyncio.fixture
async def orchestrator(config, ready_gateway):
    return EmbeddingOrchestrator(EmbeddingCache(config.max_cache_size), ready_gateway)
