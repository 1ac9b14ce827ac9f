"""Model gateway: readiness and embedding generation.

Wraps the embedding model behind one operation, ``embed(text)``. The model is
loaded once by ``initialize()``; until that completes every ``embed`` call is
rejected with ``ModelNotReady``. Encoding runs on a worker thread so the event
loop keeps serving cache hits while a generation is in flight.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, List, Optional

import numpy as np
import structlog

from ..common.config import EmbeddingCacheConfig
from ..errors import ModelNotReady

logger = structlog.get_logger("embedcache.model_gateway")

ModelLoader = Callable[[str, str], Any]


class ModelState(str, Enum):
    """Lifecycle of the model. ``READY`` and ``FAILED`` are terminal."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def _default_loader(model_name: str, device_preference: str) -> Any:
    from .sentence_transformer import load_sentence_transformer

    return load_sentence_transformer(model_name, device_preference)


class ModelGateway:
    """Owns the embedding model and its readiness flag.

    Notes
    - ``loader(model_name, device_preference)`` must return an object with
      ``encode(text, normalize_embeddings=True)`` and
      ``get_sentence_embedding_dimension()``
    - The gateway is never reset: once ``READY`` (or ``FAILED``) it stays so
    """

    def __init__(self, config: EmbeddingCacheConfig, loader: Optional[ModelLoader] = None):
        """Create a model gateway.

        Parameters
        - config: ``EmbeddingCacheConfig`` with model name and device preference
        - loader: optional model factory; defaults to sentence-transformers
        """
        self.config = config
        self.model_name = config.embedding_model
        self.state = ModelState.UNINITIALIZED
        self.load_seconds: Optional[float] = None
        self._loader = loader or _default_loader
        self._model: Any = None
        self._dimensions: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.state is ModelState.READY

    @property
    def dimensions(self) -> int:
        """Vector dimensionality reported by the model, or the configured one."""
        if self._dimensions is not None:
            return self._dimensions
        return self.config.embedding_dimension

    async def initialize(self) -> None:
        """Load the model.

        Load failures are logged and re-raised; the gateway then stays
        ``FAILED`` and never serves requests.
        """
        if self.state is not ModelState.UNINITIALIZED:
            raise RuntimeError(f"Model gateway already initialized (state={self.state.value})")

        self.state = ModelState.LOADING
        logger.info("Loading embedding model", model_name=self.model_name)
        start = time.time()

        try:
            model = await asyncio.to_thread(
                self._loader, self.model_name, self.config.device_preference
            )
            dimensions = model.get_sentence_embedding_dimension()
        except Exception as e:
            self.state = ModelState.FAILED
            logger.error("Failed to load embedding model", model_name=self.model_name, error=str(e))
            raise

        self._model = model
        if dimensions:
            self._dimensions = int(dimensions)
        self.load_seconds = time.time() - start
        self.state = ModelState.READY

        logger.info(
            "Model loaded",
            model_name=self.model_name,
            dimensions=self.dimensions,
            elapsed_seconds=round(self.load_seconds, 2)
        )

    async def embed(self, text: str) -> List[float]:
        """Generate a mean-pooled, normalized embedding for the full ``text``."""
        if not self.is_ready:
            raise ModelNotReady()

        output = await asyncio.to_thread(self._encode, text)
        return np.asarray(output, dtype=np.float32).reshape(-1).tolist()

    def _encode(self, text: str) -> Any:
        return self._model.encode(text, normalize_embeddings=True)

    def info(self) -> dict:
        """Describe the loaded model for introspection endpoints."""
        return {
            "name": self.model_name,
            "state": self.state.value,
            "dimension": self.dimensions,
            "load_seconds": self.load_seconds,
        }
