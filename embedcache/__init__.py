"""Shared embedding cache service package.

Layout:
- ``api``: FastAPI route handlers and request/response models.
- ``cache``: bounded in-memory ``EmbeddingCache`` and cache-key derivation.
- ``encoders``: ``ModelGateway`` that loads the model and generates vectors.
- ``orchestration``: ``EmbeddingOrchestrator`` deciding cache vs. model.
- ``common``: configuration, logging and metrics helpers.

Import convenience:
- from embedcache.orchestration.orchestrator import EmbeddingOrchestrator
"""

__version__ = "0.1.0"
