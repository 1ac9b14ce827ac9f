"""Tests for the embedding cache service.

Unit tests cover the cache, model gateway and orchestrator; ``test_api``
drives the FastAPI app end to end with a deterministic fake model, so no
model weights are needed.
"""
