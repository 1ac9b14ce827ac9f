"""Request orchestration between the cache and the model gateway."""

from .orchestrator import CacheStatistics, EmbeddingOrchestrator

__all__ = ["CacheStatistics", "EmbeddingOrchestrator"]
