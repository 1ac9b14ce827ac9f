"""API routes for the embedding cache service."""

import time
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
import structlog

from ..common.logging import log_performance
from ..common.metrics import MetricsCollector
from ..encoders.model_gateway import ModelGateway
from ..errors import EmbeddingCacheError
from ..orchestration.orchestrator import EmbeddingOrchestrator

logger = structlog.get_logger("embedcache.api")

router = APIRouter()


class EmbedRequest(BaseModel):
    """Request model for the single embedding endpoint.

    ``text`` is validated by the orchestrator so that a not-ready model is
    reported before a malformed payload.
    """
    text: Optional[Any] = Field(None, description="Text to embed")


class EmbedResponse(BaseModel):
    """Response model for the single embedding endpoint."""
    embedding: List[float] = Field(..., description="Generated embedding")
    dimensions: int = Field(..., description="Embedding dimensionality")


class BatchEmbedRequest(BaseModel):
    """Request model for the batch embedding endpoint."""
    texts: Optional[Any] = Field(None, description="Texts to embed")


class BatchEmbedResponse(BaseModel):
    """Response model for the batch embedding endpoint."""
    embeddings: List[List[float]] = Field(..., description="Embeddings in input order")
    count: int = Field(..., description="Number of embeddings")
    dimensions: int = Field(..., description="Dimensionality of the first embedding, 0 when empty")


class StatsModel(BaseModel):
    """Request and cache counters."""
    model_config = ConfigDict(populate_by_name=True)

    requests: int
    cache_hits: int = Field(..., alias="cacheHits")
    cache_size: int = Field(..., alias="cacheSize")
    hit_rate: str = Field(..., alias="hitRate")


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""
    status: str
    model: str
    ready: bool
    dimensions: int
    stats: StatsModel


class CacheClearResponse(BaseModel):
    """Response model for the cache clear endpoint."""
    status: str
    cleared: int = Field(..., description="Number of entries removed")


def get_orchestrator(request: Request) -> EmbeddingOrchestrator:
    """Get the orchestrator from application state."""
    return request.app.state.orchestrator


def get_gateway(request: Request) -> ModelGateway:
    """Get the model gateway from application state."""
    return request.app.state.gateway


def get_metrics(request: Request) -> MetricsCollector:
    """Get metrics collector from application state."""
    return request.app.state.metrics_collector


@router.post("/embed", response_model=EmbedResponse)
async def embed(
    request: Optional[EmbedRequest] = None,
    orchestrator: EmbeddingOrchestrator = Depends(get_orchestrator),
    metrics_collector: MetricsCollector = Depends(get_metrics)
):
    """Generate the embedding for a single text."""
    start_time = time.time()

    try:
        embedding = await orchestrator.resolve_one(request.text if request else None)
    except EmbeddingCacheError as e:
        logger.error("Embedding failed", error=e.message, status=e.status_code)
        raise

    duration = time.time() - start_time
    metrics_collector.record_embedding("single", 1, duration)
    log_performance(
        "embed",
        duration * 1000,
        dimensions=len(embedding),
        cache_size=orchestrator.cache.size()
    )

    return EmbedResponse(embedding=embedding, dimensions=len(embedding))


@router.post("/embed/batch", response_model=BatchEmbedResponse)
async def embed_batch(
    request: Optional[BatchEmbedRequest] = None,
    orchestrator: EmbeddingOrchestrator = Depends(get_orchestrator),
    metrics_collector: MetricsCollector = Depends(get_metrics)
):
    """Generate embeddings for a batch of texts, in input order."""
    start_time = time.time()

    try:
        embeddings = await orchestrator.resolve_batch(request.texts if request else None)
    except EmbeddingCacheError as e:
        logger.error("Batch embedding failed", error=e.message, status=e.status_code)
        raise

    duration = time.time() - start_time
    count = len(embeddings)
    metrics_collector.record_embedding("batch", count, duration)
    log_performance(
        "embed_batch",
        duration * 1000,
        count=count,
        avg_ms=round(duration * 1000 / count, 1) if count else 0.0,
        cache_size=orchestrator.cache.size()
    )

    return BatchEmbedResponse(
        embeddings=embeddings,
        count=count,
        dimensions=len(embeddings[0]) if embeddings else 0
    )


@router.get("/health", response_model=HealthResponse)
async def health(
    orchestrator: EmbeddingOrchestrator = Depends(get_orchestrator),
    gateway: ModelGateway = Depends(get_gateway)
):
    """Report readiness, dimensionality and cache statistics."""
    stats = orchestrator.stats()
    return HealthResponse(
        status="ok",
        model=gateway.config.short_model_name,
        ready=gateway.is_ready,
        dimensions=gateway.dimensions,
        stats=StatsModel(
            requests=stats.requests,
            cache_hits=stats.cache_hits,
            cache_size=stats.cache_size,
            hit_rate=stats.hit_rate
        )
    )


@router.post("/cache/clear", response_model=CacheClearResponse)
async def clear_cache(
    orchestrator: EmbeddingOrchestrator = Depends(get_orchestrator)
):
    """Drop every cached embedding and reset statistics."""
    removed = orchestrator.clear_cache()
    return CacheClearResponse(status="cache cleared", cleared=removed)
