"""Embedding cache service main application."""

import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from . import __version__
from .api.routes import router as api_router
from .cache.embedding_cache import EmbeddingCache
from .common.config import DEFAULT_MAX_REQUEST_BYTES, EmbeddingCacheConfig
from .common.logging import configure_logging
from .common.metrics import MetricsCollector
from .encoders.model_gateway import ModelGateway
from .errors import EmbeddingCacheError
from .orchestration.orchestrator import EmbeddingOrchestrator

SERVICE_NAME = "embedding-cache"

logger = structlog.get_logger("embedcache.main")


def create_app(
    config: Optional[EmbeddingCacheConfig] = None,
    gateway: Optional[ModelGateway] = None
) -> FastAPI:
    """Build the FastAPI application.

    Parameters
    - config: settings; read from the environment when omitted
    - gateway: an uninitialized ``ModelGateway``; built from ``config`` when
      omitted (tests pass one with a fake model loader)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        settings = config or EmbeddingCacheConfig()
        configure_logging(SERVICE_NAME, settings.log_level, settings.log_format)
        app.state.config = settings
        app.state.startup_time = time.time()

        logger.info("Starting embedding cache service")

        app.state.metrics_collector = MetricsCollector(SERVICE_NAME)
        app.state.cache = EmbeddingCache(settings.max_cache_size)
        app.state.gateway = gateway or ModelGateway(settings)
        app.state.orchestrator = EmbeddingOrchestrator(
            app.state.cache,
            app.state.gateway,
            app.state.metrics_collector
        )

        # Load failures propagate so the server never starts accepting requests
        await app.state.gateway.initialize()

        logger.info(
            "Embedding cache service started successfully",
            port=settings.port,
            model=settings.embedding_model,
            dimensions=app.state.gateway.dimensions,
            max_cache_size=settings.max_cache_size
        )

        yield

        # Shutdown
        stats = app.state.orchestrator.stats()
        logger.info(
            "Embedding cache service shutdown complete",
            requests=stats.requests,
            cache_hits=stats.cache_hits,
            cache_size=stats.cache_size
        )

    app = FastAPI(
        title="Embedding Cache Service",
        description="Shared embedding generation with a bounded in-memory cache",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.exception_handler(EmbeddingCacheError)
    async def embedding_error_handler(request: Request, exc: EmbeddingCacheError):
        """Render service errors as ``{"error": message}``."""
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors, reported like the other ones."""
        logger.warning("Rejected malformed request body", path=request.url.path)
        return JSONResponse(status_code=400, content={"error": "Request body must be a JSON object"})

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.middleware("http")
    async def limit_request_body(request: Request, call_next):
        """Reject bodies whose declared length exceeds ``max_request_bytes``."""
        settings = getattr(app.state, "config", None) or config
        limit = settings.max_request_bytes if settings else DEFAULT_MAX_REQUEST_BYTES

        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                return JSONResponse(status_code=400, content={"error": "Invalid Content-Length header"})
            if declared > limit:
                logger.warning(
                    "Rejected oversized request body",
                    path=request.url.path,
                    content_length=declared,
                    limit=limit
                )
                return JSONResponse(status_code=413, content={"error": "Request body too large"})

        return await call_next(request)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests."""
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.error("Unhandled error", path=request.url.path, error=str(e))
            status_code = 500
            response = JSONResponse(status_code=500, content={"error": str(e)})

        duration = time.time() - start_time

        if hasattr(app.state, "metrics_collector"):
            app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status=status_code,
                duration=duration
            )

        return response

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        if hasattr(app.state, "metrics_collector"):
            metrics_data = app.state.metrics_collector.get_metrics()
            return Response(content=metrics_data, media_type="text/plain")
        return Response(content="# No metrics available\n", media_type="text/plain")

    @app.get("/live")
    async def liveness():
        """Liveness probe. Returns quickly if process is responsive."""
        return {
            "status": "alive",
            "service": SERVICE_NAME,
            "uptime_seconds": time.time() - getattr(app.state, "startup_time", time.time())
        }

    @app.get("/ready")
    async def readiness():
        """Readiness probe. 200 only once the model has loaded."""
        gateway = getattr(app.state, "gateway", None)
        if gateway is None or not gateway.is_ready:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "service": SERVICE_NAME,
                    "model": gateway.info() if gateway else None
                }
            )
        return {"status": "ready", "service": SERVICE_NAME, "model": gateway.info()}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    config = EmbeddingCacheConfig()
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower()
    )


if __name__ == "__main__":
    run()
