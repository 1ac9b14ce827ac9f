"""Metrics collection for the embedding cache service.

Thin convenience wrapper around ``prometheus_client`` so the service records
HTTP, embedding, model and cache metrics with consistent label sets.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- Each collector owns its registry, so several app instances (e.g. in tests)
  never clash on metric names
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

class MetricsCollector:
    """Centralized metrics collection for the service.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry``; a fresh one by default
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'embedding_requests_total',
            'Total texts requested for embedding',
            ['operation'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'embedding_request_duration_seconds',
            'Embedding request duration including cache lookups',
            ['operation'],
            registry=self.registry
        )

        self.generation_duration = Histogram(
            'embedding_generation_duration_seconds',
            'Model generation duration for a single text',
            registry=self.registry
        )

        self.generation_failures = Counter(
            'embedding_generation_failures_total',
            'Model generation failures',
            registry=self.registry
        )

        self.cache_hits = Counter(
            'embedding_cache_hits_total',
            'Total cache hits',
            registry=self.registry
        )

        self.cache_misses = Counter(
            'embedding_cache_misses_total',
            'Total cache misses',
            registry=self.registry
        )

        self.cache_evictions = Counter(
            'embedding_cache_evictions_total',
            'Entries evicted because the cache was full',
            registry=self.registry
        )

        self.cache_size = Gauge(
            'embedding_cache_size',
            'Number of cached embeddings',
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_embedding(self, operation: str, count: int, duration: float) -> None:
        """Record an embedding request of ``count`` texts."""
        self.embedding_requests.labels(operation=operation).inc(count)
        self.embedding_duration.labels(operation=operation).observe(duration)

    def record_generation(self, duration: float) -> None:
        """Record one successful model generation."""
        self.generation_duration.observe(duration)

    def record_generation_failure(self) -> None:
        """Record one failed model generation."""
        self.generation_failures.inc()

    def record_cache_hit(self) -> None:
        """Record cache hit."""
        self.cache_hits.inc()

    def record_cache_miss(self) -> None:
        """Record cache miss."""
        self.cache_misses.inc()

    def record_cache_eviction(self) -> None:
        """Record a capacity eviction."""
        self.cache_evictions.inc()

    def set_cache_size(self, size: int) -> None:
        """Set the current cache size."""
        self.cache_size.set(size)

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')
