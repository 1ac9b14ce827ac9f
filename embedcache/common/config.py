"""Configuration management for the embedding cache service.

Settings come from environment variables, an optional ``.env`` file, or
defaults. Field names double as environment variable names (matching is case
insensitive), so ``PORT=8080`` sets ``port``.

Highlights
- Strongly-typed settings with sensible defaults
- Only ``port`` and ``max_cache_size`` are part of the public contract; the
  rest tune logging and model selection

Usage
- ``config = EmbeddingCacheConfig()`` in the service entrypoint
- ``config = EmbeddingCacheConfig(max_cache_size=2)`` in tests
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_REQUEST_BYTES = 10 * 1024 * 1024


class EmbeddingCacheConfig(BaseSettings):
    """Configuration for the embedding cache service.

    Environment variables
    - ``PORT``: listening port (default 3000)
    - ``MAX_CACHE_SIZE``: maximum number of cached embeddings (default 5000)
    - ``HOST``: bind address
    - ``EMBEDDING_MODEL``: sentence-transformers model identifier
    - ``EMBEDDING_DIMENSION``: dimensionality advertised before the model loads
    - ``DEVICE_PREFERENCE``: ``auto``, ``cpu`` or ``gpu``
    - ``LOG_LEVEL`` / ``LOG_FORMAT``: logging level and ``json``/``console``
    - ``MAX_REQUEST_BYTES``: request body limit (default 10 MiB)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Listening port")

    # Cache
    max_cache_size: int = Field(default=5000, description="Cache capacity in entries")

    # Model
    embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    embedding_dimension: int = Field(default=384)
    device_preference: str = Field(default="auto")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    # Requests
    max_request_bytes: int = Field(default=DEFAULT_MAX_REQUEST_BYTES, description="Largest accepted request body")

    @field_validator("max_cache_size")
    @classmethod
    def _check_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_cache_size must be at least 1")
        return value

    @field_validator("device_preference")
    @classmethod
    def _check_device(cls, value: str) -> str:
        value = value.lower()
        if value not in ("auto", "cpu", "gpu"):
            raise ValueError("device_preference must be one of: auto, cpu, gpu")
        return value

    @property
    def short_model_name(self) -> str:
        """Short model name as reported by ``/health``."""
        return self.embedding_model.rsplit("/", 1)[-1]
