"""Error taxonomy for the embedding cache service.

Each error carries the HTTP status the service boundary answers with, so
routes only need to translate ``EmbeddingCacheError`` into ``{"error": ...}``.
"""


class EmbeddingCacheError(Exception):
    """Base class for errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ModelNotReady(EmbeddingCacheError):
    """The model has not finished loading. Retryable."""

    status_code = 503

    def __init__(self, message: str = "Model not loaded yet"):
        super().__init__(message)


class InvalidInput(EmbeddingCacheError):
    """Malformed or missing request payload."""

    status_code = 400


class GenerationFailure(EmbeddingCacheError):
    """The model raised while generating an embedding.

    The failed text is never cached.
    """

    status_code = 500
