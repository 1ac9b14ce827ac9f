"""API subpackage for the embedding cache service.

Contains the FastAPI router exposing:
- Single embedding generation (``/embed``)
- Batch embedding generation (``/embed/batch``)
- Health and statistics (``/health``)
- Cache reset (``/cache/clear``)
"""
