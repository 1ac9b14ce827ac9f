"""Model gateway and model loading.

Exports ``ModelGateway`` which owns model readiness and vector generation.
Heavy ML imports (torch, sentence-transformers) live in
``encoders.sentence_transformer`` and are only imported when the default
loader runs, so tests with an injected loader never pay for them.
"""

from .model_gateway import ModelGateway, ModelState

__all__ = ["ModelGateway", "ModelState"]
