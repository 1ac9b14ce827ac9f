"""Default model loader backed by sentence-transformers.

Picks the compute device (CUDA, Apple MPS or CPU) and loads a
``SentenceTransformer``. The all-MiniLM family is configured with mean pooling,
so ``encode(..., normalize_embeddings=True)`` yields mean-pooled, L2
normalized vectors.
"""

import platform
from typing import Any, Dict

import torch
import structlog
from sentence_transformers import SentenceTransformer

logger = structlog.get_logger("embedcache.device")


def detect_devices() -> Dict[str, Any]:
    """Report available accelerators and the recommended device."""
    info = {
        "platform": platform.system(),
        "architecture": platform.machine(),
        "cuda_available": False,
        "mps_available": False,
        "gpu_count": 0,
        "recommended_device": "cpu",
    }

    try:
        if torch.cuda.is_available():
            info["cuda_available"] = True
            info["gpu_count"] = torch.cuda.device_count()
            info["recommended_device"] = "cuda:0"
        elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
            info["mps_available"] = True
            info["gpu_count"] = 1
            info["recommended_device"] = "mps"
    except Exception as e:
        logger.error("GPU detection failed", error=str(e))
        info["recommended_device"] = "cpu"

    logger.info(
        "GPU detection completed",
        cuda_available=info["cuda_available"],
        mps_available=info["mps_available"],
        gpu_count=info["gpu_count"],
        recommended_device=info["recommended_device"]
    )
    return info


def select_device(preference: str = "auto") -> str:
    """Select the device for the given preference (``auto``, ``cpu``, ``gpu``)."""
    if preference == "cpu":
        device = "cpu"
    else:
        info = detect_devices()
        device = info["recommended_device"]
        if preference == "gpu" and device == "cpu":
            logger.warning("GPU requested but not available, falling back to CPU")

    logger.info("Device selected", device=device, preference=preference)
    return device


def load_sentence_transformer(model_name: str, device_preference: str = "auto") -> SentenceTransformer:
    """Load ``model_name`` onto the preferred device."""
    device = select_device(device_preference)
    return SentenceTransformer(model_name, device=device)
