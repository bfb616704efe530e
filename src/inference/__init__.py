"""
Local inference: preprocessing, backends, engine and output decoding.
"""

from .backend import InferenceBackend, ModelInfo, TensorSpec, create_backend
from .engine import EngineState, InferenceEngine, LoadResult
from .decoder import OutputDecoder
from .preprocess import preprocess

__all__ = [
    "InferenceBackend",
    "ModelInfo",
    "TensorSpec",
    "create_backend",
    "EngineState",
    "InferenceEngine",
    "LoadResult",
    "OutputDecoder",
    "preprocess",
]
