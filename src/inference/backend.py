"""
Inference backend interface.

Backends own the execution context for one loaded model. They take an NHWC
float32 tensor and return the first model output as a flat float32 array.
Switching backends changes latency only, never output values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Union

import numpy as np

from runtime.cancellation import CancellationToken


Dim = Union[int, str, None]

BACKEND_KINDS = ("accelerated", "portable", "mock")


@dataclass(frozen=True)
class TensorSpec:
    name: str
    shape: Sequence[Dim] = ()

    def matches(self, shape: Sequence[int]) -> bool:
        """Symbolic or unknown dims match anything."""
        if not self.shape:
            return True
        if len(self.shape) != len(shape):
            return False
        return all(not isinstance(d, int) or d <= 0 or d == s for d, s in zip(self.shape, shape))


@dataclass(frozen=True)
class ModelInfo:
    """Named inputs and outputs declared by a loaded model."""
    name: str
    inputs: List[TensorSpec] = field(default_factory=list)
    outputs: List[TensorSpec] = field(default_factory=list)
    providers: List[str] = field(default_factory=list)

    @property
    def input_names(self) -> List[str]:
        return [t.name for t in self.inputs]

    @property
    def output_names(self) -> List[str]:
        return [t.name for t in self.outputs]


class InferenceBackend(Protocol):
    name: str

    def load(self, model_path: str) -> ModelInfo:
        ...

    def run(self, tensor: np.ndarray, cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
        ...

    def close(self) -> None:
        ...


def create_backend(kind: str, **kwargs) -> InferenceBackend:
    """
    Build a backend from the configured kind.

    accelerated: ONNX Runtime with GPU/NPU providers, CPU fallback.
    portable: ONNX Runtime on CPU only.
    mock: fixed scores, no model file needed.
    """
    if kind == "accelerated":
        from .onnx_backend import OnnxRuntimeBackend
        return OnnxRuntimeBackend(accelerated=True, **kwargs)
    if kind == "portable":
        from .onnx_backend import OnnxRuntimeBackend
        return OnnxRuntimeBackend(accelerated=False, **kwargs)
    if kind == "mock":
        from .mock_backend import MockBackend
        return MockBackend(**kwargs)
    raise ValueError(f"Unknown inference backend '{kind}', expected one of: {', '.join(BACKEND_KINDS)}")
