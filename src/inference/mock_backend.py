"""
Mock inference backend for development machines and tests.

Returns a fixed score vector for every forward pass.
"""

from __future__ import annotations

import time
from typing import Optional, Sequence

import numpy as np

from models.errors import InferenceCancelled, ModelLoadError
from runtime.cancellation import CancellationToken
from .backend import InferenceBackend, ModelInfo, TensorSpec


class MockBackend(InferenceBackend):
    def __init__(
        self,
        scores: Optional[Sequence[float]] = None,
        num_classes: int = 8,
        input_shape: Sequence = ("batch", 224, 224, 3),
        latency: float = 0.0,
        fail_load: bool = False,
    ):
        self.name = "mock"
        self.scores = np.asarray(scores if scores is not None else [0.0] * num_classes, dtype=np.float32)
        self.input_shape = tuple(input_shape)
        self.latency = latency
        self.fail_load = fail_load
        self.load_calls = 0
        self.run_calls = 0
        self.closed = False

    def load(self, model_path: str) -> ModelInfo:
        self.load_calls += 1
        if self.fail_load:
            raise ModelLoadError(f"Mock load failure for {model_path}")
        return ModelInfo(
            name="mock",
            inputs=[TensorSpec("input", self.input_shape)],
            outputs=[TensorSpec("scores", ("batch", len(self.scores)))],
            providers=["mock"],
        )

    def run(self, tensor: np.ndarray, cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
        self.run_calls += 1
        if self.latency > 0:
            if cancel_token is not None:
                if cancel_token.wait(self.latency):
                    raise InferenceCancelled(f"Inference terminated: {cancel_token.reason}")
            else:
                time.sleep(self.latency)
        return self.scores.reshape(1, -1).copy()

    def close(self) -> None:
        self.closed = True
