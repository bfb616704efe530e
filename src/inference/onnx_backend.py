"""
ONNX Runtime inference backend.

accelerated=True asks for GPU/NPU execution providers and keeps the CPU
provider as the last fallback; accelerated=False pins the session to CPU so
the same model runs anywhere.
"""

from __future__ import annotations

import logging
import os
from typing import Any, List, Optional, Sequence

import numpy as np

from models.errors import InferenceCancelled, InferenceError, ModelLoadError
from runtime.cancellation import CancellationToken
from .backend import InferenceBackend, ModelInfo, TensorSpec


ACCELERATED_PROVIDERS = (
    "CUDAExecutionProvider",
    "CoreMLExecutionProvider",
    "DmlExecutionProvider",
)
CPU_PROVIDER = "CPUExecutionProvider"


def _import_ort():
    try:
        import onnxruntime as ort  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ModelLoadError(
            "onnxruntime is not installed. Install with `pip install onnxruntime` "
            "or switch model.backend to 'mock'."
        ) from e
    return ort


def select_providers(available: Sequence[str], accelerated: bool) -> List[str]:
    """Return providers in priority order, always ending with CPU."""
    providers: List[str] = []
    if accelerated:
        providers.extend(p for p in ACCELERATED_PROVIDERS if p in available)
    providers.append(CPU_PROVIDER)
    return providers


class OnnxRuntimeBackend(InferenceBackend):
    def __init__(self, accelerated: bool = True, intra_op_threads: int = 0):
        self.accelerated = accelerated
        self.intra_op_threads = intra_op_threads
        self.name = "accelerated" if accelerated else "portable"
        self._ort: Any = None
        self._session: Any = None
        self._input_name: Optional[str] = None
        self._output_name: Optional[str] = None

    def load(self, model_path: str) -> ModelInfo:
        if not model_path or not os.path.exists(model_path):
            raise ModelLoadError(f"Model file not found: {model_path}")

        ort = _import_ort()
        providers = select_providers(ort.get_available_providers(), self.accelerated)

        options = ort.SessionOptions()
        if self.intra_op_threads > 0:
            options.intra_op_num_threads = self.intra_op_threads

        try:
            session = ort.InferenceSession(model_path, sess_options=options, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"Failed to create inference session: {e}") from e

        inputs = [TensorSpec(i.name, tuple(i.shape)) for i in session.get_inputs()]
        outputs = [TensorSpec(o.name, tuple(o.shape)) for o in session.get_outputs()]
        if not inputs or not outputs:
            raise ModelLoadError("Model declares no inputs or no outputs")

        self._ort = ort
        self._session = session
        self._input_name = inputs[0].name
        self._output_name = outputs[0].name

        return ModelInfo(
            name=os.path.splitext(os.path.basename(model_path))[0],
            inputs=inputs,
            outputs=outputs,
            providers=list(session.get_providers()),
        )

    def run(self, tensor: np.ndarray, cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
        if self._session is None:
            raise InferenceError("Inference session is not initialized")

        run_options = self._ort.RunOptions()
        unregister = lambda: None
        if cancel_token is not None:
            def terminate() -> None:
                run_options.terminate = True
            unregister = cancel_token.register(terminate)

        try:
            outputs = self._session.run([self._output_name], {self._input_name: tensor}, run_options)
        except Exception as e:
            if cancel_token is not None and cancel_token.cancelled:
                raise InferenceCancelled(f"Inference terminated: {cancel_token.reason}") from e
            raise InferenceError(f"Backend fault: {e}") from e
        finally:
            unregister()

        return np.asarray(outputs[0], dtype=np.float32)

    def close(self) -> None:
        if self._session is not None:
            logging.info(f"[Inference] Releasing {self.name} session")
        self._session = None
