"""
Inference engine wrapper.

Owns the backend (execution context) for the process lifetime and guards it
with a small state machine:

    UNLOADED -> LOADING -> READY
    UNLOADED -> LOADING -> FAILED

Both READY and FAILED are terminal. load() is idempotent; callers that
arrive while another thread is loading wait on the lock and receive the
same result instead of starting a second load.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from models.errors import InferenceError, ModelLoadError, ModelNotLoaded
from runtime.cancellation import CancellationToken
from .backend import InferenceBackend, ModelInfo


class EngineState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    state: EngineState
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == EngineState.READY


class InferenceEngine:
    """
    Single-model inference engine.

    Example:
        engine = InferenceEngine(input_size=(224, 224))
        engine.load("models/waste_classifier.onnx", create_backend("portable"))
        raw = engine.infer(preprocess(frame, 224, 224))
    """

    def __init__(self, input_size: Tuple[int, int] = (224, 224)):
        self.input_width, self.input_height = input_size
        self._state = EngineState.UNLOADED
        self._lock = threading.Lock()
        self._backend: Optional[InferenceBackend] = None
        self._model_info: Optional[ModelInfo] = None
        self._result: Optional[LoadResult] = None
        self.last_latency_ms: Optional[float] = None

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == EngineState.READY

    @property
    def model_info(self) -> Optional[ModelInfo]:
        return self._model_info

    @property
    def backend_name(self) -> Optional[str]:
        return self._backend.name if self._backend is not None else None

    @property
    def expected_shape(self) -> Tuple[int, int, int, int]:
        return (1, self.input_height, self.input_width, 3)

    def load(self, model_path: str, backend: InferenceBackend) -> LoadResult:
        """
        Load the model once.

        Returns the existing result if the engine already reached READY or
        FAILED; the backend argument is ignored in that case.
        """
        with self._lock:
            if self._result is not None:
                logging.debug(f"[Inference] load() ignored, engine already {self._state.value}")
                return self._result

            self._state = EngineState.LOADING
            start = time.time()
            try:
                info = backend.load(model_path)
                self._check_input_shape(info)
            except Exception as e:
                reason = str(e) if isinstance(e, ModelLoadError) else f"{type(e).__name__}: {e}"
                self._fail(model_path, reason)
                try:
                    backend.close()
                except Exception as close_err:
                    logging.warning(f"[Inference] Error closing backend after failed load: {close_err}")
                return self._result

            self._backend = backend
            self._model_info = info
            self._state = EngineState.READY
            self._result = LoadResult(EngineState.READY)

        logging.info(
            f"[Inference] Model loaded: {info.name} in {(time.time() - start) * 1000:.0f} ms "
            f"(backend={backend.name}, providers={', '.join(info.providers) or 'n/a'})"
        )
        logging.info(f"[Inference] Model inputs: {', '.join(info.input_names)}")
        logging.info(f"[Inference] Model outputs: {', '.join(info.output_names)}")
        return self._result

    def _check_input_shape(self, info: ModelInfo) -> None:
        if not info.inputs:
            raise ModelLoadError("Model declares no inputs")
        if not info.inputs[0].matches(self.expected_shape):
            raise ModelLoadError(
                f"Model input {info.inputs[0].name} has shape {list(info.inputs[0].shape)}, "
                f"configured input is {list(self.expected_shape)}"
            )

    def _fail(self, model_path: str, reason: str) -> None:
        self._state = EngineState.FAILED
        self._result = LoadResult(EngineState.FAILED, reason)
        banner = "=" * 60
        logging.error(banner)
        logging.error(f"[Inference] MODEL LOAD FAILED: {model_path}")
        logging.error(f"[Inference] Reason: {reason}")
        logging.error("[Inference] Local detection is disabled for this session")
        logging.error(banner)

    def infer(self, tensor: np.ndarray, cancel_token: Optional[CancellationToken] = None) -> np.ndarray:
        """
        Run one forward pass.

        Raises:
            ModelNotLoaded: If the engine is not READY.
            InferenceError: On shape mismatch, backend fault or cancellation.
        """
        backend = self._backend
        if self._state != EngineState.READY or backend is None:
            raise ModelNotLoaded(f"Model not loaded (state={self._state.value})")

        shape = tuple(np.shape(tensor))
        if shape != self.expected_shape:
            raise InferenceError(f"Input tensor shape {list(shape)} does not match {list(self.expected_shape)}")
        if not self._model_info.inputs[0].matches(shape):
            raise InferenceError(
                f"Input tensor shape {list(shape)} does not match model input {list(self._model_info.inputs[0].shape)}"
            )

        start = time.perf_counter()
        try:
            raw = backend.run(tensor, cancel_token)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Backend fault: {e}") from e
        self.last_latency_ms = (time.perf_counter() - start) * 1000
        return raw

    def close(self) -> None:
        """Dispose the execution context. Called once at shutdown."""
        with self._lock:
            backend, self._backend = self._backend, None
        if backend is not None:
            backend.close()
