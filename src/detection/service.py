"""
Detection service.

Produces one DetectionResult per frame using the configured strategy:

- local: preprocess -> infer -> decode on the in-process engine
- remote: POST the frame to a detection endpoint
- mock: synthetic result, only when local is configured but the engine is
  not ready

detect() never raises; every failure is captured into the result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from inference.decoder import OutputDecoder
from inference.engine import InferenceEngine
from inference.preprocess import preprocess
from models.detection import DetectionResult
from models.errors import PipelineError
from models.frame import Frame
from runtime.cancellation import CancellationToken
from .mock import mock_result
from .remote import RemoteDetectionClient


STRATEGIES = ("local", "remote")


class DetectionService:
    def __init__(
        self,
        engine: Optional[InferenceEngine],
        decoder: OutputDecoder,
        remote: Optional[RemoteDetectionClient] = None,
        strategy: str = "local",
        mock_fallback: bool = True,
    ):
        self.engine = engine
        self.decoder = decoder
        self.remote = remote
        self.mock_fallback = mock_fallback
        self._strategy = "local"
        self.set_strategy(strategy)

    @property
    def strategy(self) -> str:
        return self._strategy

    @property
    def confidence_threshold(self) -> float:
        return self.decoder.threshold

    def set_strategy(self, strategy: str) -> None:
        """Switch strategy. Calls already running keep the strategy they started with."""
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown detection strategy '{strategy}', expected one of: {', '.join(STRATEGIES)}")
        if strategy != self._strategy:
            logging.info(f"[Detection] Strategy switched: {self._strategy} -> {strategy}")
        self._strategy = strategy

    def detect(self, frame: Frame, cancel_token: Optional[CancellationToken] = None) -> DetectionResult:
        return self._run(self._strategy, frame, cancel_token)

    def detect_local(self, frame: Frame, cancel_token: Optional[CancellationToken] = None) -> DetectionResult:
        """Run the local pipeline regardless of the configured strategy."""
        return self._run("local", frame, cancel_token)

    def _run(
        self, strategy: str, frame: Frame, cancel_token: Optional[CancellationToken]
    ) -> DetectionResult:
        try:
            if strategy == "remote":
                return self._detect_remote(frame, cancel_token)
            return self._detect_local(frame, cancel_token)
        except PipelineError as e:
            logging.warning(f"[Detection] {strategy} detection failed: {e}")
            return DetectionResult.failure(str(e), source=strategy)
        except Exception as e:
            logging.exception(f"[Detection] Unexpected error in {strategy} detection")
            return DetectionResult.failure(f"{type(e).__name__}: {e}", source=strategy)

    async def detect_async(
        self,
        frame: Frame,
        cancel_token: Optional[CancellationToken] = None,
        release_frame: bool = False,
    ) -> DetectionResult:
        """
        Run detect() in a worker thread.

        With release_frame, the worker thread releases the frame after
        detect() returns, whether or not the awaiting task is still waiting.
        """
        return await asyncio.to_thread(self._detect_in_worker, frame, cancel_token, release_frame)

    def _detect_in_worker(
        self, frame: Frame, cancel_token: Optional[CancellationToken], release_frame: bool
    ) -> DetectionResult:
        try:
            return self.detect(frame, cancel_token)
        finally:
            if release_frame:
                frame.release()

    def _detect_local(self, frame: Frame, cancel_token: Optional[CancellationToken]) -> DetectionResult:
        engine = self.engine
        if engine is None or not engine.is_ready:
            if self.mock_fallback:
                return mock_result()
            state = engine.state.value if engine is not None else "missing"
            return DetectionResult.failure(f"Model not loaded (state={state})", source="local")

        tensor = preprocess(frame, engine.input_width, engine.input_height)
        raw = engine.infer(tensor, cancel_token)
        detections = self.decoder.decode(raw)
        logging.debug(f"[Detection] Local inference: {len(detections)} detections")
        return DetectionResult.ok(detections, source="local")

    def _detect_remote(self, frame: Frame, cancel_token: Optional[CancellationToken]) -> DetectionResult:
        if self.remote is None:
            return DetectionResult.failure("Remote detection endpoint is not configured", source="remote")
        result = self.remote.detect(frame, cancel_token)
        if not result.success:
            return result
        threshold = self.decoder.threshold
        kept = [d for d in result.detections if d.confidence >= threshold]
        if len(kept) < len(result.detections):
            logging.debug(
                f"[Detection] Dropped {len(result.detections) - len(kept)} remote detections below {threshold:.2f}"
            )
        return DetectionResult.ok(kept, source="remote")
