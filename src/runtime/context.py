from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from camera.source import FrameSource, create_frame_source
from detection.remote import RemoteDetectionClient
from detection.service import DetectionService
from inference.backend import InferenceBackend, create_backend
from inference.decoder import OutputDecoder
from inference.engine import InferenceEngine, LoadResult
from models.config import Config
from models.spawn import CameraPose
from spawning.policy import SpawnPolicy
from spawning.sink import CollectedListener, LoggingSpawnSink, PoseProvider, SpawnSink, StaticPoseProvider
from .scheduler import DetectionScheduler


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    engine: InferenceEngine
    service: DetectionService
    scheduler: DetectionScheduler
    policy: SpawnPolicy
    sink: SpawnSink
    frame_source: FrameSource
    load_result: Optional[LoadResult] = None
    collected: Optional[CollectedListener] = None

    def close(self) -> None:
        """Release process-lifetime resources."""
        self.frame_source.release()
        self.engine.close()
        if self.service.remote is not None:
            self.service.remote.close()


def build_context(
    config: Config,
    backend: Optional[InferenceBackend] = None,
    frame_source: Optional[FrameSource] = None,
    pose_provider: Optional[PoseProvider] = None,
    sink: Optional[SpawnSink] = None,
    remote: Optional[RemoteDetectionClient] = None,
    collected: Optional[CollectedListener] = None,
    load_model: bool = True,
) -> RuntimeContext:
    """
    Wire every pipeline component from configuration.

    Collaborators can be injected (tests, embedding in a host app); anything
    left as None is created from config.
    """
    mcfg = config.model
    engine = InferenceEngine(input_size=(mcfg.input_width, mcfg.input_height))
    load_result = None
    if load_model:
        load_result = engine.load(mcfg.path, backend or create_backend(mcfg.backend))

    decoder = OutputDecoder(mcfg.labels, mcfg.confidence_threshold)

    dcfg = config.detection
    if remote is None and dcfg.remote_url:
        remote = RemoteDetectionClient(dcfg.remote_url, timeout=dcfg.remote_timeout)
    service = DetectionService(
        engine,
        decoder,
        remote=remote,
        strategy=dcfg.strategy,
        mock_fallback=dcfg.mock_fallback,
    )
    if service.strategy == "local" and not engine.is_ready:
        if dcfg.mock_fallback:
            logging.warning("[Runtime] Local model unavailable, detections will be MOCK results")
        else:
            logging.warning("[Runtime] Local model unavailable, local detection will fail every cycle")

    scfg = config.spawn
    policy = SpawnPolicy(scfg.entity_map, scfg.default_entity_type, scfg.distance)
    if pose_provider is None:
        pose_provider = StaticPoseProvider(
            CameraPose(
                position=(0.0, 0.0, 0.0),
                rotation=np.eye(3),
                fov_deg=scfg.fov_deg,
                viewport_width=int(scfg.viewport[0]),
                viewport_height=int(scfg.viewport[1]),
            )
        )
    sink = sink or LoggingSpawnSink()
    if collected is None and hasattr(sink, "on_collected"):
        collected = sink
    frame_source = frame_source or create_frame_source(config.camera.to_dict())

    scheduler = DetectionScheduler(
        service,
        frame_source,
        pose_provider,
        policy,
        sink,
        config.scheduler,
    )

    return RuntimeContext(
        config=config,
        engine=engine,
        service=service,
        scheduler=scheduler,
        policy=policy,
        sink=sink,
        frame_source=frame_source,
        load_result=load_result,
        collected=collected,
    )
