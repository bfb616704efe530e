"""
Typed models for the litter detection pipeline.
"""

from .frame import Frame
from .detection import BoundingBox, Detection, DetectionResult, DEFAULT_BBOX
from .spawn import CameraPose, SpawnDecision
from .config import (
    Config,
    ModelConfig,
    DetectionConfig,
    SchedulerConfig,
    SpawnConfig,
    CameraConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "Frame",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionResult",
    "DEFAULT_BBOX",
    # Spawn
    "CameraPose",
    "SpawnDecision",
    # Config
    "Config",
    "ModelConfig",
    "DetectionConfig",
    "SchedulerConfig",
    "SpawnConfig",
    "CameraConfig",
    "WebConfig",
]
