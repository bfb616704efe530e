"""
Spawn models: camera pose and spawn decisions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class CameraPose:
    """
    Camera pose used to place spawns in world space.

    Attributes:
        position: Camera position in world space.
        rotation: 3x3 camera-to-world rotation. Columns are the camera's
            right, up and forward axes.
        fov_deg: Vertical field of view in degrees.
        viewport_width: Viewport width in pixels.
        viewport_height: Viewport height in pixels.
    """
    position: Vector3 = (0.0, 0.0, 0.0)
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    fov_deg: float = 60.0
    viewport_width: int = 1080
    viewport_height: int = 1920

    @property
    def aspect(self) -> float:
        return self.viewport_width / self.viewport_height

    @property
    def forward(self) -> np.ndarray:
        return np.asarray(self.rotation, dtype=float)[:, 2]


@dataclass(frozen=True)
class SpawnDecision:
    """What to spawn and where, derived from one detection."""
    entity_type: str
    world_position: Vector3
    label: str
    confidence: float

    def to_dict(self):
        return {
            "entity_type": self.entity_type,
            "world_position": list(self.world_position),
            "label": self.label,
            "confidence": self.confidence,
        }
