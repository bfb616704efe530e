"""
Spawn policy: detection label -> entity type, bbox -> world position.

Placement has no depth estimate from the detector; every spawn sits at a
fixed distance in front of the camera along the ray through the bbox
center.
"""

from __future__ import annotations

import math
from typing import Dict, Optional

import numpy as np

from models.config import DEFAULT_ENTITY_MAP, DEFAULT_ENTITY_TYPE
from models.detection import BoundingBox, Detection
from models.spawn import CameraPose, SpawnDecision, Vector3


class SpawnPolicy:
    def __init__(
        self,
        entity_map: Optional[Dict[str, str]] = None,
        default_entity_type: str = DEFAULT_ENTITY_TYPE,
        distance: float = 5.0,
    ):
        self.entity_map = dict(DEFAULT_ENTITY_MAP if entity_map is None else entity_map)
        self.default_entity_type = default_entity_type
        self.distance = distance

    def map_label_to_entity_type(self, label: str) -> str:
        # Detector vocabularies evolve independently of the spawn catalogue.
        return self.entity_map.get(label, self.default_entity_type)

    def compute_world_position(self, bbox: BoundingBox, pose: CameraPose) -> Vector3:
        """
        Unproject the bbox center through a pinhole camera.

        Bbox coordinates are top-down (image rows); the viewport has (0, 0)
        at the bottom-left, so y is flipped on the way to screen space.
        """
        cx, cy = bbox.center
        screen_x = cx * pose.viewport_width
        screen_y = (1.0 - cy) * pose.viewport_height

        ndc_x = 2.0 * screen_x / pose.viewport_width - 1.0
        ndc_y = 2.0 * screen_y / pose.viewport_height - 1.0

        half_h = self.distance * math.tan(math.radians(pose.fov_deg) / 2.0)
        half_w = half_h * pose.aspect

        local = np.array([ndc_x * half_w, ndc_y * half_h, self.distance], dtype=float)
        world = np.asarray(pose.position, dtype=float) + np.asarray(pose.rotation, dtype=float) @ local
        return (float(world[0]), float(world[1]), float(world[2]))

    def decide(self, detection: Detection, pose: CameraPose) -> SpawnDecision:
        return SpawnDecision(
            entity_type=self.map_label_to_entity_type(detection.label),
            world_position=self.compute_world_position(detection.bbox, pose),
            label=detection.label,
            confidence=detection.confidence,
        )
