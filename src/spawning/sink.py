"""
Spawn sinks and pose providers: the seams to the scene engine and AR tracking.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Protocol

from models.spawn import CameraPose, SpawnDecision


class SpawnSink(Protocol):
    def spawn(self, decision: SpawnDecision) -> None:
        ...


class PoseProvider(Protocol):
    def current_pose(self) -> CameraPose:
        ...


class CollectedListener(Protocol):
    """Receives "collected" notifications from the game side, keyed by entity type."""

    def on_collected(self, entity_type: str) -> None:
        ...


class LoggingSpawnSink:
    """Records spawn requests and logs them; stands in for the scene engine."""

    def __init__(self, max_history: int = 100):
        self.max_history = max_history
        self._lock = threading.Lock()
        self._history: List[SpawnDecision] = []
        self._collected: Dict[str, int] = {}
        self.total = 0

    def spawn(self, decision: SpawnDecision) -> None:
        x, y, z = decision.world_position
        logging.info(
            f"[Spawn] {decision.entity_type} at ({x:.2f}, {y:.2f}, {z:.2f}) "
            f"(label={decision.label}, confidence={decision.confidence:.2f})"
        )
        with self._lock:
            self.total += 1
            self._history.append(decision)
            if len(self._history) > self.max_history:
                self._history = self._history[-self.max_history:]

    def recent(self) -> List[SpawnDecision]:
        with self._lock:
            return list(self._history)

    def on_collected(self, entity_type: str) -> None:
        with self._lock:
            self._collected[entity_type] = self._collected.get(entity_type, 0) + 1
            count = self._collected[entity_type]
        logging.info(f"[Spawn] Collected {entity_type} (x{count})")

    def collected(self) -> Dict[str, int]:
        """Collected counts per entity type."""
        with self._lock:
            return dict(self._collected)


class StaticPoseProvider:
    def __init__(self, pose: CameraPose):
        self.pose = pose

    def current_pose(self) -> CameraPose:
        return self.pose
