"""
Spawning: map detections to entity types and world positions.
"""

from .policy import SpawnPolicy
from .sink import CollectedListener, LoggingSpawnSink, PoseProvider, SpawnSink, StaticPoseProvider

__all__ = [
    "SpawnPolicy",
    "SpawnSink",
    "CollectedListener",
    "PoseProvider",
    "LoggingSpawnSink",
    "StaticPoseProvider",
]
