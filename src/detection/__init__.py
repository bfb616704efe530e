"""
Detection Module

Turns camera frames into detection results, locally or through a remote
endpoint.
"""

from .service import DetectionService, STRATEGIES
from .remote import RemoteDetectionClient, encode_jpeg
from .mock import mock_result, MOCK_LABEL

__all__ = [
    "DetectionService",
    "STRATEGIES",
    "RemoteDetectionClient",
    "encode_jpeg",
    "mock_result",
    "MOCK_LABEL",
]
