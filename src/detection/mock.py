"""
Synthetic detection used when no local model is available.

It never reflects the camera feed; results are tagged source="mock" and
every use is logged as a warning.
"""

from __future__ import annotations

import logging

from models.detection import BoundingBox, Detection, DetectionResult


MOCK_LABEL = "plastic_bottle"
MOCK_CONFIDENCE = 0.95
MOCK_BBOX = BoundingBox(x=0.2, y=0.2, w=0.15, h=0.2)


def mock_result() -> DetectionResult:
    logging.warning("[Detection] Local model not available, using MOCK detection (not from camera feed)")
    return DetectionResult.ok([Detection(MOCK_LABEL, MOCK_CONFIDENCE, MOCK_BBOX)], source="mock")
