"""
Detection models for classification results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, float(v)))


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in normalized [0, 1] image coordinates.

    Image convention: (0, 0) is the top-left corner and y grows downward.

    Attributes:
        x: Left edge.
        y: Top edge.
        w: Width.
        h: Height.
    """
    x: float
    y: float
    w: float
    h: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "w", "h"):
            v = getattr(self, name)
            if not 0.0 <= v <= 1.0:
                raise ValueError(f"bbox.{name} must be within [0, 1], got {v}")

    @property
    def center(self) -> Tuple[float, float]:
        return (_clamp01(self.x + self.w / 2), _clamp01(self.y + self.h / 2))

    def as_list(self) -> List[float]:
        """Return as [x, y, w, h] list (wire format)."""
        return [self.x, self.y, self.w, self.h]

    @classmethod
    def from_sequence(cls, seq: Sequence[float]) -> "BoundingBox":
        """Create from an [x, y, w, h] sequence."""
        if len(seq) != 4:
            raise ValueError(f"bbox must have 4 components, got {len(seq)}")
        return cls(x=float(seq[0]), y=float(seq[1]), w=float(seq[2]), h=float(seq[3]))


# The reference model is a pure classifier; it has no localization head.
DEFAULT_BBOX = BoundingBox(x=0.25, y=0.25, w=0.5, h=0.5)


@dataclass(frozen=True)
class Detection:
    """
    A single classified, confidence-scored detection.

    Attributes:
        label: Class label from the model's label table.
        confidence: Score in [0, 1].
        bbox: Normalized bounding box.
    """
    label: str
    confidence: float
    bbox: BoundingBox = DEFAULT_BBOX

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "bbox": self.bbox.as_list(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Detection":
        bbox = d.get("bbox")
        return cls(
            label=str(d["label"]),
            confidence=float(d["confidence"]),
            bbox=BoundingBox.from_sequence(bbox) if bbox is not None else DEFAULT_BBOX,
        )


@dataclass
class DetectionResult:
    """
    Outcome of one detection call.

    success is true iff at least one detection was produced without an
    exception; error is only set when success is false. source records
    which strategy produced the result ("local", "remote" or "mock").
    """
    detections: List[Detection] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None
    source: str = "local"

    @classmethod
    def ok(cls, detections: List[Detection], source: str = "local") -> "DetectionResult":
        """Build a result from detections; an empty list is a non-error miss."""
        return cls(detections=list(detections), success=bool(detections), source=source)

    @classmethod
    def failure(cls, error: str, source: str = "local") -> "DetectionResult":
        return cls(detections=[], success=False, error=error, source=source)

    @property
    def is_mock(self) -> bool:
        return self.source == "mock"

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "detections": [det.to_dict() for det in self.detections],
            "success": self.success,
            "source": self.source,
        }
        if self.error is not None:
            d["error"] = self.error
        return d
