"""
Wire format for detection results exchanged with the remote endpoint.

The remote service may still send the legacy `trash_type` key instead of
`label`; both are accepted.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from models.detection import DEFAULT_BBOX, BoundingBox, Detection, DetectionResult


class DetectionModel(BaseModel):
    label: str = Field(..., validation_alias=AliasChoices("label", "trash_type"))
    confidence: float = Field(..., ge=0.0, le=1.0)
    bbox: List[float] = Field(default_factory=DEFAULT_BBOX.as_list, description="[x, y, w, h], normalized")

    @field_validator("bbox")
    @classmethod
    def _check_bbox(cls, v: List[float]) -> List[float]:
        if len(v) != 4:
            raise ValueError("bbox must have exactly 4 components")
        if any(c < 0.0 or c > 1.0 for c in v):
            raise ValueError("bbox components must be within [0, 1]")
        return v

    def to_detection(self) -> Detection:
        return Detection(self.label, self.confidence, BoundingBox.from_sequence(self.bbox))

    @classmethod
    def from_detection(cls, det: Detection) -> "DetectionModel":
        return cls(label=det.label, confidence=det.confidence, bbox=det.bbox.as_list())


class DetectionResultModel(BaseModel):
    detections: List[DetectionModel]
    success: Optional[bool] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: DetectionResult) -> "DetectionResultModel":
        return cls(
            detections=[DetectionModel.from_detection(d) for d in result.detections],
            success=result.success,
            error=result.error,
        )

    def to_result(self, source: str = "remote") -> DetectionResult:
        if self.success is False:
            return DetectionResult.failure(self.error or "remote endpoint reported failure", source=source)
        return DetectionResult.ok([d.to_detection() for d in self.detections], source=source)
