"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


DEFAULT_LABELS = [
    "plastic_bottle",
    "plastic_bag",
    "can",
    "metal_waste",
    "paper",
    "cardboard",
    "glass",
    "organic",
]

DEFAULT_ENTITY_MAP = {
    "plastic_bottle": "DragonNightmare_Blue",
    "plastic_bag": "DragonNightmare_Green",
    "can": "DragonSoulEater_Blue",
    "metal_waste": "DragonSoulEater_Red",
    "paper": "DragonTerrorBringer_Purple",
    "cardboard": "DragonTerrorBringer_Blue",
    "glass": "DragonUsurper_Green",
    "organic": "DragonUsurper_Purple",
}

DEFAULT_ENTITY_TYPE = "DragonNightmare_Blue"


@dataclass
class ModelConfig:
    """Local model configuration."""
    path: str = "models/waste_classifier.onnx"
    input_width: int = 224
    input_height: int = 224
    confidence_threshold: float = 0.6
    backend: str = "accelerated"
    labels: List[str] = field(default_factory=lambda: list(DEFAULT_LABELS))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            path=d.get("path", "models/waste_classifier.onnx"),
            input_width=d.get("input_width", 224),
            input_height=d.get("input_height", 224),
            confidence_threshold=d.get("confidence_threshold", 0.6),
            backend=d.get("backend", "accelerated"),
            labels=list(d.get("labels") or DEFAULT_LABELS),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "input_width": self.input_width,
            "input_height": self.input_height,
            "confidence_threshold": self.confidence_threshold,
            "backend": self.backend,
            "labels": list(self.labels),
        }


@dataclass
class DetectionConfig:
    """Detection strategy configuration."""
    strategy: str = "local"
    remote_url: Optional[str] = None
    remote_timeout: float = 4.0
    mock_fallback: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            strategy=d.get("strategy", "local"),
            remote_url=d.get("remote_url"),
            remote_timeout=d.get("remote_timeout", 4.0),
            mock_fallback=d.get("mock_fallback", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "strategy": self.strategy,
            "remote_timeout": self.remote_timeout,
            "mock_fallback": self.mock_fallback,
        }
        if self.remote_url is not None:
            d["remote_url"] = self.remote_url
        return d


@dataclass
class SchedulerConfig:
    """Detection scheduler timing."""
    interval: float = 2.0
    timeout: float = 5.0
    max_spawns_per_cycle: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            interval=d.get("interval", 2.0),
            timeout=d.get("timeout", 5.0),
            max_spawns_per_cycle=d.get("max_spawns_per_cycle", 3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval": self.interval,
            "timeout": self.timeout,
            "max_spawns_per_cycle": self.max_spawns_per_cycle,
        }


@dataclass
class SpawnConfig:
    """Spawn placement and label-to-entity mapping."""
    distance: float = 5.0
    default_entity_type: str = DEFAULT_ENTITY_TYPE
    entity_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENTITY_MAP))
    fov_deg: float = 60.0
    viewport: List[int] = field(default_factory=lambda: [1080, 1920])

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SpawnConfig":
        entity_map = dict(DEFAULT_ENTITY_MAP)
        entity_map.update(d.get("entity_map") or {})
        return cls(
            distance=d.get("distance", 5.0),
            default_entity_type=d.get("default_entity_type", DEFAULT_ENTITY_TYPE),
            entity_map=entity_map,
            fov_deg=d.get("fov_deg", 60.0),
            viewport=d.get("viewport", [1080, 1920]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance": self.distance,
            "default_entity_type": self.default_entity_type,
            "entity_map": dict(self.entity_map),
            "fov_deg": self.fov_deg,
            "viewport": list(self.viewport),
        }


@dataclass
class CameraConfig:
    """Camera frame source configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    images: List[str] = field(default_factory=list)
    resolution: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            images=list(d.get("images") or []),
            resolution=d.get("resolution"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "backend": self.backend,
            "device_id": self.device_id,
            "images": list(self.images),
        }
        if self.resolution is not None:
            d["resolution"] = self.resolution
        return d


@dataclass
class WebConfig:
    """Status API / reference detection endpoint."""
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(host=d.get("host", "0.0.0.0"), port=d.get("port", 5000))

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    spawn: SpawnConfig = field(default_factory=SpawnConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/litter_spawn.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            scheduler=SchedulerConfig.from_dict(d.get("scheduler", {}) or {}),
            spawn=SpawnConfig.from_dict(d.get("spawn", {}) or {}),
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/litter_spawn.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "model": self.model.to_dict(),
            "detection": self.detection.to_dict(),
            "scheduler": self.scheduler.to_dict(),
            "spawn": self.spawn.to_dict(),
            "camera": self.camera.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
