from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from detection.schemas import DetectionModel


class SchedulerStatus(BaseModel):
    phase: str = Field(..., description="idle|capturing|detecting|spawning")
    in_flight: bool
    running: bool
    ticks: int
    skipped_ticks: int
    cycles: int
    missed_frames: int
    timeouts: int
    failures: int
    spawns: int
    late_results: int
    last_cycle_ts: Optional[float] = None


class LastResult(BaseModel):
    success: bool
    source: str
    error: Optional[str] = None
    detections: List[DetectionModel] = Field(default_factory=list)


class StatusResponse(BaseModel):
    status: str = Field(..., description="running|degraded|stopped")
    alerts: List[str]
    engine_state: str
    backend: Optional[str]
    model_outputs: List[str] = Field(default_factory=list)
    infer_latency_ms: Optional[float] = None
    strategy: str
    scheduler: SchedulerStatus
    last_result: Optional[LastResult] = None
    timestamp: float


class StrategyRequest(BaseModel):
    strategy: str = Field(..., description="local|remote")


class StrategyResponse(BaseModel):
    strategy: str
    effective: str = Field("next_cycle", description="Switches apply from the next scheduled cycle")


class SpawnHistoryResponse(BaseModel):
    total: int
    recent: List[Dict[str, object]]
    collected: Dict[str, int] = Field(default_factory=dict)


class CollectedRequest(BaseModel):
    entity_type: str = Field(..., min_length=1)


class CollectedResponse(BaseModel):
    entity_type: str
    count: int
