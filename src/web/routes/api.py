from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

import cv2
import numpy as np
from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from detection.schemas import DetectionModel, DetectionResultModel
from models.frame import Frame
from ..api_models import (
    CollectedRequest,
    CollectedResponse,
    LastResult,
    SpawnHistoryResponse,
    StatusResponse,
    StrategyRequest,
    StrategyResponse,
)

router = APIRouter()
detect_router = APIRouter()


def _derive_status(
    engine_ready: bool,
    strategy: str,
    scheduler_running: bool,
    mock_fallback: bool,
    last_result_error: Optional[str],
    timeouts: int,
    cycles: int,
) -> Tuple[str, List[str]]:
    """
    Lightweight status classifier used by /api/status.

    stopped when the scheduler is not running; degraded when local
    detection cannot run or most recent cycles time out.
    """
    level = "running"
    alerts: List[str] = []

    if not scheduler_running:
        level = "stopped"
        alerts.append("scheduler_stopped")

    if strategy == "local" and not engine_ready:
        alerts.append("mock_detections" if mock_fallback else "model_not_loaded")
        if level == "running":
            level = "degraded"

    if cycles > 0 and timeouts * 2 > cycles:
        alerts.append("detection_timeouts")
        if level == "running":
            level = "degraded"

    if last_result_error:
        alerts.append("last_detection_failed")

    return level, alerts


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    """
    Aggregate pipeline status: engine state, strategy, scheduler statistics
    and the last detection result.
    """
    ctx = request.app.state.ctx
    engine = ctx.engine
    scheduler = ctx.scheduler
    snapshot = scheduler.snapshot()
    last = scheduler.stats.last_result

    level, alerts = _derive_status(
        engine_ready=engine.is_ready,
        strategy=ctx.service.strategy,
        scheduler_running=scheduler.running,
        mock_fallback=ctx.service.mock_fallback,
        last_result_error=last.error if last is not None else None,
        timeouts=scheduler.stats.timeouts,
        cycles=scheduler.stats.cycles,
    )

    last_result = None
    if last is not None:
        last_result = LastResult(
            success=last.success,
            source=last.source,
            error=last.error,
            detections=[DetectionModel.from_detection(d) for d in last.detections],
        )

    return StatusResponse(
        status=level,
        alerts=alerts,
        engine_state=engine.state.value,
        backend=engine.backend_name,
        model_outputs=engine.model_info.output_names if engine.model_info else [],
        infer_latency_ms=engine.last_latency_ms,
        strategy=ctx.service.strategy,
        scheduler=snapshot,
        last_result=last_result,
        timestamp=time.time(),
    )


@router.post("/strategy", response_model=StrategyResponse)
def set_strategy(request: Request, body: StrategyRequest):
    ctx = request.app.state.ctx
    try:
        ctx.service.set_strategy(body.strategy)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StrategyResponse(strategy=ctx.service.strategy)


@router.get("/spawns", response_model=SpawnHistoryResponse)
def spawns(request: Request):
    sink = request.app.state.ctx.sink
    recent = sink.recent() if hasattr(sink, "recent") else []
    return SpawnHistoryResponse(
        total=getattr(sink, "total", len(recent)),
        recent=[d.to_dict() for d in recent],
        collected=sink.collected() if hasattr(sink, "collected") else {},
    )


@router.post("/collected", response_model=CollectedResponse)
def collected(request: Request, body: CollectedRequest):
    """Forward a "collected" notification from the game side to the listener."""
    ctx = request.app.state.ctx
    if ctx.collected is None:
        raise HTTPException(status_code=404, detail="No collected listener configured")
    ctx.collected.on_collected(body.entity_type)
    counts = ctx.collected.collected() if hasattr(ctx.collected, "collected") else {}
    return CollectedResponse(entity_type=body.entity_type, count=counts.get(body.entity_type, 0))


@detect_router.post("/detect", response_model=DetectionResultModel)
def detect(request: Request, image: UploadFile = File(...)):
    """
    Reference implementation of the remote detection endpoint.

    Decodes the uploaded JPEG/PNG and runs it through the local pipeline.
    """
    ctx = request.app.state.ctx
    payload = image.file.read()
    bgr = cv2.imdecode(np.frombuffer(payload, dtype=np.uint8), cv2.IMREAD_COLOR) if payload else None
    if bgr is None:
        raise HTTPException(status_code=400, detail="Could not decode image")

    frame = Frame(data=cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), source="upload")
    try:
        result = ctx.service.detect_local(frame)
    finally:
        frame.release()

    logging.info(f"[API] /detect: {len(result.detections)} detections (success={result.success})")
    return DetectionResultModel.from_result(result)
