"""
Detection scheduler.

Runs one capture -> detect -> spawn cycle every `interval` seconds on the
asyncio event loop:

    IDLE -> CAPTURING -> DETECTING -> SPAWNING -> IDLE

At most one cycle is in flight. A tick that fires while a cycle is running
is dropped (no queueing, no coalescing). The in-flight flag is only touched
on the event loop thread and is cleared in a finally block, so a failed or
timed-out cycle can never leave detection disabled.

Example:
    scheduler = DetectionScheduler(service, source, poses, policy, sink, SchedulerConfig())
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from models.config import SchedulerConfig
from models.detection import DetectionResult
from models.errors import CaptureUnavailable
from models.frame import Frame
from models.spawn import SpawnDecision
from spawning.policy import SpawnPolicy
from spawning.sink import PoseProvider, SpawnSink
from .cancellation import CancellationToken


class SchedulerPhase(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DETECTING = "detecting"
    SPAWNING = "spawning"


@dataclass
class SchedulerStats:
    """Runtime statistics for the scheduler."""
    ticks: int = 0
    skipped_ticks: int = 0
    cycles: int = 0
    missed_frames: int = 0
    timeouts: int = 0
    failures: int = 0
    spawns: int = 0
    late_results: int = 0
    last_cycle_ts: Optional[float] = None
    last_result: Optional[DetectionResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticks": self.ticks,
            "skipped_ticks": self.skipped_ticks,
            "cycles": self.cycles,
            "missed_frames": self.missed_frames,
            "timeouts": self.timeouts,
            "failures": self.failures,
            "spawns": self.spawns,
            "late_results": self.late_results,
            "last_cycle_ts": self.last_cycle_ts,
        }


@dataclass
class CycleOutcome:
    """
    Result of one cycle.

    status is one of: no_frame, timeout, failed, empty, spawned.
    """
    status: str
    result: Optional[DetectionResult] = None
    decisions: List[SpawnDecision] = field(default_factory=list)


class DetectionScheduler:
    def __init__(
        self,
        service,
        frame_source,
        pose_provider: PoseProvider,
        policy: SpawnPolicy,
        sink: SpawnSink,
        config: SchedulerConfig,
        confidence_threshold: Optional[float] = None,
    ):
        self.service = service
        self.frame_source = frame_source
        self.pose_provider = pose_provider
        self.policy = policy
        self.sink = sink
        self.config = config
        self._threshold = confidence_threshold
        self.stats = SchedulerStats()
        self._in_flight = False
        self._phase = SchedulerPhase.IDLE
        self._timer: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def phase(self) -> SchedulerPhase:
        return self._phase

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def confidence_threshold(self) -> float:
        if self._threshold is not None:
            return self._threshold
        return self.service.confidence_threshold

    # Timer

    def start(self) -> None:
        """Start the periodic timer. Must be called from a running event loop."""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._timer_loop())
        logging.info(
            f"[Scheduler] Detection started (interval={self.config.interval:.1f}s, "
            f"timeout={self.config.timeout:.1f}s, max_spawns={self.config.max_spawns_per_cycle})"
        )

    async def stop(self) -> None:
        """Stop the timer and abandon the in-flight cycle, if any."""
        for task in (self._timer, self._current):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._timer = None
        self._current = None
        logging.info("[Scheduler] Detection stopped")

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval)
            self.tick()

    # Cycles

    def _try_acquire(self) -> bool:
        self.stats.ticks += 1
        if self._in_flight:
            self.stats.skipped_ticks += 1
            logging.debug("[Scheduler] Tick skipped, detection already in flight")
            return False
        self._in_flight = True
        return True

    def tick(self) -> bool:
        """
        Start a cycle unless one is already in flight.

        Returns True if a cycle was started.
        """
        if not self._try_acquire():
            return False
        self._current = asyncio.get_running_loop().create_task(self._cycle())
        self._current.add_done_callback(self._log_cycle_error)
        return True

    async def run_cycle(self) -> Optional[CycleOutcome]:
        """Run one cycle inline. Returns None if a cycle was already in flight."""
        if not self._try_acquire():
            return None
        return await self._cycle()

    async def _cycle(self) -> CycleOutcome:
        # Caller holds the in-flight flag.
        self.stats.cycles += 1
        self.stats.last_cycle_ts = time.time()
        frame: Optional[Frame] = None
        worker: Optional[asyncio.Future] = None
        token = CancellationToken()
        try:
            self._phase = SchedulerPhase.CAPTURING
            try:
                frame = await self._capture()
            except CaptureUnavailable as e:
                self.stats.missed_frames += 1
                logging.debug(f"[Scheduler] Skipping cycle: {e}")
                return CycleOutcome("no_frame")

            self._phase = SchedulerPhase.DETECTING
            worker = asyncio.ensure_future(self.service.detect_async(frame, token, release_frame=True))
            done, _ = await asyncio.wait({worker}, timeout=self.config.timeout)

            if worker in done:
                result = self._worker_result(worker)
                status = "failed" if result.error else "empty"
            else:
                self.stats.timeouts += 1
                logging.warning(f"[Scheduler] Detection timed out after {self.config.timeout:.1f}s")
                token.cancel("detection timeout")
                worker.add_done_callback(self._discard_late_result)
                result = DetectionResult.failure(
                    f"Detection timed out after {self.config.timeout:.1f}s",
                    source=getattr(self.service, "strategy", "local"),
                )
                status = "timeout"

            self.stats.last_result = result
            if not result.success:
                if result.error:
                    self.stats.failures += 1
                    logging.warning(f"[Scheduler] Detection failed: {result.error}")
                else:
                    logging.debug("[Scheduler] Detection returned no results")
                return CycleOutcome(status, result)

            self._phase = SchedulerPhase.SPAWNING
            decisions = self._spawn(result)
            return CycleOutcome("spawned", result, decisions)
        finally:
            if worker is not None and not worker.done():
                token.cancel("cycle abandoned")
            if worker is None and frame is not None:
                # Once detection starts the worker thread owns the frame.
                frame.release()
            self._phase = SchedulerPhase.IDLE
            self._in_flight = False

    async def _capture(self) -> Frame:
        try:
            frame = await asyncio.to_thread(self.frame_source.latest_frame)
        except Exception as e:
            logging.warning(f"[Scheduler] Frame capture error: {e}")
            raise CaptureUnavailable(f"capture error: {e}") from e
        if frame is None or frame.is_empty:
            raise CaptureUnavailable("no frame available")
        return frame

    def _worker_result(self, worker: asyncio.Future) -> DetectionResult:
        try:
            return worker.result()
        except Exception as e:
            logging.exception("[Scheduler] Detection service raised")
            return DetectionResult.failure(f"{type(e).__name__}: {e}")

    def _discard_late_result(self, worker: asyncio.Future) -> None:
        self.stats.late_results += 1
        if worker.cancelled():
            return
        exc = worker.exception()
        if exc is not None:
            logging.debug(f"[Scheduler] Discarding late detection error: {exc}")
        else:
            logging.debug("[Scheduler] Discarding late detection result")

    def _spawn(self, result: DetectionResult) -> List[SpawnDecision]:
        pose = self.pose_provider.current_pose()
        threshold = self.confidence_threshold
        decisions: List[SpawnDecision] = []
        for detection in result.detections:
            if len(decisions) >= self.config.max_spawns_per_cycle:
                break
            if detection.confidence < threshold:
                continue
            decision = self.policy.decide(detection, pose)
            try:
                self.sink.spawn(decision)
            except Exception as e:
                logging.warning(f"[Scheduler] Spawn sink error: {e}")
                continue
            decisions.append(decision)

        self.stats.spawns += len(decisions)
        suffix = " (mock detection)" if result.is_mock else ""
        logging.info(f"[Scheduler] Spawned {len(decisions)} objects from detection{suffix}")
        return decisions

    @staticmethod
    def _log_cycle_error(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logging.error(f"[Scheduler] Cycle error: {exc}")

    def snapshot(self) -> Dict[str, Any]:
        d = self.stats.to_dict()
        d.update({
            "phase": self._phase.value,
            "in_flight": self._in_flight,
            "running": self.running,
        })
        return d
