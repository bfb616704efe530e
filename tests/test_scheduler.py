"""
Tests for the detection scheduler: single-flight cycles, timeouts and spawn limits.
"""

import asyncio
import threading
import time
from unittest.mock import MagicMock

import numpy as np
import pytest

from models.config import SchedulerConfig
from models.detection import Detection, DetectionResult
from models.frame import Frame
from models.spawn import CameraPose
from runtime.scheduler import DetectionScheduler, SchedulerPhase
from spawning.policy import SpawnPolicy
from spawning.sink import LoggingSpawnSink, StaticPoseProvider


class RecordingSource:
    """Frame source that remembers every frame it handed out."""

    def __init__(self, empty=False):
        self.empty = empty
        self.frames = []

    def latest_frame(self):
        if self.empty:
            return None
        frame = Frame(data=np.zeros((48, 64, 3), dtype=np.uint8), frame_index=len(self.frames) + 1)
        self.frames.append(frame)
        return frame

    def release(self):
        pass


class FixedService:
    """Returns a fixed result; optionally blocks until released."""

    strategy = "local"
    confidence_threshold = 0.6

    def __init__(self, result=None, error=None):
        self.result = result or DetectionResult.ok([])
        self.error = error
        self.calls = 0
        self.gate = None

    async def detect_async(self, frame, cancel_token=None, release_frame=False):
        self.calls += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            if release_frame:
                frame.release()


class SlowService:
    """Blocks in a worker thread until cancelled, then returns a late result."""

    strategy = "local"
    confidence_threshold = 0.6

    def __init__(self):
        self.tokens = []

    def _blocking(self, frame, token, release_frame):
        try:
            token.wait(5.0)
            return DetectionResult.ok([Detection("can", 0.9)])
        finally:
            if release_frame:
                frame.release()

    async def detect_async(self, frame, cancel_token=None, release_frame=False):
        self.tokens.append(cancel_token)
        return await asyncio.to_thread(self._blocking, frame, cancel_token, release_frame)


def _scheduler(service, source=None, sink=None, **cfg):
    config = SchedulerConfig(
        interval=cfg.get("interval", 10.0),
        timeout=cfg.get("timeout", 2.0),
        max_spawns_per_cycle=cfg.get("max_spawns_per_cycle", 3),
    )
    return DetectionScheduler(
        service,
        source or RecordingSource(),
        StaticPoseProvider(CameraPose()),
        SpawnPolicy(),
        sink or LoggingSpawnSink(),
        config,
    )


async def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestSingleFlight:

    def test_tick_while_in_flight_is_skipped(self):
        service = FixedService(DetectionResult.ok([Detection("can", 0.9)]))

        async def scenario():
            service.gate = asyncio.Event()
            scheduler = _scheduler(service)

            assert scheduler.tick() is True
            assert scheduler.in_flight
            assert scheduler.tick() is False
            assert scheduler.tick() is False

            service.gate.set()
            await _wait_for(lambda: not scheduler.in_flight)
            return scheduler

        scheduler = asyncio.run(scenario())

        assert service.calls == 1
        assert scheduler.stats.ticks == 3
        assert scheduler.stats.skipped_ticks == 2
        assert scheduler.stats.cycles == 1
        assert scheduler.phase == SchedulerPhase.IDLE

    def test_run_cycle_returns_none_when_busy(self):
        service = FixedService()

        async def scenario():
            service.gate = asyncio.Event()
            scheduler = _scheduler(service)
            scheduler.tick()
            skipped = await scheduler.run_cycle()
            service.gate.set()
            await _wait_for(lambda: not scheduler.in_flight)
            return skipped

        assert asyncio.run(scenario()) is None

    def test_flag_cleared_after_failure(self):
        service = FixedService(DetectionResult.failure("HTTP 500", source="remote"))

        async def scenario():
            scheduler = _scheduler(service)
            outcome = await scheduler.run_cycle()
            return scheduler, outcome

        scheduler, outcome = asyncio.run(scenario())

        assert outcome.status == "failed"
        assert not scheduler.in_flight
        assert scheduler.stats.failures == 1

    def test_flag_cleared_when_service_raises(self):
        service = FixedService(error=RuntimeError("worker crashed"))

        async def scenario():
            scheduler = _scheduler(service)
            outcome = await scheduler.run_cycle()
            return scheduler, outcome

        scheduler, outcome = asyncio.run(scenario())

        assert outcome.status == "failed"
        assert "worker crashed" in outcome.result.error
        assert not scheduler.in_flight


class TestTimeout:

    def test_timeout_discards_late_result_and_releases_frame(self):
        service = SlowService()
        source = RecordingSource()
        sink = LoggingSpawnSink()

        async def scenario():
            scheduler = _scheduler(service, source=source, sink=sink, timeout=0.1)
            outcome = await scheduler.run_cycle()
            flag_after_cycle = scheduler.in_flight
            await _wait_for(lambda: scheduler.stats.late_results == 1)
            await _wait_for(lambda: source.frames[0].released)
            return scheduler, outcome, flag_after_cycle

        scheduler, outcome, flag_after_cycle = asyncio.run(scenario())

        assert outcome.status == "timeout"
        assert outcome.result.success is False
        assert "timed out" in outcome.result.error
        assert flag_after_cycle is False
        assert scheduler.stats.timeouts == 1
        assert service.tokens[0].cancelled
        assert sink.total == 0

    def test_next_cycle_runs_after_timeout(self):
        service = SlowService()

        async def scenario():
            scheduler = _scheduler(service, timeout=0.05)
            first = await scheduler.run_cycle()
            second = await scheduler.run_cycle()
            return first, second

        first, second = asyncio.run(scenario())

        assert first.status == "timeout"
        assert second is not None
        assert second.status == "timeout"


class TestSpawning:

    def test_spawn_limit_keeps_first_three_in_order(self):
        """Five confident detections with max_spawns_per_cycle=3 -> first three spawned."""
        labels = ["plastic_bottle", "can", "paper", "glass", "organic"]
        result = DetectionResult.ok([Detection(l, 0.9) for l in labels])
        sink = LoggingSpawnSink()

        async def scenario():
            scheduler = _scheduler(FixedService(result), sink=sink)
            return await scheduler.run_cycle()

        outcome = asyncio.run(scenario())

        assert outcome.status == "spawned"
        assert [d.label for d in outcome.decisions] == ["plastic_bottle", "can", "paper"]
        assert [d.label for d in sink.recent()] == ["plastic_bottle", "can", "paper"]

    def test_below_threshold_not_spawned(self):
        result = DetectionResult.ok([Detection("can", 0.9), Detection("paper", 0.3), Detection("glass", 0.8)])

        async def scenario():
            return await _scheduler(FixedService(result)).run_cycle()

        outcome = asyncio.run(scenario())

        assert [d.label for d in outcome.decisions] == ["can", "glass"]
        assert all(d.confidence >= 0.6 for d in outcome.decisions)

    def test_spawn_uses_entity_map_and_pose(self):
        result = DetectionResult.ok([Detection("can", 0.9)])

        async def scenario():
            return await _scheduler(FixedService(result)).run_cycle()

        decision = asyncio.run(scenario()).decisions[0]

        assert decision.entity_type == "DragonSoulEater_Blue"
        assert decision.world_position == pytest.approx((0.0, 0.0, 5.0))

    def test_sink_error_does_not_break_cycle(self):
        result = DetectionResult.ok([Detection("can", 0.9), Detection("glass", 0.8)])
        sink = MagicMock()
        sink.spawn.side_effect = [RuntimeError("scene gone"), None]

        async def scenario():
            scheduler = _scheduler(FixedService(result), sink=sink)
            outcome = await scheduler.run_cycle()
            return scheduler, outcome

        scheduler, outcome = asyncio.run(scenario())

        assert [d.label for d in outcome.decisions] == ["glass"]
        assert not scheduler.in_flight

    def test_empty_result_spawns_nothing(self):
        sink = LoggingSpawnSink()

        async def scenario():
            return await _scheduler(FixedService(DetectionResult.ok([])), sink=sink).run_cycle()

        outcome = asyncio.run(scenario())

        assert outcome.status == "empty"
        assert sink.total == 0


class TestCapture:

    def test_no_frame_skips_detection(self):
        service = FixedService()

        async def scenario():
            scheduler = _scheduler(service, source=RecordingSource(empty=True))
            outcome = await scheduler.run_cycle()
            return scheduler, outcome

        scheduler, outcome = asyncio.run(scenario())

        assert outcome.status == "no_frame"
        assert service.calls == 0
        assert scheduler.stats.missed_frames == 1
        assert not scheduler.in_flight

    def test_capture_exception_counts_as_missed_frame(self):
        source = MagicMock()
        source.latest_frame.side_effect = OSError("device unplugged")

        async def scenario():
            scheduler = _scheduler(FixedService(), source=source)
            return scheduler, await scheduler.run_cycle()

        scheduler, outcome = asyncio.run(scenario())

        assert outcome.status == "no_frame"
        assert scheduler.stats.missed_frames == 1

    def test_frame_released_after_cycle(self):
        source = RecordingSource()

        async def scenario():
            await _scheduler(FixedService(), source=source).run_cycle()

        asyncio.run(scenario())

        assert source.frames[0].released

    def test_frame_kept_until_worker_thread_finishes(self):
        proceed = threading.Event()
        reads = []

        class StuckService(SlowService):
            def _blocking(self, frame, token, release_frame):
                try:
                    proceed.wait(5.0)
                    reads.append(int(frame.data.sum()))
                    return DetectionResult.ok([])
                finally:
                    if release_frame:
                        frame.release()

        source = RecordingSource()

        async def scenario():
            scheduler = _scheduler(StuckService(), source=source, timeout=0.05)
            outcome = await scheduler.run_cycle()
            await asyncio.sleep(0.05)
            held = not source.frames[0].released
            proceed.set()
            await _wait_for(lambda: source.frames[0].released)
            return outcome, held

        outcome, held = asyncio.run(scenario())

        assert outcome.status == "timeout"
        assert held
        assert reads == [0]


class TestTimer:

    def test_start_and_stop(self):
        service = FixedService(DetectionResult.ok([Detection("can", 0.9)]))

        async def scenario():
            scheduler = _scheduler(service, interval=0.02)
            scheduler.start()
            assert scheduler.running
            await _wait_for(lambda: scheduler.stats.cycles >= 2)
            await scheduler.stop()
            return scheduler

        scheduler = asyncio.run(scenario())

        assert not scheduler.running
        assert scheduler.stats.spawns >= 1
        assert not scheduler.in_flight

    def test_snapshot(self):
        scheduler = _scheduler(FixedService())

        snap = scheduler.snapshot()

        assert snap["phase"] == "idle"
        assert snap["in_flight"] is False
        assert snap["running"] is False
        assert snap["ticks"] == 0
