"""
Setup verification.

Walks through everything local detection needs (model file, runtime,
engine load, a smoke inference) and reports each check, so a broken
install is diagnosed before the scheduler starts producing silent misses.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from inference.backend import InferenceBackend, create_backend
from inference.decoder import OutputDecoder
from inference.engine import InferenceEngine
from inference.preprocess import preprocess
from models.config import Config
from models.frame import Frame


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str = ""
    required: bool = True


def _check_model_file(config: Config) -> CheckResult:
    path = config.model.path
    if config.model.backend == "mock":
        return CheckResult("model_file", True, "mock backend, no model file needed", required=False)
    if os.path.isfile(path):
        size_mb = os.path.getsize(path) / (1024 * 1024)
        return CheckResult("model_file", True, f"{path} ({size_mb:.1f} MB)")
    return CheckResult("model_file", False, f"model file not found: {path}")


def _check_runtime(config: Config) -> CheckResult:
    if config.model.backend == "mock":
        return CheckResult("onnxruntime", True, "not used by mock backend", required=False)
    try:
        import onnxruntime as ort  # type: ignore
    except Exception as e:
        return CheckResult("onnxruntime", False, f"onnxruntime not importable: {e}")
    return CheckResult(
        "onnxruntime",
        True,
        f"version {ort.__version__}, providers: {', '.join(ort.get_available_providers())}",
    )


def _check_engine_and_inference(config: Config, backend: Optional[InferenceBackend]) -> List[CheckResult]:
    mcfg = config.model
    engine = InferenceEngine(input_size=(mcfg.input_width, mcfg.input_height))
    try:
        load = engine.load(mcfg.path, backend or create_backend(mcfg.backend))
        if not load.ok:
            return [CheckResult("engine_load", False, load.reason or "load failed")]
        checks = [CheckResult("engine_load", True, f"backend={engine.backend_name}")]

        rng = np.random.default_rng(0)
        frame = Frame(data=rng.integers(0, 256, size=(mcfg.input_height, mcfg.input_width, 3), dtype=np.uint8))
        try:
            raw = engine.infer(preprocess(frame, mcfg.input_width, mcfg.input_height))
        except Exception as e:
            checks.append(CheckResult("smoke_inference", False, str(e)))
            return checks

        raw = np.asarray(raw)
        expected = len(mcfg.labels)
        if raw.size != expected:
            checks.append(
                CheckResult("smoke_inference", False, f"output has {raw.size} values, {expected} labels configured")
            )
            return checks
        detections = OutputDecoder(mcfg.labels, mcfg.confidence_threshold).decode(raw)
        checks.append(
            CheckResult(
                "smoke_inference",
                True,
                f"{engine.last_latency_ms:.1f} ms, {len(detections)} detections on random input",
            )
        )
        return checks
    finally:
        engine.close()


def _check_remote(config: Config) -> CheckResult:
    dcfg = config.detection
    required = dcfg.strategy == "remote"
    if dcfg.remote_url:
        return CheckResult("remote_endpoint", True, dcfg.remote_url, required=required)
    return CheckResult("remote_endpoint", not required, "remote_url not configured", required=required)


def verify_setup(config: Config, backend: Optional[InferenceBackend] = None) -> List[CheckResult]:
    checks = [_check_model_file(config), _check_runtime(config)]
    checks.extend(_check_engine_and_inference(config, backend))
    checks.append(_check_remote(config))
    return checks


def report(checks: List[CheckResult]) -> bool:
    """Log the checks; returns True if every required check passed."""
    logging.info("=" * 60)
    logging.info("ML SETUP VERIFICATION")
    logging.info("=" * 60)
    for i, check in enumerate(checks, 1):
        mark = "OK  " if check.ok else ("FAIL" if check.required else "WARN")
        logging.info(f"[{i}/{len(checks)}] {mark} {check.name}: {check.detail}")
    ok = all(c.ok for c in checks if c.required)
    logging.info("=" * 60)
    logging.info("All required checks passed" if ok else "Setup verification FAILED")
    return ok
