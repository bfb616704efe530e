"""
Litter Spawn: periodic litter detection driving AR spawns.

Every `scheduler.interval` seconds a frame is captured, run through the
configured detection strategy (local ONNX model or remote endpoint), and
each confident detection becomes a spawn decision in front of the camera.

Usage:
    python src/main.py --config config/config.yaml --web

Arguments:
    --config: Path to configuration file
    --web: Serve the status API and reference /detect endpoint
    --verify: Check model/runtime setup and exit
    --strategy: Override detection.strategy (local|remote)
    --duration: Stop after this many seconds (default: run until interrupted)
"""

import os
import sys
import argparse
import asyncio
import logging
import threading
from typing import Dict, Any, Tuple, Optional

import yaml
import uvicorn

from models.config import Config
from ops.logging import setup_logging
from ops.verify import report, verify_setup
from runtime.context import RuntimeContext, build_context
from web.app import create_app


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['model', 'detection', 'scheduler', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Model
    model = config.get('model') or {}
    if not isinstance(model.get('path'), str) or not model.get('path'):
        return False, "model.path must be a non-empty string"
    for key in ('input_width', 'input_height'):
        if key in model and (not isinstance(model[key], int) or model[key] <= 0):
            return False, f"model.{key} must be a positive integer"
    if 'confidence_threshold' in model:
        thr = model['confidence_threshold']
        if not _is_number(thr) or not (0 <= thr <= 1):
            return False, "model.confidence_threshold must be between 0 and 1"
    if model.get('backend', 'accelerated') not in ('accelerated', 'portable', 'mock'):
        return False, "model.backend must be one of: accelerated, portable, mock"
    labels = model.get('labels')
    if labels is not None:
        if not isinstance(labels, list) or not labels or not all(isinstance(l, str) and l for l in labels):
            return False, "model.labels must be a non-empty list of strings"
        if len(set(labels)) != len(labels):
            return False, "model.labels must not contain duplicates"

    # Detection strategy
    detection = config.get('detection') or {}
    strategy = detection.get('strategy', 'local')
    if strategy not in ('local', 'remote'):
        return False, "detection.strategy must be one of: local, remote"
    remote_url = detection.get('remote_url')
    if remote_url is not None and not isinstance(remote_url, str):
        return False, "detection.remote_url must be a string"
    if strategy == 'remote' and not remote_url:
        return False, "detection.remote_url is required when detection.strategy is 'remote'"
    if 'remote_timeout' in detection:
        rt = detection['remote_timeout']
        if not _is_number(rt) or rt <= 0:
            return False, "detection.remote_timeout must be a positive number"
    if 'mock_fallback' in detection and not isinstance(detection['mock_fallback'], bool):
        return False, "detection.mock_fallback must be true or false"

    # Scheduler
    scheduler = config.get('scheduler') or {}
    for key in ('interval', 'timeout'):
        if key in scheduler and (not _is_number(scheduler[key]) or scheduler[key] <= 0):
            return False, f"scheduler.{key} must be a positive number"
    if 'max_spawns_per_cycle' in scheduler:
        msp = scheduler['max_spawns_per_cycle']
        if not isinstance(msp, int) or isinstance(msp, bool) or msp < 0:
            return False, "scheduler.max_spawns_per_cycle must be a non-negative integer"

    # Optional spawn settings
    spawn = config.get('spawn') or {}
    if 'distance' in spawn and (not _is_number(spawn['distance']) or spawn['distance'] <= 0):
        return False, "spawn.distance must be a positive number"
    if 'fov_deg' in spawn and (not _is_number(spawn['fov_deg']) or not (0 < spawn['fov_deg'] < 180)):
        return False, "spawn.fov_deg must be between 0 and 180"
    if 'viewport' in spawn:
        vp = spawn['viewport']
        if not isinstance(vp, list) or len(vp) != 2 or not all(isinstance(x, int) and x > 0 for x in vp):
            return False, "spawn.viewport must be a list of two positive integers [width, height]"
    if 'entity_map' in spawn and not isinstance(spawn['entity_map'], dict):
        return False, "spawn.entity_map must be a mapping of label -> entity type"

    # Optional camera settings
    camera = config.get('camera') or {}
    if camera.get('backend', 'opencv') not in ('opencv', 'static'):
        return False, "camera.backend must be one of: opencv, static"
    if 'device_id' in camera:
        if not isinstance(camera['device_id'], (int, str)):
            return False, "camera.device_id must be an integer (index) or string (URL)"
        if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
            return False, "camera.device_id integer must be non-negative"
    if camera.get('backend') == 'static' and not camera.get('images'):
        return False, "camera.images is required when camera.backend is 'static'"

    # Log settings
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def _start_web(ctx: RuntimeContext) -> threading.Thread:
    web = ctx.config.web

    def run_web_app():
        uvicorn.run(
            create_app(ctx),
            host=web.host,
            port=web.port,
            log_level="info",
        )

    web_thread = threading.Thread(target=run_web_app, daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on port {web.port}")
    return web_thread


async def run_pipeline(ctx: RuntimeContext, duration: Optional[float] = None) -> None:
    """Run the detection scheduler until cancelled or `duration` elapses."""
    scheduler = ctx.scheduler
    scheduler.start()
    try:
        if duration is not None:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        stats = scheduler.stats
        logging.info(
            f"Detection summary: cycles={stats.cycles}, spawns={stats.spawns}, "
            f"skipped_ticks={stats.skipped_ticks}, timeouts={stats.timeouts}, failures={stats.failures}"
        )


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Litter Spawn - detection-driven AR spawning')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--web', action='store_true',
                        help='Serve status API and /detect endpoint')
    parser.add_argument('--verify', action='store_true',
                        help='Verify model/runtime setup and exit')
    parser.add_argument('--strategy', choices=['local', 'remote'],
                        help='Override detection.strategy')
    parser.add_argument('--duration', type=float, default=None,
                        help='Stop after this many seconds')
    args = parser.parse_args()

    raw = load_config(args.config)
    if args.strategy:
        raw.setdefault('detection', {})['strategy'] = args.strategy

    is_valid, error_msg = validate_config(raw)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw)
    setup_logging(config.log_path, config.log_level)

    if args.verify:
        ok = report(verify_setup(config))
        sys.exit(0 if ok else 1)

    logging.info("Starting Litter Spawn")
    ctx = build_context(config)
    try:
        if args.web:
            _start_web(ctx)
        asyncio.run(run_pipeline(ctx, args.duration))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        ctx.close()
        logging.info("Litter Spawn stopped")


if __name__ == "__main__":
    main()
