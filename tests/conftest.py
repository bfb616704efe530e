"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.frame import Frame  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model:
  path: "models/waste_classifier.onnx"
  input_width: 224
  input_height: 224
  confidence_threshold: 0.6
  backend: "accelerated"

detection:
  strategy: "local"
  remote_timeout: 4.0
  mock_fallback: true

scheduler:
  interval: 2.0
  timeout: 5.0
  max_spawns_per_cycle: 3

camera:
  backend: "opencv"
  device_id: 0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model": {
            "path": "models/waste_classifier.onnx",
            "input_width": 224,
            "input_height": 224,
            "confidence_threshold": 0.6,
            "backend": "accelerated",
            "labels": ["plastic_bottle", "can", "paper", "glass"],
        },
        "detection": {
            "strategy": "local",
            "remote_url": None,
            "remote_timeout": 4.0,
            "mock_fallback": True,
        },
        "scheduler": {
            "interval": 2.0,
            "timeout": 5.0,
            "max_spawns_per_cycle": 3,
        },
        "spawn": {
            "distance": 5.0,
            "fov_deg": 60.0,
            "viewport": [1080, 1920],
        },
        "camera": {
            "backend": "opencv",
            "device_id": 0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def labels():
    return ["plastic_bottle", "can", "paper", "glass"]


@pytest.fixture
def rgb_frame():
    """A 480x640 RGB frame with a horizontal gradient."""
    row = np.linspace(0, 255, 640, dtype=np.uint8)
    data = np.stack([np.tile(row, (480, 1))] * 3, axis=-1)
    return Frame(data=data, frame_index=1, source="test")
