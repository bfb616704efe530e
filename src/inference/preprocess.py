"""
Frame → input tensor conversion.

The reference classifier was trained on plain RGB scaled to [0, 1], so there
is no mean/std normalization and no colour-space correction here.
"""

from __future__ import annotations

import cv2
import numpy as np

from models.errors import PreprocessError
from models.frame import Frame


def preprocess(frame: Frame, target_width: int, target_height: int) -> np.ndarray:
    """
    Resample a frame and pack it as a float32 NHWC tensor.

    Args:
        frame: Captured RGB or RGBA frame. Not mutated.
        target_width: Model input width.
        target_height: Model input height.

    Returns:
        Array of shape (1, target_height, target_width, 3) with values in [0, 1].

    Raises:
        PreprocessError: If the frame is missing, released, empty or has an
            unsupported layout.
    """
    if target_width <= 0 or target_height <= 0:
        raise PreprocessError(f"Invalid target size {target_width}x{target_height}")
    if frame is None or frame.is_empty:
        raise PreprocessError("Frame is null or zero-sized")

    data = frame.data
    if data.ndim == 2:
        rgb = np.stack([data, data, data], axis=-1)
    elif data.ndim == 3 and data.shape[2] in (3, 4):
        rgb = data[:, :, :3]
    else:
        raise PreprocessError(f"Unsupported frame shape {data.shape}")

    if rgb.dtype != np.uint8:
        rgb = np.clip(rgb, 0, 255).astype(np.uint8)

    h, w = rgb.shape[:2]
    if (w, h) != (target_width, target_height):
        shrinking = target_width * target_height < w * h
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
        rgb = cv2.resize(
            np.ascontiguousarray(rgb),
            (target_width, target_height),
            interpolation=interpolation,
        )

    tensor = rgb.astype(np.float32) / 255.0
    return tensor.reshape(1, target_height, target_width, 3)
