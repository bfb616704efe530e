"""
Pull-based frame sources.

The scheduler asks for the latest frame once per cycle; a source returns
None when no frame is available, which is a missed frame and not an error.
Frames are always handed out in RGB order.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import cv2
import numpy as np

from models.frame import Frame


class FrameSource(Protocol):
    def latest_frame(self) -> Optional[Frame]:
        ...

    def release(self) -> None:
        ...


class OpenCVFrameSource:
    """
    OpenCV capture for USB webcams, RTSP streams and video files.

    The device is opened lazily on the first read and reopened after a
    failed read.
    """

    def __init__(
        self,
        device_id: Union[int, str] = 0,
        resolution: Optional[Tuple[int, int]] = None,
        source_id: str = "camera",
    ) -> None:
        self.device_id = device_id
        self.resolution = resolution
        self.source_id = source_id
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_index = 0

    def _open(self) -> bool:
        self._cap = cv2.VideoCapture(self.device_id)
        if not self._cap.isOpened():
            logging.warning(f"[Camera] Failed to open camera device {self.device_id}")
            self._cap = None
            return False
        if isinstance(self.device_id, int) and self.resolution:
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        logging.info(f"[Camera] Opened {self.device_id}")
        return True

    def latest_frame(self) -> Optional[Frame]:
        if self._cap is None and not self._open():
            return None

        ok, bgr = self._cap.read()
        if not ok or bgr is None:
            logging.debug("[Camera] No frame available, reopening on next read")
            self.release()
            return None

        self._frame_index += 1
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        return Frame(data=rgb, timestamp=time.time(), frame_index=self._frame_index, source=self.source_id)

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


class StaticFrameSource:
    """
    Cycles through a fixed list of images, either arrays or file paths.

    Useful on machines without a camera and as a test seam.
    """

    def __init__(self, images: Sequence[Union[np.ndarray, str]], source_id: str = "static") -> None:
        self.source_id = source_id
        self._images: List[np.ndarray] = [self._load(img) for img in images]
        self._pos = 0
        self._frame_index = 0

    @staticmethod
    def _load(img: Union[np.ndarray, str]) -> np.ndarray:
        if isinstance(img, np.ndarray):
            return img
        if not os.path.exists(img):
            raise FileNotFoundError(f"Image not found: {img}")
        bgr = cv2.imread(img, cv2.IMREAD_COLOR)
        if bgr is None:
            raise ValueError(f"Could not decode image: {img}")
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

    def latest_frame(self) -> Optional[Frame]:
        if not self._images:
            return None
        img = self._images[self._pos % len(self._images)]
        self._pos += 1
        self._frame_index += 1
        return Frame.from_numpy(img, frame_index=self._frame_index, source=self.source_id)

    def release(self) -> None:
        self._images = []


def create_frame_source(camera_cfg: Dict[str, Any]) -> FrameSource:
    backend = camera_cfg.get("backend", "opencv")
    if backend == "static":
        return StaticFrameSource(camera_cfg.get("images") or [])
    resolution = camera_cfg.get("resolution")
    return OpenCVFrameSource(
        device_id=camera_cfg.get("device_id", 0),
        resolution=tuple(resolution) if resolution else None,
    )
