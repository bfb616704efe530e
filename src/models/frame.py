"""
Frame model for captured camera images.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass
class Frame:
    """
    One captured camera image.

    The pixel buffer is marked read-only on construction so nothing
    downstream can mutate it. A frame is owned by the cycle that captured
    it; call release() once the cycle is done with it.

    Attributes:
        data: Pixel data as an (H, W, C) uint8 array, RGB or RGBA order.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source opened.
        source: Identifier for the camera/video source.
    """
    data: Optional[np.ndarray]
    timestamp: float = field(default_factory=time.time)
    frame_index: int = 0
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if self.data is not None:
            self.data = np.asarray(self.data)
            self.data.setflags(write=False)

    @classmethod
    def from_numpy(
        cls,
        data: np.ndarray,
        timestamp: Optional[float] = None,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "Frame":
        """Create a Frame from a numpy array (copied so the caller keeps ownership)."""
        return cls(
            data=np.array(data, copy=True),
            timestamp=time.time() if timestamp is None else timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def width(self) -> int:
        return 0 if self.data is None or self.data.ndim < 2 else int(self.data.shape[1])

    @property
    def height(self) -> int:
        return 0 if self.data is None or self.data.ndim < 2 else int(self.data.shape[0])

    @property
    def channels(self) -> int:
        if self.data is None or self.data.ndim < 2:
            return 0
        return 1 if self.data.ndim == 2 else int(self.data.shape[2])

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def is_empty(self) -> bool:
        return self.data is None or self.data.size == 0 or self.width == 0 or self.height == 0

    @property
    def released(self) -> bool:
        return self.data is None

    def release(self) -> None:
        """Drop the pixel buffer. Safe to call more than once."""
        self.data = None
