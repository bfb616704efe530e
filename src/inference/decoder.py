"""
Decode raw classifier scores into detections.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from models.detection import DEFAULT_BBOX, Detection
from models.errors import DecodeAnomaly


class OutputDecoder:
    """
    Turns one score vector into detections above a threshold.

    The reference model is a pure classifier, so every detection gets the
    same centered placeholder box. If a model with a localization head is
    used later, this contract has to change rather than guess a box.
    """

    def __init__(self, labels: Sequence[str], threshold: float = 0.6):
        if not labels:
            raise ValueError("labels must not be empty")
        self.labels = list(labels)
        self.threshold = float(threshold)

    def decode(self, raw: np.ndarray) -> List[Detection]:
        try:
            scores = self._validate(raw)
        except DecodeAnomaly as e:
            logging.warning(f"[Decode] Anomaly: {e}")
            return []

        detections: List[Detection] = []
        for i, score in enumerate(scores):
            if score >= self.threshold:
                detections.append(Detection(self.labels[i], float(score), DEFAULT_BBOX))

        if not detections:
            logging.debug(f"[Decode] No detections above threshold ({self.threshold:.2f})")
        return detections

    def _validate(self, raw: np.ndarray) -> np.ndarray:
        if raw is None:
            raise DecodeAnomaly("output is None")
        try:
            scores = np.asarray(raw, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise DecodeAnomaly(f"output is not numeric: {e}") from e

        # Drop the batch axis: (1, N) -> (N,)
        if scores.ndim == 2 and scores.shape[0] == 1:
            scores = scores[0]
        if scores.ndim != 1:
            raise DecodeAnomaly(f"expected a 1-D score vector, got shape {list(scores.shape)}")
        if len(scores) != len(self.labels):
            raise DecodeAnomaly(f"output length {len(scores)} does not match {len(self.labels)} labels")
        if not np.all(np.isfinite(scores)):
            raise DecodeAnomaly("output contains non-finite values")
        if np.any(scores > 1.0):
            raise DecodeAnomaly("output contains scores above 1.0")
        return scores
