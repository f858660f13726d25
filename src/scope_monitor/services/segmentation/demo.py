"""Synthetic masks for running without SAM2 model artifacts."""

import logging
import time
from typing import Optional, Sequence

import numpy as np

from ...config.models import EngineMode
from .types import Mask, PointLabel, PointPrompt, SegmentationResult

logger = logging.getLogger(__name__)

MIN_RADIUS = 50.0
MAX_RADIUS = 75.0
EDGE_NOISE = 0.3
MIN_SCORE = 0.70
MAX_SCORE = 0.95


class DemoMaskGenerator:
    """Ragged circular masks around positive clicks with plausible scores."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _circle_mask(self, point: PointPrompt, width: int, height: int) -> Mask:
        radius = self.rng.uniform(MIN_RADIUS, MAX_RADIUS)
        cx, cy = int(np.floor(point.x)), int(np.floor(point.y))

        ys, xs = np.ogrid[:height, :width]
        distance = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / radius
        noise = self.rng.random((height, width)) * EDGE_NOISE

        data = np.where(distance + noise < 1.0, 255, 0).astype(np.uint8)
        return Mask(data=data, width=width, height=height)

    def generate(self, points: Sequence[PointPrompt], width: int, height: int) -> SegmentationResult:
        """One mask per positive point; negative points produce nothing."""
        start = time.perf_counter()
        masks, scores = [], []

        for point in points:
            if point.label != PointLabel.POSITIVE:
                continue
            masks.append(self._circle_mask(point, width, height))
            scores.append(float(self.rng.uniform(MIN_SCORE, MAX_SCORE)))

        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("Demo segmentation: %d masks from %d points", len(masks), len(points))
        return SegmentationResult(
            masks=masks,
            scores=scores,
            processing_time_ms=elapsed,
            mode=EngineMode.DEMO
        )
