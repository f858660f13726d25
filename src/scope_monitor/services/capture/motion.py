"""Pixel-difference motion gate."""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MotionData:
    """Outcome of comparing two frames."""
    has_motion: bool
    change_percent: float

    def to_dict(self) -> dict:
        return {"hasMotion": self.has_motion, "changePercent": round(self.change_percent, 1)}


ASSUMED_MOTION = MotionData(has_motion=True, change_percent=100.0)


class MotionGate:
    """Decides whether a scene changed enough to be worth a detection call."""

    def __init__(
        self,
        threshold: float = 0.15,
        pixel_threshold: int = 30,
        comparison_size: Tuple[int, int] = (160, 120)
    ):
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"Motion threshold must be in (0, 1), got {threshold}")
        self.threshold = threshold
        self.pixel_threshold = pixel_threshold
        self.comparison_size = comparison_size

    def _downscale(self, frame: np.ndarray) -> np.ndarray:
        small = cv2.resize(frame, self.comparison_size, interpolation=cv2.INTER_AREA)
        return small[:, :, :3].astype(np.int16)

    def change_percent(self, previous: np.ndarray, current: np.ndarray) -> float:
        """Share of pixels (0-100) whose summed RGB difference exceeds the pixel threshold."""
        diff = np.abs(self._downscale(previous) - self._downscale(current)).sum(axis=2)
        changed = int(np.count_nonzero(diff > self.pixel_threshold))
        return changed / diff.size * 100.0

    def compare(self, previous: Optional[np.ndarray], current: np.ndarray) -> MotionData:
        """
        Compare two frames; fails open.

        With no previous frame, or when estimation raises, motion is assumed
        so monitoring is never silently suppressed.
        """
        if previous is None:
            return ASSUMED_MOTION
        try:
            percent = self.change_percent(previous, current)
        except Exception as e:
            logger.warning("Motion detection failed, assuming motion: %s", e)
            return ASSUMED_MOTION

        has_motion = percent > self.threshold * 100
        logger.debug("Motion: %.1f%% change, motion=%s", percent, has_motion)
        return MotionData(has_motion=has_motion, change_percent=percent)
