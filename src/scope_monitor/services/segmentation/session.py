"""Click-driven segmentation over one displayed image."""

import inspect
import logging
from typing import Callable, List, Optional, Sequence

import numpy as np

from .engine import SegmentationEngine
from .postprocess import crop_masks
from .types import PointLabel, PointPrompt, SegmentationResult

logger = logging.getLogger(__name__)

SegmentationListener = Callable[[SegmentationResult, List[Optional[np.ndarray]]], object]


class InteractiveSegmentation:
    """
    Accumulates point prompts for the current image and re-decodes on each click.

    The image is encoded once in load_image(); every add_point() decodes the
    full point list against the cached embedding and crops the source image
    to each resulting mask.
    """

    def __init__(self, engine: SegmentationEngine):
        self.engine = engine
        self.image: Optional[np.ndarray] = None
        self.points: List[PointPrompt] = []
        self.last_result: Optional[SegmentationResult] = None
        self.last_crops: List[Optional[np.ndarray]] = []
        self._listeners: List[SegmentationListener] = []

    def on_result(self, listener: SegmentationListener) -> None:
        """Register ``listener(result, cropped_images)``; may be a coroutine function."""
        self._listeners.append(listener)

    async def load_image(self, image: np.ndarray, keep_points: bool = False) -> None:
        """Make ``image`` current: initialize the engine if needed and encode it."""
        await self.engine.initialize()
        await self.engine.encode_image(image)
        self.image = image
        self.last_result = None
        self.last_crops = []
        if not keep_points:
            self.points = []

    async def add_point(self, x: float, y: float, positive: bool = True) -> SegmentationResult:
        label = PointLabel.POSITIVE if positive else PointLabel.NEGATIVE
        self.points.append(PointPrompt(float(x), float(y), label))
        return await self.run()

    async def set_points(self, points: Sequence[PointPrompt]) -> SegmentationResult:
        self.points = list(points)
        return await self.run()

    def clear_points(self) -> None:
        self.points = []
        self.last_result = None
        self.last_crops = []

    async def run(self) -> SegmentationResult:
        """Decode the current point list and notify listeners."""
        if self.image is None:
            raise ValueError("No image loaded; call load_image() first")
        result = await self.engine.segment(self.points, image=self.image)
        crops = crop_masks(self.image, result.masks)
        self.last_result = result
        self.last_crops = crops

        logger.debug(
            "Segmented %d points -> %d masks (%s mode, %.0fms)",
            len(self.points), len(result.masks),
            result.mode.value if result.mode else "?", result.processing_time_ms
        )
        for listener in self._listeners:
            try:
                outcome = listener(result, crops)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Segmentation listener failed")
        return result

    def best_crop(self) -> Optional[np.ndarray]:
        """Crop of the highest-scoring mask from the last run."""
        if self.last_result is None:
            return None
        best = self.last_result.best_index()
        return self.last_crops[best] if best is not None else None
