"""Value types shared by the segmentation pipeline."""

from enum import Enum, IntEnum
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ...config.models import EngineMode


class PointLabel(IntEnum):
    """Prompt polarity; values match the decoder's label encoding."""
    NEGATIVE = 0
    POSITIVE = 1


class LoadStatus(Enum):
    """Segmentation engine lifecycle."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY_REAL = "ready_real"
    READY_DEMO = "ready_demo"


@dataclass(frozen=True)
class PointPrompt:
    """A click on the loaded image, in its pixel coordinates."""
    x: float
    y: float
    label: PointLabel = PointLabel.POSITIVE

    @classmethod
    def positive(cls, x: float, y: float) -> "PointPrompt":
        return cls(float(x), float(y), PointLabel.POSITIVE)

    @classmethod
    def negative(cls, x: float, y: float) -> "PointPrompt":
        return cls(float(x), float(y), PointLabel.NEGATIVE)


@dataclass
class Mask:
    """Binary mask, values 0 or 255, shape (height, width)."""
    data: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        if self.data.size != self.width * self.height:
            raise ValueError(
                f"Mask data has {self.data.size} elements, expected {self.width}x{self.height}"
            )
        self.data = self.data.reshape(self.height, self.width)

    @property
    def area(self) -> int:
        return int(np.count_nonzero(self.data))


@dataclass(frozen=True)
class MaskBounds:
    """Tight bounding box of a mask's foreground, inclusive origin."""
    x: int
    y: int
    width: int
    height: int

    @property
    def center(self):
        return (self.x + (self.width - 1) / 2.0, self.y + (self.height - 1) / 2.0)


@dataclass
class SegmentationResult:
    """Masks and index-aligned quality scores from one segment() call."""
    masks: List[Mask] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    processing_time_ms: float = 0.0
    mode: Optional[EngineMode] = None

    def __post_init__(self):
        if len(self.masks) != len(self.scores):
            raise ValueError(
                f"{len(self.masks)} masks but {len(self.scores)} scores"
            )

    @property
    def is_demo(self) -> bool:
        return self.mode == EngineMode.DEMO

    def best_index(self) -> Optional[int]:
        """Index of the highest-scoring mask, None when empty."""
        if not self.scores:
            return None
        return int(np.argmax(self.scores))
