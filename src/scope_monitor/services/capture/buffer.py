"""Bounded FIFO of recent frames for multi-frame analysis."""

from collections import deque
from typing import List

import numpy as np


class FrameBuffer:
    """Keeps the newest ``capacity`` frames; the oldest is evicted first."""

    def __init__(self, capacity: int = 3):
        if capacity < 1:
            raise ValueError("Frame buffer capacity must be at least 1")
        self._frames = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._frames.maxlen

    def append(self, frame: np.ndarray) -> None:
        self._frames.append(frame)

    def frames(self) -> List[np.ndarray]:
        """Buffered frames, oldest to newest."""
        return list(self._frames)

    def latest(self):
        return self._frames[-1] if self._frames else None

    def clear(self) -> None:
        self._frames.clear()

    def __len__(self) -> int:
        return len(self._frames)
