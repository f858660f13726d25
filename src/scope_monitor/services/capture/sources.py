"""Frame sources: live cameras, stream URLs and video files."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Union

import cv2
import numpy as np

from ...errors import ConfigurationError
from ...utils.images import bgr_to_rgb

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Something the scheduler can grab the current frame from."""

    name = "source"

    @abstractmethod
    def open(self) -> None:
        pass

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Current frame as RGB, or None if no frame is available."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


class CameraSource(FrameSource):
    """Live camera by index, V4L2 device path or stream URL."""

    def __init__(self, device: Union[int, str] = 0, width: int = None, height: int = None):
        self.device = device
        self.width = width
        self.height = height
        self.cap: Optional[cv2.VideoCapture] = None
        self.name = f"camera:{device}"

    def open(self) -> None:
        self.cap = cv2.VideoCapture(self.device)
        if not self.cap.isOpened():
            self.cap = None
            raise ConfigurationError(f"Could not open camera {self.device}")
        if self.width:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        logger.info(
            "Opened %s (%dx%d, backend %s)",
            self.name,
            int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            self.cap.getBackendName()
        )

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None
        ret, frame = self.cap.read()
        if not ret or frame is None:
            logger.warning("Failed to capture frame from %s", self.name)
            return None
        return bgr_to_rgb(frame)

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class VideoFileSource(FrameSource):
    """
    Uploaded/recorded video played back in real time.

    Each read returns the frame at the current playback position, which
    advances with wall-clock time like a playing video element; playback
    loops at the end.
    """

    def __init__(self, path: str, loop: bool = True, clock=None):
        self.path = path
        self.loop = loop
        self.clock = clock or time.monotonic
        self.cap: Optional[cv2.VideoCapture] = None
        self.fps = 0.0
        self.frame_count = 0
        self.started_at = 0.0
        self.name = f"video:{path}"

    def open(self) -> None:
        self.cap = cv2.VideoCapture(self.path)
        if not self.cap.isOpened():
            self.cap = None
            raise ConfigurationError(f"Could not open video file {self.path}")
        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.started_at = self.clock()
        logger.info("Opened %s (%d frames @ %.1f fps)", self.name, self.frame_count, self.fps)

    def seek(self, seconds: float) -> None:
        """Jump playback to ``seconds`` from the start."""
        self.started_at = self.clock() - max(0.0, seconds)

    def _position(self) -> Optional[int]:
        index = int((self.clock() - self.started_at) * self.fps)
        if self.frame_count <= 0:
            return index
        if index >= self.frame_count:
            if not self.loop:
                return None
            index %= self.frame_count
        return index

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None
        index = self._position()
        if index is None:
            return None
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, index)
        ret, frame = self.cap.read()
        if not ret or frame is None:
            return None
        return bgr_to_rgb(frame)

    def close(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
