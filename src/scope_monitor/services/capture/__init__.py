"""Frame capture, motion gating and scheduling."""

from .buffer import FrameBuffer
from .motion import MotionData, MotionGate
from .sources import CameraSource, FrameSource, VideoFileSource

__all__ = ['FrameBuffer', 'MotionData', 'MotionGate', 'CameraSource', 'FrameSource', 'VideoFileSource']
