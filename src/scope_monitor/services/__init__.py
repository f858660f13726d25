"""Service modules for Scope Monitor."""

from .events import DetectionEvent

__all__ = ['DetectionEvent']
