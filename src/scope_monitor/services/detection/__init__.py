"""Detection services: vision backends and the detection orchestrator."""

from .base import BaseVisionBackend, VisionRequest
from .factory import VisionBackendFactory
from .orchestrator import DetectionOrchestrator

__all__ = ['BaseVisionBackend', 'VisionRequest', 'VisionBackendFactory', 'DetectionOrchestrator']
