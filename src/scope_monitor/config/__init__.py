"""Configuration modules for Scope Monitor."""

from .defaults import DEFAULT_CONFIG
from .models import (
    CaptureConfig,
    EngineMode,
    ModelSize,
    SegmentationConfig,
    VisionBackendKind,
    VisionConfig,
    WatchTarget,
)
from .keywords import COMPLEX_ACTION_KEYWORDS, URGENCY_CATEGORIES, is_complex_action

__all__ = [
    'DEFAULT_CONFIG',
    'CaptureConfig',
    'EngineMode',
    'ModelSize',
    'SegmentationConfig',
    'VisionBackendKind',
    'VisionConfig',
    'WatchTarget',
    'COMPLEX_ACTION_KEYWORDS',
    'URGENCY_CATEGORIES',
    'is_complex_action'
]
