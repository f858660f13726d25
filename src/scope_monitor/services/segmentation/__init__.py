"""Point-prompted segmentation services."""

from .engine import SegmentationEngine
from .session import InteractiveSegmentation
from .demo import DemoMaskGenerator
from .inference import TensorInferenceClient
from .postprocess import binarize_masks, crop_masks, crop_to_mask, find_mask_bounds
from .preprocess import preprocess_image
from .types import LoadStatus, Mask, MaskBounds, PointLabel, PointPrompt, SegmentationResult

__all__ = [
    'SegmentationEngine',
    'InteractiveSegmentation',
    'DemoMaskGenerator',
    'TensorInferenceClient',
    'binarize_masks',
    'crop_masks',
    'crop_to_mask',
    'find_mask_bounds',
    'preprocess_image',
    'LoadStatus',
    'Mask',
    'MaskBounds',
    'PointLabel',
    'PointPrompt',
    'SegmentationResult'
]
