"""Mask binarization, bounds and cropping."""

from typing import List, Optional, Sequence

import cv2
import numpy as np

from ...errors import InferenceError
from .types import Mask, MaskBounds

LOGIT_THRESHOLD = 0.0


def binarize_masks(tensor: np.ndarray) -> List[Mask]:
    """Threshold decoder logits (> 0 is foreground) into 0/255 masks."""
    array = np.asarray(tensor)
    if array.ndim == 4:
        if array.shape[0] != 1:
            raise InferenceError(f"Expected batch size 1 in mask tensor, got {array.shape[0]}")
        array = array[0]
    if array.ndim != 3:
        raise InferenceError(f"Unexpected mask tensor shape {np.asarray(tensor).shape}")

    masks = []
    _, height, width = array.shape
    for channel in array:
        data = np.where(channel > LOGIT_THRESHOLD, 255, 0).astype(np.uint8)
        masks.append(Mask(data=data, width=int(width), height=int(height)))
    return masks


def find_mask_bounds(mask: Mask) -> Optional[MaskBounds]:
    """Tight bounding box of foreground pixels, None for an empty mask."""
    ys, xs = np.nonzero(mask.data)
    if xs.size == 0:
        return None
    x_min, x_max = int(xs.min()), int(xs.max())
    y_min, y_max = int(ys.min()), int(ys.max())
    return MaskBounds(x=x_min, y=y_min, width=x_max - x_min + 1, height=y_max - y_min + 1)


def _fit_mask(mask: Mask, width: int, height: int) -> Mask:
    if mask.width == width and mask.height == height:
        return mask
    # Decoder masks come back at the encoder's 1024x1024 resolution
    resized = cv2.resize(mask.data, (width, height), interpolation=cv2.INTER_NEAREST)
    return Mask(data=resized, width=width, height=height)


def crop_to_mask(image: np.ndarray, mask: Mask) -> Optional[np.ndarray]:
    """
    Crop an RGB/RGBA image to the mask's bounding box.

    Pixels inside the box but outside the mask become transparent black.

    Returns:
        ``h x w x 4`` RGBA uint8 crop, or None when the mask is empty
    """
    height, width = image.shape[:2]
    fitted = _fit_mask(mask, width, height)
    bounds = find_mask_bounds(fitted)
    if bounds is None:
        return None

    y0, y1 = bounds.y, bounds.y + bounds.height
    x0, x1 = bounds.x, bounds.x + bounds.width

    region = image[y0:y1, x0:x1]
    if region.shape[2] == 3:
        alpha = np.full(region.shape[:2] + (1,), 255, dtype=np.uint8)
        region = np.concatenate([region, alpha], axis=2)
    else:
        region = region.copy()

    inside = fitted.data[y0:y1, x0:x1] > 0
    region[~inside] = 0
    return region


def crop_masks(image: np.ndarray, masks: Sequence[Mask]) -> List[Optional[np.ndarray]]:
    """One crop per mask, index-aligned; empty masks yield None."""
    return [crop_to_mask(image, mask) for mask in masks]
