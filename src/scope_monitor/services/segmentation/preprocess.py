"""Image preprocessing for the SAM2 encoder."""

import cv2
import numpy as np

from ...errors import InferenceError

ENCODER_INPUT_SIZE = 1024


def preprocess_image(image: np.ndarray, size: int = ENCODER_INPUT_SIZE) -> np.ndarray:
    """
    Convert an RGB/RGBA uint8 image into the encoder input tensor.

    The image is stretched to ``size`` x ``size`` (aspect ratio is not
    preserved), alpha is dropped and the result is laid out channel-major in
    R, G, B order with values scaled to [0, 1].

    Args:
        image: ``H x W x 3`` (RGB) or ``H x W x 4`` (RGBA) uint8 array

    Returns:
        float32 array of shape (1, 3, size, size)
    """
    if not isinstance(image, np.ndarray) or image.ndim != 3 or image.shape[2] not in (3, 4):
        shape = getattr(image, "shape", None)
        raise InferenceError(f"Expected an RGB or RGBA image, got shape {shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise InferenceError("Cannot preprocess an empty image")

    rgb = np.ascontiguousarray(image[:, :, :3], dtype=np.uint8)
    resized = cv2.resize(rgb, (size, size), interpolation=cv2.INTER_LINEAR)

    planar = resized.transpose(2, 0, 1).astype(np.float32) / 255.0
    return planar[np.newaxis, ...]
