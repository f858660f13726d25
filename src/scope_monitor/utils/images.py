"""Image conversion helpers (data URLs, color order, file loading)."""

import base64

import cv2
import numpy as np

from ..errors import ConfigurationError


def encode_data_url(image: np.ndarray, quality: int = 80) -> str:
    """Encode an RGB image as a JPEG data URL, RGBA as PNG to keep alpha."""
    if image.ndim == 3 and image.shape[2] == 4:
        ok, buffer = cv2.imencode(".png", cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA))
        mime = "image/png"
    else:
        ok, buffer = cv2.imencode(
            ".jpg",
            cv2.cvtColor(image, cv2.COLOR_RGB2BGR),
            [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)]
        )
        mime = "image/jpeg"
    if not ok:
        raise ValueError("Failed to encode image")
    return f"data:{mime};base64,{base64.b64encode(buffer.tobytes()).decode()}"


def decode_data_url(data_url: str) -> np.ndarray:
    """Decode a data URL (or bare base64) into an RGB image."""
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    raw = np.frombuffer(base64.b64decode(payload), dtype=np.uint8)
    bgr = cv2.imdecode(raw, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ValueError("Data URL does not contain a decodable image")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def bgr_to_rgb(frame: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


def load_image(path: str) -> np.ndarray:
    """Load an image file as RGB."""
    bgr = cv2.imread(path, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ConfigurationError(f"Could not read image: {path}")
    return bgr_to_rgb(bgr)


def to_pil(image: np.ndarray):
    """RGB/RGBA array to a PIL image."""
    from PIL import Image
    return Image.fromarray(image)
