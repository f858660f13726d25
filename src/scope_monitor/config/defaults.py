"""Default configuration values for Scope Monitor."""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv


def load_environment(path: Optional[str] = None) -> bool:
    """Load a .env file (default: nearest one above the working directory); set variables win."""
    return load_dotenv(path or find_dotenv(usecwd=True))


# Load .env before the defaults below read the environment
load_environment()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


DEFAULT_CONFIG = {
    "vision": {
        "backend": os.environ.get("SCOPE_VISION_BACKEND", "openai"),
        "api_key": os.environ.get("OPENAI_API_KEY", ""),
        "base_url": os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        "model": os.environ.get("SCOPE_VISION_MODEL", "gpt-4o-mini"),
        "timeout": _env_float("SCOPE_VISION_TIMEOUT", 30.0),
        "temperature": 0.1,
        "max_tokens": 150,
        "max_tokens_complex": 250,
        "image_detail": "low",
        "moondream_model": "vikhyatk/moondream2",
    },
    "capture": {
        "interval": _env_float("SCOPE_CAPTURE_INTERVAL", 2.0),
        "min_interval": 0.5,
        "max_interval": 60.0,
        "motion_detection": True,
        "motion_threshold": 0.15,
        "pixel_threshold": 30,        # summed |dR|+|dG|+|dB| per pixel
        "comparison_size": (160, 120),
        "buffer_size": 3,
        "min_complex_frames": 2,
        "jpeg_quality": 80,
    },
    "segmentation": {
        "enabled": False,
        "models_dir": os.environ.get("SCOPE_MODELS_DIR", ""),
        "model_size": "tiny",
        "use_acceleration": True,
        "multimask_output": True,
        "input_size": 1024,
    },
    "nats": {
        "url": os.environ.get("SCOPE_NATS_URL", "nats://localhost:4222"),
        "subject_root": "scope.events.detection",
    },
}


def setup_opencv_environment() -> None:
    """Silence OpenCV backend chatter before cv2 opens any device."""
    os.environ.setdefault("OPENCV_LOG_LEVEL", "ERROR")
    os.environ.setdefault("OPENCV_VIDEOIO_DEBUG", "0")
