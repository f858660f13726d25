"""Model configuration, engine modes and monitoring settings."""

import os
from enum import Enum
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .defaults import DEFAULT_CONFIG


class ModelSize(Enum):
    """Available SAM2 model sizes."""
    TINY = "tiny"
    SMALL = "small"
    BASE = "base"
    LARGE = "large"


class EngineMode(Enum):
    """Mode the segmentation engine settled in after initialize()."""
    REAL = "real"    # ONNX encoder/decoder loaded
    DEMO = "demo"    # synthetic masks, no model artifacts


class VisionBackendKind(Enum):
    """Available vision collaborators."""
    OPENAI = "openai"          # OpenAI-compatible chat completions
    MOONDREAM = "moondream"    # Local Moondream2


@dataclass
class ModelArtifacts:
    """Encoder/decoder artifact names for one model size."""
    size: ModelSize
    encoder_file: str
    decoder_file: str
    description: str = ""


def _artifacts(size: ModelSize, description: str) -> ModelArtifacts:
    return ModelArtifacts(
        size=size,
        encoder_file=f"sam2_hiera_{size.value}_encoder.onnx",
        decoder_file=f"sam2_hiera_{size.value}_decoder.onnx",
        description=description
    )


MODEL_ARTIFACTS = {
    ModelSize.TINY: _artifacts(ModelSize.TINY, "SAM2 Hiera-T, fastest"),
    ModelSize.SMALL: _artifacts(ModelSize.SMALL, "SAM2 Hiera-S"),
    ModelSize.BASE: _artifacts(ModelSize.BASE, "SAM2 Hiera-B+"),
    ModelSize.LARGE: _artifacts(ModelSize.LARGE, "SAM2 Hiera-L, most accurate"),
}


def get_model_artifacts(size: ModelSize) -> ModelArtifacts:
    """Get artifact names for a model size."""
    return MODEL_ARTIFACTS[size]


def get_models_dir() -> str:
    """Get the directory holding the SAM2 ONNX artifacts."""
    configured = DEFAULT_CONFIG["segmentation"]["models_dir"]
    if configured:
        return configured
    # Navigate from src/scope_monitor/config/ to project root
    root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
    return os.path.join(root, "models", "sam2")


@dataclass
class SegmentationConfig:
    """Configuration for the segmentation engine."""
    model_size: ModelSize = ModelSize.TINY
    use_acceleration: bool = True
    multimask_output: bool = True
    models_dir: Optional[str] = None
    input_size: int = 1024

    @classmethod
    def from_defaults(cls) -> "SegmentationConfig":
        defaults = DEFAULT_CONFIG["segmentation"]
        return cls(
            model_size=ModelSize(defaults["model_size"]),
            use_acceleration=defaults["use_acceleration"],
            multimask_output=defaults["multimask_output"],
            models_dir=defaults["models_dir"] or None,
            input_size=defaults["input_size"]
        )

    @property
    def artifacts(self) -> ModelArtifacts:
        return get_model_artifacts(self.model_size)

    def model_path(self, kind: str) -> str:
        """Resolve the artifact path for 'encoder' or 'decoder'."""
        if kind not in ("encoder", "decoder"):
            raise ValueError(f"Unknown model kind: {kind}")
        filename = self.artifacts.encoder_file if kind == "encoder" else self.artifacts.decoder_file
        return os.path.join(self.models_dir or get_models_dir(), filename)


@dataclass
class CaptureConfig:
    """Capture interval and motion-gating policy."""
    interval: float = 2.0
    motion_detection: bool = True
    motion_threshold: float = 0.15
    pixel_threshold: int = 30
    comparison_size: Tuple[int, int] = (160, 120)
    buffer_size: int = 3
    min_complex_frames: int = 2
    segmentation_enabled: bool = False
    jpeg_quality: int = 80

    @classmethod
    def from_defaults(cls) -> "CaptureConfig":
        defaults = DEFAULT_CONFIG["capture"]
        return cls(
            interval=defaults["interval"],
            motion_detection=defaults["motion_detection"],
            motion_threshold=defaults["motion_threshold"],
            pixel_threshold=defaults["pixel_threshold"],
            comparison_size=tuple(defaults["comparison_size"]),
            buffer_size=defaults["buffer_size"],
            min_complex_frames=defaults["min_complex_frames"],
            segmentation_enabled=DEFAULT_CONFIG["segmentation"]["enabled"],
            jpeg_quality=defaults["jpeg_quality"]
        )


@dataclass
class VisionConfig:
    """Settings for the vision collaborator."""
    backend: VisionBackendKind = VisionBackendKind.OPENAI
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout: float = 30.0
    temperature: float = 0.1
    max_tokens: int = 150
    max_tokens_complex: int = 250
    image_detail: str = "low"
    moondream_model: str = "vikhyatk/moondream2"

    @classmethod
    def from_defaults(cls) -> "VisionConfig":
        defaults = DEFAULT_CONFIG["vision"]
        return cls(
            backend=VisionBackendKind(defaults["backend"]),
            api_key=defaults["api_key"],
            base_url=defaults["base_url"],
            model=defaults["model"],
            timeout=defaults["timeout"],
            temperature=defaults["temperature"],
            max_tokens=defaults["max_tokens"],
            max_tokens_complex=defaults["max_tokens_complex"],
            image_detail=defaults["image_detail"],
            moondream_model=defaults["moondream_model"]
        )


@dataclass
class WatchTarget:
    """What to watch for. Owned by the caller, read-only to the core."""
    description: str
    confidence: float = 0.7
    reference_image: Optional[Any] = None
