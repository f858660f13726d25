"""Factory for creating vision backend instances."""

from typing import Dict

from ...config.models import VisionBackendKind, VisionConfig
from .base import BaseVisionBackend

BACKEND_DESCRIPTIONS = {
    VisionBackendKind.OPENAI: "OpenAI-compatible chat completions with image inputs",
    VisionBackendKind.MOONDREAM: "Local Moondream2 (transformers, no network)",
}


class VisionBackendFactory:
    """Factory for creating vision backends."""

    @staticmethod
    def create_backend(kind: VisionBackendKind, config: VisionConfig) -> BaseVisionBackend:
        """Create backend instance for the specified kind."""
        if kind == VisionBackendKind.OPENAI:
            from .openai_vision import OpenAIVisionBackend
            return OpenAIVisionBackend(config)

        elif kind == VisionBackendKind.MOONDREAM:
            from .moondream import MoondreamBackend
            return MoondreamBackend(config)

        else:
            raise ValueError(f"Unknown vision backend: {kind}")

    @staticmethod
    def get_available_backends() -> Dict[str, str]:
        """Get available backends and descriptions."""
        return {kind.value: BACKEND_DESCRIPTIONS[kind] for kind in VisionBackendKind}

    @staticmethod
    def list_backends() -> None:
        """Print available vision backends."""
        print("\n=== Available Vision Backends ===")
        for name, description in VisionBackendFactory.get_available_backends().items():
            default_indicator = " (DEFAULT)" if name == VisionBackendKind.OPENAI.value else ""
            print(f"  {name}{default_indicator}")
            print(f"    {description}")
        print("=" * 33)
