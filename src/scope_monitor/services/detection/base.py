"""Base vision backend class and the detection request contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ...config.models import VisionConfig
from ..capture.motion import ASSUMED_MOTION, MotionData


@dataclass
class VisionRequest:
    """
    One outbound detection request.

    ``frames`` are data URLs ordered oldest to newest; a single-frame
    request carries exactly one.
    """
    frames: List[str]
    target_description: str
    target_confidence: float
    prompt: str
    is_complex_action: bool = False
    motion: MotionData = ASSUMED_MOTION
    reference_image: Optional[str] = None
    focus_image: Optional[str] = None
    interval: float = 2.0

    @property
    def image(self) -> str:
        """The newest frame."""
        return self.frames[-1]

    @property
    def is_multi_frame(self) -> bool:
        return self.is_complex_action and len(self.frames) > 1

    def to_dict(self) -> Dict[str, Any]:
        """Wire format of the vision detection endpoint."""
        target = {
            "description": self.target_description,
            "confidence": self.target_confidence,
        }
        if self.reference_image:
            target["referenceImage"] = self.reference_image
        payload = {
            "image": self.image,
            "frames": list(self.frames),
            "target": target,
            "isComplexAction": self.is_complex_action,
            "motionData": self.motion.to_dict(),
            "prompt": self.prompt,
        }
        if self.focus_image:
            payload["focusImage"] = self.focus_image
        return payload


class BaseVisionBackend(ABC):
    """Abstract base class for all vision collaborators."""

    name = "vision"

    def __init__(self, config: VisionConfig):
        self.config = config

    async def load(self) -> None:
        """Prepare the backend (open clients, load weights)."""
        pass

    @abstractmethod
    async def analyze(self, request: VisionRequest) -> str:
        """
        Ask the vision model about the request's frames.

        Returns:
            The model's raw text answer (ideally a JSON object)

        Raises:
            ConfigurationError: backend is not configured
            NetworkError: collaborator unreachable
            UpstreamError: collaborator answered with an error or nothing
        """
        pass

    async def close(self) -> None:
        pass

    def health(self) -> Dict[str, Any]:
        """Backend readiness for diagnostics."""
        return {"backend": self.name, "status": "healthy"}

    def get_backend_info(self) -> Dict[str, Any]:
        return {"name": self.name, "model": self.config.model}
