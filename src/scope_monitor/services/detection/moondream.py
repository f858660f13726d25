"""Moondream local vision backend."""

import asyncio
import logging
from typing import Any, Dict

import torch

from ...errors import ModelLoadError, UpstreamError
from ...utils.images import decode_data_url, to_pil
from .base import BaseVisionBackend, VisionRequest

logger = logging.getLogger(__name__)


def select_torch_device() -> str:
    """cuda on Nvidia GPUs, mps on Apple silicon, cpu otherwise."""
    if torch.cuda.is_available():
        return "cuda"
    if getattr(torch.backends, "mps", None) is not None and torch.backends.mps.is_available():
        return "mps"
    return "cpu"


class MoondreamBackend(BaseVisionBackend):
    """Answers detection prompts with a locally cached Moondream2 model."""

    name = "moondream"

    def __init__(self, config, local_files_only: bool = True):
        super().__init__(config)
        self.local_files_only = local_files_only
        self.model = None
        self.device = select_torch_device()

    async def load(self) -> None:
        """Load Moondream model."""
        if self.model is not None:
            return
        from transformers import AutoModelForCausalLM

        logger.info("Loading Moondream model %s on %s...", self.config.moondream_model, self.device)
        try:
            self.model = await asyncio.to_thread(
                AutoModelForCausalLM.from_pretrained,
                self.config.moondream_model,
                trust_remote_code=True,
                dtype=torch.bfloat16 if self.device != "cpu" else torch.float32,
                device_map=self.device,
                local_files_only=self.local_files_only
            )
        except Exception as e:
            logger.error("Error loading Moondream model: %s", e)
            raise ModelLoadError(
                f"Failed to load Moondream model {self.config.moondream_model}; "
                "make sure it is downloaded and cached locally"
            ) from e
        logger.info("Moondream model loaded")

    def _query(self, request: VisionRequest) -> str:
        # Moondream answers about one image: the newest frame carries the verdict
        image = to_pil(decode_data_url(request.image))
        prompt = request.prompt
        if request.is_multi_frame:
            prompt = (
                f"This is the latest of {len(request.frames)} frames captured "
                f"{request.interval:g} seconds apart.\n{prompt}"
            )
        result = self.model.query(image, prompt)
        return (result or {}).get("answer", "") or ""

    async def analyze(self, request: VisionRequest) -> str:
        if self.model is None:
            await self.load()
        try:
            answer = await asyncio.to_thread(self._query, request)
        except Exception as e:
            raise UpstreamError(f"Moondream query failed: {e}") from e
        if not answer:
            raise UpstreamError("Moondream returned an empty answer")
        return answer

    async def close(self) -> None:
        self.model = None
        if self.device == "cuda":
            torch.cuda.empty_cache()

    def health(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "status": "healthy" if self.model is not None else "not_loaded",
            "model": self.config.moondream_model,
            "device": self.device,
        }

    def get_backend_info(self) -> Dict[str, Any]:
        return {"name": self.name, "model": self.config.moondream_model, "device": self.device}
