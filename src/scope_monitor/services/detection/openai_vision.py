"""OpenAI-compatible chat-completions vision backend."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ...config.models import VisionConfig
from ...errors import ConfigurationError, NetworkError, UpstreamError
from .base import BaseVisionBackend, VisionRequest
from .prompts import frame_label

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    401: "Vision API key is missing or invalid",
    403: "Vision API key is not allowed to use this model",
    404: "Vision model not available for this account",
    429: "Vision API rate limit or quota exceeded",
}


def mask_api_key(api_key: str) -> str:
    """Short preview of a key safe for logs."""
    if not api_key:
        return "Not configured"
    if len(api_key) <= 14:
        return api_key[:3] + "..."
    return api_key[:10] + "..." + api_key[-4:]


class OpenAIVisionBackend(BaseVisionBackend):
    """Sends frames to a chat-completions endpoint with image inputs."""

    name = "openai"

    def __init__(self, config: VisionConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self._client = client
        self._owns_client = client is None

    async def load(self) -> None:
        if not self.config.api_key:
            raise ConfigurationError("Vision API key not configured (set OPENAI_API_KEY)")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.timeout
            )
        logger.info("Vision backend ready: %s (key %s)", self.config.model, mask_api_key(self.config.api_key))

    def _image_part(self, url: str) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": url, "detail": self.config.image_detail}}

    def build_messages(self, request: VisionRequest) -> List[Dict[str, Any]]:
        """Single user message: prompt, captioned frames, then optional extras."""
        content: List[Dict[str, Any]] = [{"type": "text", "text": request.prompt}]

        frame_count = len(request.frames)
        for index, frame in enumerate(request.frames):
            content.append({
                "type": "text",
                "text": frame_label(index, frame_count, request.interval, request.is_multi_frame)
            })
            content.append(self._image_part(frame))

        if request.focus_image:
            content.append({"type": "text", "text": "Segmented focus region of the current frame:"})
            content.append(self._image_part(request.focus_image))

        if request.reference_image:
            content.append({"type": "text", "text": "Reference image for comparison:"})
            content.append(self._image_part(request.reference_image))

        return [{"role": "user", "content": content}]

    def build_body(self, request: VisionRequest) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": self.build_messages(request),
            "max_tokens": self.config.max_tokens_complex if request.is_complex_action else self.config.max_tokens,
            "temperature": self.config.temperature,
        }

    async def analyze(self, request: VisionRequest) -> str:
        if not self.config.api_key:
            raise ConfigurationError("Vision API key not configured (set OPENAI_API_KEY)")
        if self._client is None:
            await self.load()

        body = self.build_body(request)
        logger.debug(
            "Calling %s with %d content items", self.config.model, len(body["messages"][0]["content"])
        )
        try:
            response = await self._client.post(
                "/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self.config.api_key}"}
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Vision API timeout: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Unable to reach vision API: {e}") from e

        if response.status_code >= 400:
            message = _STATUS_MESSAGES.get(response.status_code, f"Vision API error {response.status_code}")
            raise UpstreamError(f"{message}: {response.text[:200]}", status_code=response.status_code)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(f"Malformed vision API response: {e}", status_code=response.status_code) from e

        if not content:
            raise UpstreamError("No response content from vision API", status_code=response.status_code)

        usage = data.get("usage") or {}
        logger.debug("Vision tokens: prompt=%s completion=%s", usage.get("prompt_tokens"), usage.get("completion_tokens"))
        return content

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def health(self) -> Dict[str, Any]:
        key = self.config.api_key
        return {
            "backend": self.name,
            "status": "healthy" if key else "unconfigured",
            "model": self.config.model,
            "api": {
                "keyConfigured": bool(key),
                "keyPreview": mask_api_key(key),
            },
        }
