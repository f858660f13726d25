"""Builds detection requests and turns vision answers into detection events."""

import json
import math
import logging
import time
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ...config.keywords import classify_urgency, fallback_detected, recommend_action
from ...config.models import WatchTarget
from ...errors import UpstreamError
from ...utils.images import encode_data_url
from ..capture.motion import ASSUMED_MOTION, MotionData
from ..events import DetectionEvent
from .base import BaseVisionBackend, VisionRequest
from .prompts import build_prompt

logger = logging.getLogger(__name__)

URGENCY_LEVELS = ("low", "medium", "high")
DEFAULT_CONFIDENCE = 0.1
FALLBACK_CONFIDENCE_DETECTED = 0.6


def extract_json_object(content: str) -> Optional[Dict[str, Any]]:
    """Parse ``content`` as JSON, else the first brace-delimited object inside it."""
    try:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            return parsed
    except ValueError:
        pass

    decoder = json.JSONDecoder()
    start = content.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(content, start)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        start = content.find("{", start + 1)
    return None


def parse_response(content: str, is_complex_action: bool = False) -> Tuple[Dict[str, Any], bool]:
    """
    Interpret a raw vision answer.

    Returns:
        (result dict, degraded) where degraded means keyword fallback was used
    """
    parsed = extract_json_object(content or "")
    if parsed is not None:
        return parsed, False

    logger.warning("Failed to parse vision response, using keyword fallback: %r", (content or "")[:200])
    detected = fallback_detected(content)
    return {
        "detected": detected,
        "confidence": FALLBACK_CONFIDENCE_DETECTED if detected else DEFAULT_CONFIDENCE,
        "reasoning": "Response parsing failed, using fallback keyword detection",
        "urgency": "medium" if detected and is_complex_action else "low",
    }, True


def interpret(raw: Dict[str, Any], target: WatchTarget) -> Dict[str, Any]:
    """Validate fields, backfill urgency/action, then enforce the confidence threshold."""
    detected = raw.get("detected")
    if not isinstance(detected, bool):
        detected = False

    confidence = raw.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = DEFAULT_CONFIDENCE
    elif isinstance(confidence, float) and not math.isfinite(confidence):
        confidence = DEFAULT_CONFIDENCE
    confidence = float(min(max(confidence, 0.0), 1.0))

    urgency = raw.get("urgency")
    if urgency not in URGENCY_LEVELS:
        urgency = None
    if urgency is None and detected:
        urgency = classify_urgency(target.description)

    recommended = raw.get("recommended_action") or None
    if recommended is None and detected and urgency == "high":
        recommended = recommend_action(target.description)

    original_detected = detected
    if confidence < target.confidence:
        detected = False

    return {
        "detected": detected,
        "confidence": confidence,
        "reasoning": raw.get("reasoning") or "No reasoning provided",
        "urgency": urgency or "low",
        "recommended_action": recommended,
        "threshold_applied": original_detected != detected,
    }


class DetectionOrchestrator:
    """Assembles vision requests and applies detection policy to the answers."""

    def __init__(self, backend: BaseVisionBackend, interval: float = 2.0, jpeg_quality: int = 80):
        self.backend = backend
        self.interval = interval
        self.jpeg_quality = jpeg_quality

    def _as_data_url(self, image: Any) -> Optional[str]:
        if image is None:
            return None
        if isinstance(image, str):
            return image
        return encode_data_url(image, self.jpeg_quality)

    def build_request(
        self,
        frames: Sequence[np.ndarray],
        target: WatchTarget,
        motion: MotionData = ASSUMED_MOTION,
        is_complex_action: bool = False,
        focus_image: Optional[np.ndarray] = None
    ) -> VisionRequest:
        """Request for the given frames, oldest first; the last one is current."""
        if not frames:
            raise ValueError("At least one frame is required")
        encoded = [self._as_data_url(frame) for frame in frames]
        prompt = build_prompt(
            target.description,
            target.confidence,
            len(encoded),
            is_complex_action,
            self.interval
        )
        return VisionRequest(
            frames=encoded,
            target_description=target.description,
            target_confidence=target.confidence,
            prompt=prompt,
            is_complex_action=is_complex_action,
            motion=motion,
            reference_image=self._as_data_url(target.reference_image),
            focus_image=self._as_data_url(focus_image),
            interval=self.interval
        )

    async def detect(
        self,
        frames: Sequence[np.ndarray],
        target: WatchTarget,
        motion: MotionData = ASSUMED_MOTION,
        is_complex_action: bool = False,
        focus_image: Optional[np.ndarray] = None
    ) -> DetectionEvent:
        """
        Run one detection cycle.

        Upstream/network failures are recovered into a degraded, not-detected
        event; configuration errors propagate.
        """
        start = time.perf_counter()
        request = self.build_request(frames, target, motion, is_complex_action, focus_image)
        logger.debug(
            "Detection request: target=%r complex=%s frames=%d motion=%.1f%%",
            target.description, is_complex_action, len(request.frames), motion.change_percent
        )

        try:
            content = await self.backend.analyze(request)
        except UpstreamError as e:
            logger.warning("%s: %s", e.kind, e.message)
            raw = {
                "detected": False,
                "confidence": 0.0,
                "reasoning": f"Detection unavailable ({e.kind}): {e.message}",
                "urgency": "low",
            }
            degraded = True
        else:
            raw, degraded = parse_response(content, is_complex_action)

        verdict = interpret(raw, target)
        if verdict["threshold_applied"]:
            logger.info(
                "Confidence %.2f below threshold %.2f, detection suppressed",
                verdict["confidence"], target.confidence
            )

        if verdict["detected"]:
            message = f"{target.description} detected! ({verdict['confidence'] * 100:.1f}% confidence)"
        else:
            message = "No detection"

        return DetectionEvent(
            detected=verdict["detected"],
            confidence=verdict["confidence"],
            message=message,
            image=request.image,
            reasoning=verdict["reasoning"],
            urgency=verdict["urgency"],
            recommended_action=verdict["recommended_action"],
            degraded=degraded,
            is_complex_action=is_complex_action,
            frame_count=len(request.frames),
            change_percent=motion.change_percent,
            threshold_applied=verdict["threshold_applied"],
            duration_ms=(time.perf_counter() - start) * 1000,
            target=target.description
        )
