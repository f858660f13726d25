"""
Detection Event Model

Provides collision-resistant identifiers (CUIDs) for detection events and a
single payload format shared by listeners (logging, alert publishing,
caller callbacks).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cuid2 import cuid_wrapper

_cuid_generator = cuid_wrapper()


def new_event_id() -> str:
    """Globally unique CUID for a detection event."""
    return _cuid_generator()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DetectionEvent:
    """
    Outcome of one completed detection cycle.

    ``timestamp``, ``detected``, ``confidence``, ``image`` and ``message`` are
    what alerting listeners consume; the remaining fields describe how the
    verdict was reached.
    """
    detected: bool
    confidence: float
    message: str
    image: Optional[str] = None            # data URL of the current frame
    reasoning: str = ""
    urgency: str = "low"
    recommended_action: Optional[str] = None
    degraded: bool = False                 # upstream failed or answer unparseable
    is_complex_action: bool = False
    frame_count: int = 1
    change_percent: float = 100.0
    threshold_applied: bool = False
    duration_ms: float = 0.0
    target: str = ""
    event_id: str = field(default_factory=new_event_id)
    timestamp: str = field(default_factory=utc_timestamp)

    @property
    def is_urgent(self) -> bool:
        return self.detected and self.urgency == "high"

    def to_payload(self, include_image: bool = False) -> Dict[str, Any]:
        """
        Format the standardized event payload.

        Args:
            include_image: Embed the frame data URL (large)

        Returns:
            JSON-serializable dictionary
        """
        payload = {
            # Core identification
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "target": self.target,

            # Verdict
            "detected": self.detected,
            "confidence": float(self.confidence),
            "message": self.message,
            "reasoning": self.reasoning,
            "urgency": self.urgency,
            "recommended_action": self.recommended_action,

            # Metadata
            "metadata": {
                "degraded": self.degraded,
                "is_complex_action": self.is_complex_action,
                "frame_count": self.frame_count,
                "change_percent": round(self.change_percent, 1),
                "threshold_applied": self.threshold_applied,
                "duration_ms": round(self.duration_ms, 1)
            }
        }
        if include_image:
            payload["image"] = self.image
        return payload
