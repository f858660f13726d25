"""Instruction prompts for the vision model."""


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


def single_frame_prompt(description: str) -> str:
    return f"""You are an AI security monitoring system analyzing this image for: "{description}"

Look carefully for the specified target. Consider:
- Object/person identification and behavior
- Environmental context and setting
- Any signs of the described situation

Respond ONLY with valid JSON:
{{
  "detected": true/false,
  "confidence": 0.0-1.0,
  "reasoning": "brief explanation of what you see"
}}"""


def multi_frame_prompt(description: str, confidence: float, frame_count: int, interval: float) -> str:
    return f"""You are an advanced AI security system analyzing {frame_count} consecutive video frames for: "{description}"

CONTEXT: These frames are captured {_format_seconds(interval)} seconds apart, oldest first. Look for:
- MOTION PATTERNS: Changes in body position, movement direction
- BEHAVIORAL CUES: Unusual postures, actions, or interactions
- ENVIRONMENTAL CHANGES: Broken objects, displaced items
- EMERGENCY INDICATORS: People on ground, distress signals, weapons

ANALYSIS INSTRUCTIONS:
1. Compare frames to understand the sequence of events
2. Look for the specific target behavior across the timespan
3. Consider context: lighting, setting, normal vs abnormal activity
4. Be especially sensitive to safety-critical situations

TARGET TO DETECT: {description}
CONFIDENCE THRESHOLD: {confidence}

Respond ONLY with valid JSON:
{{
  "detected": true/false,
  "confidence": 0.0-1.0,
  "reasoning": "detailed explanation of what you observed across the frames",
  "urgency": "low/medium/high",
  "recommended_action": "brief action recommendation if detected"
}}"""


def build_prompt(
    description: str,
    confidence: float,
    frame_count: int,
    is_complex_action: bool,
    interval: float
) -> str:
    """Multi-frame prompt for complex actions with temporal context, single-frame otherwise."""
    if is_complex_action and frame_count > 1:
        return multi_frame_prompt(description, confidence, frame_count, interval)
    return single_frame_prompt(description)


def frame_label(index: int, frame_count: int, interval: float, multi_frame: bool) -> str:
    """Caption placed before each image in the request."""
    if not multi_frame:
        return "Current frame:"
    seconds_ago = (frame_count - 1 - index) * interval
    return f"Frame {index + 1} ({_format_seconds(seconds_ago)}s ago):"
