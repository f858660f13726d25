"""Watch-target keyword classification tables."""

from typing import List

# Descriptions matching any of these need several time-separated frames
COMPLEX_ACTION_KEYWORDS = [
    "falling", "breaking", "distress", "suspicious", "climbing",
    "weapon", "emergency", "unconscious", "collapsed",
]

# URGENCY CLASSIFICATION CONFIGURATION
URGENCY_CATEGORIES = {
    "high": {
        "keywords": ["falling", "weapon", "breaking", "emergency", "collapsed", "unconscious"],
        "priority": 1,
    },
    "medium": {
        "keywords": ["suspicious", "distress", "climbing"],
        "priority": 2,
    },
    "low": {
        "keywords": [],
        "priority": 3,
    },
}

# Ordered: first matching keyword wins
RECOMMENDED_ACTIONS = [
    (("falling", "collapsed"), "Check person immediately, call emergency services if needed"),
    (("weapon",), "Alert security immediately, do not approach"),
    (("breaking",), "Secure area, check for intruders, contact authorities"),
    (("emergency",), "Investigate immediately, call emergency services"),
]
DEFAULT_RECOMMENDED_ACTION = "Investigate situation immediately"

# Literal matches used when the vision answer is not parseable JSON
FALLBACK_DETECTION_KEYWORDS = ["true", "detected", "yes", "falling", "emergency", "weapon"]


def _contains_any(text: str, keywords: List[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def is_complex_action(description: str) -> bool:
    """True when the description implies an event visible only across frames."""
    return _contains_any(description or "", COMPLEX_ACTION_KEYWORDS)


def classify_urgency(description: str) -> str:
    """Map a target description to low/medium/high urgency."""
    ordered = sorted(URGENCY_CATEGORIES.items(), key=lambda item: item[1]["priority"])
    for level, config in ordered:
        if config["keywords"] and _contains_any(description or "", config["keywords"]):
            return level
    return "low"


def recommend_action(description: str) -> str:
    """Short recommended action for a high-urgency detection."""
    for keywords, action in RECOMMENDED_ACTIONS:
        if _contains_any(description or "", list(keywords)):
            return action
    return DEFAULT_RECOMMENDED_ACTION


def fallback_detected(content: str) -> bool:
    """Approximate a detected flag from free text."""
    return _contains_any(content or "", FALLBACK_DETECTION_KEYWORDS)

