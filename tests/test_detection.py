"""Tests for prompt building, answer parsing, detection policy and the OpenAI backend."""

import asyncio
import json

import httpx
import numpy as np
import pytest

from scope_monitor.config.models import VisionConfig, WatchTarget
from scope_monitor.errors import ConfigurationError, NetworkError, UpstreamError
from scope_monitor.services.capture.motion import MotionData
from scope_monitor.services.detection import DetectionOrchestrator, VisionBackendFactory, VisionRequest
from scope_monitor.services.detection.openai_vision import OpenAIVisionBackend, mask_api_key
from scope_monitor.services.detection.orchestrator import extract_json_object, interpret, parse_response
from scope_monitor.services.detection.prompts import build_prompt, frame_label

from conftest import DETECTED_JSON, NOT_DETECTED_JSON, FakeVisionBackend, solid_frame


def run_detect(backend, target, frames=None, **kwargs):
    orchestrator = DetectionOrchestrator(backend, interval=2.0)
    frames = frames or [solid_frame(30)]
    return asyncio.run(orchestrator.detect(frames, target, **kwargs))


# Parsing

def test_extract_plain_json():
    assert extract_json_object(DETECTED_JSON)["confidence"] == 0.9


def test_extract_json_from_prose_and_fences():
    wrapped = 'Sure! Here is my analysis:\n```json\n{"detected": false, "confidence": 0.3}\n```\nThanks'
    assert extract_json_object(wrapped) == {"detected": False, "confidence": 0.3}


def test_extract_skips_unbalanced_braces():
    assert extract_json_object('{oops} then {"detected": true}') == {"detected": True}
    assert extract_json_object("no json at all") is None


def test_keyword_fallback_detected():
    result, degraded = parse_response("Yes, a person is clearly visible", is_complex_action=True)
    assert degraded
    assert result["detected"] is True
    assert result["confidence"] == 0.6
    assert result["urgency"] == "medium"


def test_keyword_fallback_not_detected():
    result, degraded = parse_response("Nothing of interest here")
    assert degraded
    assert result["detected"] is False
    assert result["confidence"] == 0.1
    assert result["urgency"] == "low"


# Detection policy

def test_threshold_suppresses_low_confidence():
    verdict = interpret({"detected": True, "confidence": 0.5}, WatchTarget("cat", 0.7))
    assert verdict["detected"] is False
    assert verdict["threshold_applied"]
    assert verdict["confidence"] == 0.5


def test_threshold_is_inclusive():
    verdict = interpret({"detected": True, "confidence": 0.7}, WatchTarget("cat", 0.7))
    assert verdict["detected"] is True
    assert not verdict["threshold_applied"]


def test_invalid_fields_are_normalized():
    verdict = interpret({"detected": "yes", "confidence": "high"}, WatchTarget("cat", 0.0))
    assert verdict["detected"] is False
    assert verdict["confidence"] == 0.1
    assert verdict["reasoning"] == "No reasoning provided"

    assert interpret({"detected": True, "confidence": 1.7}, WatchTarget("cat"))["confidence"] == 1.0
    assert interpret({"detected": True, "confidence": True}, WatchTarget("cat"))["confidence"] == 0.1


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_confidence_cannot_pass_threshold(literal):
    raw, degraded = parse_response('{"detected": true, "confidence": %s, "reasoning": "sure"}' % literal)
    verdict = interpret(raw, WatchTarget("cat", 0.7))

    assert not degraded
    assert verdict["detected"] is False
    assert verdict["confidence"] == 0.1
    assert verdict["threshold_applied"]


def test_non_finite_confidence_event_message():
    event = run_detect(FakeVisionBackend(['{"detected": true, "confidence": NaN}']), WatchTarget("cat", 0.0))

    assert event.confidence == 0.1
    assert "nan" not in event.message


def test_urgency_and_action_backfill_for_detections():
    verdict = interpret({"detected": True, "confidence": 0.95}, WatchTarget("person falling down stairs"))
    assert verdict["urgency"] == "high"
    assert verdict["recommended_action"].startswith("Check person immediately")

    medium = interpret({"detected": True, "confidence": 0.95}, WatchTarget("suspicious loitering"))
    assert medium["urgency"] == "medium"
    assert medium["recommended_action"] is None

    quiet = interpret({"detected": False, "confidence": 0.95}, WatchTarget("weapon"))
    assert quiet["urgency"] == "low"
    assert quiet["recommended_action"] is None


def test_model_urgency_is_kept():
    verdict = interpret(
        {"detected": True, "confidence": 0.9, "urgency": "low", "recommended_action": "Keep watching"},
        WatchTarget("weapon")
    )
    assert verdict["urgency"] == "low"
    assert verdict["recommended_action"] == "Keep watching"


# Prompts

def test_prompt_selection():
    single = build_prompt("red car", 0.7, 1, False, 2.0)
    assert '"red car"' in single and "urgency" not in single

    still_single = build_prompt("person falling", 0.7, 1, True, 2.0)
    assert still_single == single.replace("red car", "person falling")

    multi = build_prompt("person falling", 0.8, 3, True, 2.0)
    assert "3 consecutive video frames" in multi
    assert "2 seconds apart" in multi
    assert "CONFIDENCE THRESHOLD: 0.8" in multi
    assert '"recommended_action"' in multi


def test_frame_labels():
    assert frame_label(0, 1, 2.0, False) == "Current frame:"
    assert frame_label(0, 3, 2.0, True) == "Frame 1 (4s ago):"
    assert frame_label(2, 3, 2.0, True) == "Frame 3 (0s ago):"


# Orchestrator

def test_detect_builds_an_alert_event():
    backend = FakeVisionBackend()
    event = run_detect(backend, WatchTarget("red backpack", 0.7), motion=MotionData(True, 42.0))

    assert event.detected
    assert event.message == "red backpack detected! (90.0% confidence)"
    assert event.image.startswith("data:image/jpeg;base64,")
    assert event.change_percent == 42.0
    assert not event.degraded
    assert backend.requests[0].to_dict()["motionData"] == {"hasMotion": True, "changePercent": 42.0}


def test_detect_below_threshold_is_not_an_alert():
    backend = FakeVisionBackend(['{"detected": true, "confidence": 0.5, "reasoning": "maybe"}'])
    event = run_detect(backend, WatchTarget("red backpack", 0.7))

    assert not event.detected
    assert event.message == "No detection"
    assert event.threshold_applied


def test_upstream_failure_becomes_degraded_event():
    backend = FakeVisionBackend(error=UpstreamError("Vision API rate limit or quota exceeded", status_code=429))
    event = run_detect(backend, WatchTarget("red backpack"))

    assert not event.detected
    assert event.degraded
    assert event.confidence == 0.0
    assert "UpstreamError" in event.reasoning


def test_network_failure_becomes_degraded_event():
    event = run_detect(FakeVisionBackend(error=NetworkError("timeout")), WatchTarget("cat"))
    assert event.degraded and "NetworkError" in event.reasoning


def test_configuration_error_propagates():
    with pytest.raises(ConfigurationError):
        run_detect(FakeVisionBackend(error=ConfigurationError("no key")), WatchTarget("cat"))


def test_request_carries_reference_and_focus_images():
    reference = solid_frame(10, 20, 20)
    focus = np.zeros((8, 8, 4), dtype=np.uint8)
    orchestrator = DetectionOrchestrator(FakeVisionBackend(), interval=1.0)

    request = orchestrator.build_request(
        [solid_frame(1), solid_frame(2)], WatchTarget("person falling", 0.6, reference),
        is_complex_action=True, focus_image=focus
    )
    wire = request.to_dict()

    assert request.is_multi_frame
    assert wire["image"] == wire["frames"][-1]
    assert wire["isComplexAction"] is True
    assert wire["target"]["referenceImage"].startswith("data:image/jpeg")
    assert wire["focusImage"].startswith("data:image/png")


def test_build_request_needs_frames():
    with pytest.raises(ValueError):
        DetectionOrchestrator(FakeVisionBackend()).build_request([], WatchTarget("cat"))


def test_events_serialize_without_image_by_default():
    event = run_detect(FakeVisionBackend([NOT_DETECTED_JSON]), WatchTarget("cat"))
    payload = event.to_payload()

    assert "image" not in payload
    assert json.loads(json.dumps(payload))["detected"] is False
    assert event.to_payload(include_image=True)["image"] == event.image
    assert payload["event_id"] and payload["timestamp"].endswith("+00:00")


# OpenAI-compatible backend

def make_openai(handler, **config_overrides):
    config = VisionConfig(api_key="sk-test-1234567890abcdef", base_url="https://vision.test/v1", **config_overrides)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=config.base_url)
    return OpenAIVisionBackend(config, client=client)


def make_request(frames=1, complex_action=False):
    urls = [f"data:image/jpeg;base64,FRAME{i}" for i in range(frames)]
    return VisionRequest(
        frames=urls, target_description="cat", target_confidence=0.7, prompt="Find the cat",
        is_complex_action=complex_action, interval=2.0
    )


def chat_response(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}], "usage": {}})


def test_openai_request_body():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return chat_response(DETECTED_JSON)

    backend = make_openai(handler)
    answer = asyncio.run(backend.analyze(make_request(frames=2, complex_action=True)))

    assert answer == DETECTED_JSON
    assert seen["url"] == "https://vision.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test-1234567890abcdef"
    body = seen["body"]
    assert body["model"] == "gpt-4o-mini"
    assert body["max_tokens"] == 250
    assert body["temperature"] == 0.1
    content = body["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Find the cat"}
    assert content[1]["text"] == "Frame 1 (2s ago):"
    assert content[2]["image_url"] == {"url": "data:image/jpeg;base64,FRAME0", "detail": "low"}
    assert content[3]["text"] == "Frame 2 (0s ago):"


def test_openai_single_frame_uses_short_budget():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return chat_response(NOT_DETECTED_JSON)

    asyncio.run(make_openai(handler).analyze(make_request()))

    assert seen["body"]["max_tokens"] == 150
    assert seen["body"]["messages"][0]["content"][1]["text"] == "Current frame:"


def test_openai_error_status_is_upstream_error():
    backend = make_openai(lambda request: httpx.Response(429, text="slow down"))

    with pytest.raises(UpstreamError) as info:
        asyncio.run(backend.analyze(make_request()))

    assert info.value.status_code == 429
    assert "rate limit" in info.value.message


def test_openai_empty_content_is_upstream_error():
    with pytest.raises(UpstreamError):
        asyncio.run(make_openai(lambda request: chat_response("")).analyze(make_request()))
    with pytest.raises(UpstreamError):
        asyncio.run(make_openai(lambda request: httpx.Response(200, json={})).analyze(make_request()))


def test_openai_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(make_openai(handler).analyze(make_request()))


def test_openai_requires_api_key():
    backend = OpenAIVisionBackend(VisionConfig(api_key=""))

    with pytest.raises(ConfigurationError):
        asyncio.run(backend.load())
    assert backend.health()["status"] == "unconfigured"


def test_api_key_preview():
    assert mask_api_key("") == "Not configured"
    assert mask_api_key("sk-test-1234567890abcdef") == "sk-test-12...cdef"


def test_factory_lists_backends():
    backends = VisionBackendFactory.get_available_backends()
    assert set(backends) == {"openai", "moondream"}
    backend = VisionBackendFactory.create_backend(VisionConfig().backend, VisionConfig(api_key="k"))
    assert isinstance(backend, OpenAIVisionBackend)
