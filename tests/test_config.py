"""Tests for keyword tables, configuration, CLI arguments, console reports and alert publishing."""

import asyncio
import json
import logging
import os

import numpy as np
import pytest

from scope_monitor.config.defaults import load_environment
from scope_monitor.config.keywords import classify_urgency, fallback_detected, is_complex_action, recommend_action
from scope_monitor.config.models import CaptureConfig, EngineMode, ModelSize, SegmentationConfig
from scope_monitor.errors import ConfigurationError, NetworkError, UpstreamError
from scope_monitor.monitor import print_event, print_segmentation
from scope_monitor.services.communication import AlertPublisher
from scope_monitor.services.events import DetectionEvent, new_event_id
from scope_monitor.services.segmentation import Mask, PointLabel, SegmentationResult
from scope_monitor.utils.args import parse_arguments, validate_arguments


@pytest.mark.parametrize("description,expected", [
    ("person falling", True),
    ("Someone CLIMBING the fence", True),
    ("unconscious person on the floor", True),
    ("red car", False),
    ("", False),
])
def test_complex_action_keywords(description, expected):
    assert is_complex_action(description) is expected


def test_urgency_and_recommended_action():
    assert classify_urgency("Weapon in hand") == "high"
    assert classify_urgency("person in distress") == "medium"
    assert classify_urgency("delivery van") == "low"
    assert recommend_action("window breaking") == "Secure area, check for intruders, contact authorities"
    assert recommend_action("smoke") == "Investigate situation immediately"


def test_fallback_keywords():
    assert fallback_detected("TRUE, the target is there")
    assert not fallback_detected("no sign of it")


def test_model_paths(tmp_path):
    config = SegmentationConfig(model_size=ModelSize.SMALL, models_dir=str(tmp_path))
    assert config.model_path("encoder") == str(tmp_path / "sam2_hiera_small_encoder.onnx")
    assert config.model_path("decoder") == str(tmp_path / "sam2_hiera_small_decoder.onnx")
    with pytest.raises(ValueError):
        config.model_path("tokenizer")


def test_capture_defaults():
    config = CaptureConfig.from_defaults()
    assert config.buffer_size == 3
    assert config.min_complex_frames == 2
    assert 0.0 < config.motion_threshold < 1.0


def test_env_file_fills_unset_variables(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("SCOPE_VISION_MODEL=from-env-file\nSCOPE_NATS_URL=nats://file:4222\n")
    monkeypatch.setenv("SCOPE_NATS_URL", "nats://shell:4222")
    monkeypatch.setenv("SCOPE_VISION_MODEL", "placeholder")
    monkeypatch.delenv("SCOPE_VISION_MODEL")

    assert load_environment(str(env_file))
    assert os.environ["SCOPE_VISION_MODEL"] == "from-env-file"
    assert os.environ["SCOPE_NATS_URL"] == "nats://shell:4222"


def test_env_file_is_found_from_working_directory(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("SCOPE_VISION_TIMEOUT=12\n")
    nested = tmp_path / "clips"
    nested.mkdir()
    monkeypatch.chdir(nested)
    monkeypatch.setenv("SCOPE_VISION_TIMEOUT", "placeholder")
    monkeypatch.delenv("SCOPE_VISION_TIMEOUT")

    assert load_environment()
    assert os.environ["SCOPE_VISION_TIMEOUT"] == "12"


def test_errors_carry_kind():
    error = NetworkError("unreachable")
    assert isinstance(error, UpstreamError)
    assert error.to_dict() == {"kind": "NetworkError", "message": "unreachable"}


# CLI

def test_interval_is_clamped(capsys):
    low = validate_arguments(parse_arguments(["--target", "cat", "--interval", "0.1"]))
    high = validate_arguments(parse_arguments(["--target", "cat", "--interval", "120"]))

    assert low.interval == 0.5
    assert high.interval == 60.0
    assert "out of range" in capsys.readouterr().out


def test_target_is_required():
    with pytest.raises(ConfigurationError):
        validate_arguments(parse_arguments([]))
    with pytest.raises(ConfigurationError):
        validate_arguments(parse_arguments(["--target", "   "]))
    assert validate_arguments(parse_arguments(["--list-devices"])).list_devices


@pytest.mark.parametrize("argv", [
    ["--target", "cat", "--confidence", "1.5"],
    ["--target", "cat", "--motion-threshold", "0"],
    ["--target", "cat", "--focus-point", "10,20"],
])
def test_invalid_values_are_rejected(argv):
    with pytest.raises(ConfigurationError):
        validate_arguments(parse_arguments(argv))


def test_points_are_parsed_in_order():
    args = validate_arguments(parse_arguments([
        "--target", "cat", "--segment",
        "--focus-point", "10,20", "--focus-point", "30.5,40", "--exclude-point", "5,5",
    ]))

    assert [(p.x, p.y, p.label) for p in args.points] == [
        (10.0, 20.0, PointLabel.POSITIVE),
        (30.5, 40.0, PointLabel.POSITIVE),
        (5.0, 5.0, PointLabel.NEGATIVE),
    ]


def test_malformed_point_exits():
    with pytest.raises(SystemExit):
        parse_arguments(["--target", "cat", "--segment", "--focus-point", "10"])


def test_sources_are_mutually_exclusive():
    with pytest.raises(SystemExit):
        parse_arguments(["--camera", "0", "--video", "clip.mp4"])


# Events and alert publishing

def test_event_ids_are_unique():
    ids = {new_event_id() for _ in range(100)}
    assert len(ids) == 100
    assert DetectionEvent(False, 0.1, "No detection").event_id != DetectionEvent(False, 0.1, "No detection").event_id


class FakeNatsConnection:
    def __init__(self, fail=False):
        self.fail = fail
        self.is_connected = True
        self.is_closed = False
        self.messages = []
        self.drained = False

    async def publish(self, subject, payload, headers=None):
        if self.fail:
            raise RuntimeError("connection lost")
        self.messages.append((subject, json.loads(payload), headers))

    async def drain(self):
        self.drained = True
        self.is_closed = True
        self.is_connected = False

    async def close(self):
        self.is_closed = True


def test_publisher_sends_event_payload():
    publisher = AlertPublisher("lobby", url="nats://unused:4222")
    publisher.nc = FakeNatsConnection()
    event = DetectionEvent(True, 0.9, "person falling detected! (90.0% confidence)", urgency="high",
                           image="data:image/jpeg;base64,AAAA", target="person falling")

    assert asyncio.run(publisher.publish(event))

    subject, payload, headers = publisher.nc.messages[0]
    assert subject == "scope.events.detection.lobby"
    assert payload["event_id"] == event.event_id
    assert payload["detected"] is True
    assert "image" not in payload
    assert headers == {"Content-Type": "application/json", "Event-Type": "detection", "Urgency": "high"}


def test_publisher_never_raises():
    publisher = AlertPublisher("lobby")
    event = DetectionEvent(False, 0.1, "No detection")

    assert asyncio.run(publisher.publish(event)) is False

    publisher.nc = FakeNatsConnection(fail=True)
    assert asyncio.run(publisher.publish(event)) is False
    assert publisher.published == 0


def test_publisher_close_drains():
    publisher = AlertPublisher("lobby")
    connection = FakeNatsConnection()
    publisher.nc = connection

    asyncio.run(publisher.close())

    assert connection.drained
    assert publisher.nc is None
    asyncio.run(publisher.close())


# Console reports

def test_urgent_detections_are_flagged(capsys):
    urgent = DetectionEvent(True, 0.95, "weapon detected! (95.0% confidence)", urgency="high",
                            recommended_action="Contact security immediately")
    routine = DetectionEvent(True, 0.8, "cat detected! (80.0% confidence)", urgency="medium")

    print_event(urgent)
    print_event(routine)
    out = capsys.readouterr().out

    assert urgent.is_urgent and not routine.is_urgent
    assert f"[URGENT {urgent.timestamp}] weapon detected!" in out
    assert f"[ALERT {routine.timestamp}] cat detected!" in out
    assert "Recommended action: Contact security immediately" in out


def test_quiet_high_urgency_is_not_urgent():
    assert not DetectionEvent(False, 0.2, "No detection", urgency="high").is_urgent


def test_segmentation_report_includes_mask_area(caplog):
    data = np.zeros((4, 5), dtype=np.uint8)
    data[1:3, 1:4] = 255
    result = SegmentationResult([Mask(np.zeros((4, 5), dtype=np.uint8), 5, 4), Mask(data, 5, 4)],
                                [0.3, 0.8], mode=EngineMode.DEMO)

    with caplog.at_level(logging.INFO, logger="scope_monitor.monitor"):
        print_segmentation(result, [None, None])
        print_segmentation(SegmentationResult(mode=EngineMode.REAL), [])

    assert "best score 0.80 covering 6 px (demo mode)" in caplog.text
    assert "no masks (real mode)" in caplog.text
