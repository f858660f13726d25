"""Shared fakes: inference client, vision backend and frame source."""

import asyncio
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scope_monitor.config.models import CaptureConfig, SegmentationConfig, VisionConfig, WatchTarget
from scope_monitor.services.capture.sources import FrameSource
from scope_monitor.services.detection.base import BaseVisionBackend

DETECTED_JSON = '{"detected": true, "confidence": 0.9, "reasoning": "clearly visible"}'
NOT_DETECTED_JSON = '{"detected": false, "confidence": 0.2, "reasoning": "empty room"}'

MASK_SIZE = 32
SCORES = [0.5, 0.9, 0.7]


class FakeInferenceClient:
    """Stands in for TensorInferenceClient; decodes deterministic block masks."""

    def __init__(self, config=None, artifacts=True, fail_load=False, load_delay=0.0,
                 encoder_error=None, decoder_outputs=None):
        self.config = config or SegmentationConfig()
        self.artifacts = artifacts
        self.fail_load = fail_load
        self.load_delay = load_delay
        self.encoder_error = encoder_error
        self.decoder_outputs = decoder_outputs
        self.encode_gate = None
        self.encoding = asyncio.Event()
        self.loads = []
        self.runs = []
        self.released = []

    def probe_acceleration(self):
        return False

    def execution_providers(self, use_acceleration):
        return ["CPUExecutionProvider"]

    def artifacts_available(self):
        return self.artifacts

    async def load_model(self, kind, providers=None):
        self.loads.append(kind)
        if self.load_delay:
            await asyncio.sleep(self.load_delay)
        if self.fail_load and kind == "decoder":
            raise RuntimeError("corrupt decoder")
        return kind

    async def run(self, handle, inputs):
        self.runs.append((handle, inputs))
        if handle == "encoder":
            if self.encode_gate is not None:
                self.encoding.set()
                await self.encode_gate.wait()
            if self.encoder_error is not None:
                raise self.encoder_error
            return {
                "image_embed": np.ones((1, 256, 4, 4), dtype=np.float32),
                "high_res_feats_0": np.ones((1, 32, 16, 16), dtype=np.float32),
                "high_res_feats_1": np.ones((1, 64, 8, 8), dtype=np.float32),
            }
        if self.decoder_outputs is not None:
            return self.decoder_outputs
        logits = np.full((1, len(SCORES), MASK_SIZE, MASK_SIZE), -1.0, dtype=np.float32)
        for k in range(len(SCORES)):
            logits[0, k, 4 * k:4 * k + 8, 8:20] = 2.0
        return {"masks": logits, "iou_predictions": np.array([SCORES], dtype=np.float32)}

    def release(self, handle):
        self.released.append(handle)

    @property
    def decoder_runs(self):
        return [inputs for handle, inputs in self.runs if handle == "decoder"]


class FakeVisionBackend(BaseVisionBackend):
    """Records requests and answers from a script."""

    name = "fake"

    def __init__(self, responses=None, gate=None, error=None):
        super().__init__(VisionConfig(api_key="test-key"))
        self.responses = list(responses or [DETECTED_JSON])
        self.gate = gate
        self.error = error
        self.requests = []

    async def analyze(self, request):
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.responses[min(len(self.requests), len(self.responses)) - 1]


class ListSource(FrameSource):
    """Replays a fixed list of frames, then returns None."""

    name = "list"

    def __init__(self, frames):
        self.frames = list(frames)
        self.index = 0

    def open(self):
        pass

    def read(self):
        if self.index >= len(self.frames):
            return None
        frame = self.frames[self.index]
        self.index += 1
        return frame

    def close(self):
        pass


def solid_frame(value, width=160, height=120):
    return np.full((height, width, 3), value, dtype=np.uint8)


@pytest.fixture
def dark_frame():
    return solid_frame(0)


@pytest.fixture
def bright_frame():
    return solid_frame(255)


@pytest.fixture
def noisy_frames():
    rng = np.random.default_rng(7)
    return [rng.integers(0, 256, (120, 160, 3), dtype=np.uint8) for _ in range(6)]


@pytest.fixture
def capture_config():
    return CaptureConfig(interval=0.5)


@pytest.fixture
def target():
    return WatchTarget("red backpack", confidence=0.7)


@pytest.fixture
def falling_target():
    return WatchTarget("person falling", confidence=0.7)


@pytest.fixture
def missing_models_config(tmp_path):
    return SegmentationConfig(models_dir=str(tmp_path / "missing"))
