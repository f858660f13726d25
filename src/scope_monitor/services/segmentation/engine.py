"""
Point-prompted SAM2 segmentation engine.

Owns the model lifecycle (uninitialized -> loading -> ready real/demo), a
single-slot cache of the encoder output for the current image, and
point-prompted decoding. Encoding is expensive and done once per image;
decoding is cheap and done once per click against the cached embedding.
"""

import asyncio
import dataclasses
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from ...config.models import EngineMode, SegmentationConfig
from ...errors import InferenceError, InitializationError, NotInitializedError
from .demo import DemoMaskGenerator
from .inference import TensorInferenceClient
from .postprocess import binarize_masks
from .preprocess import preprocess_image
from .types import LoadStatus, PointPrompt, SegmentationResult

logger = logging.getLogger(__name__)

MASK_INPUT_SIZE = 256

_READY = (LoadStatus.READY_REAL, LoadStatus.READY_DEMO)


@dataclass(frozen=True)
class EncodedImage:
    """Encoder outputs for one image; always replaced as a whole."""
    image_embed: np.ndarray
    high_res_feats_0: np.ndarray
    high_res_feats_1: np.ndarray


class SegmentationEngine:
    """Interactive segmentation session scoped to one loaded image."""

    def __init__(
        self,
        config: Optional[SegmentationConfig] = None,
        client: Optional[TensorInferenceClient] = None,
        demo_generator: Optional[DemoMaskGenerator] = None
    ):
        self.config = config or SegmentationConfig.from_defaults()
        self.client = client or TensorInferenceClient(self.config)
        self.demo_generator = demo_generator or DemoMaskGenerator()

        self._status = LoadStatus.UNINITIALIZED
        self._load_task: Optional[asyncio.Task] = None
        self._encoder: Any = None
        self._decoder: Any = None
        self._encoded: Optional[EncodedImage] = None
        self._current_image: Optional[np.ndarray] = None
        self._encode_lock = asyncio.Lock()

    @property
    def status(self) -> LoadStatus:
        return self._status

    def is_ready(self) -> bool:
        return self._status in _READY

    def get_mode(self) -> Optional[EngineMode]:
        """REAL or DEMO once ready, None before."""
        if self._status == LoadStatus.READY_REAL:
            return EngineMode.REAL
        if self._status == LoadStatus.READY_DEMO:
            return EngineMode.DEMO
        return None

    @property
    def has_embedding(self) -> bool:
        return self._encoded is not None

    async def initialize(self) -> EngineMode:
        """
        Bring the engine to a ready state.

        Returns immediately when already ready; callers arriving while a load
        is in flight wait for that load instead of starting another one. Falls
        back to demo mode when the model artifacts are absent.

        Raises:
            InitializationError: artifacts exist but could not be loaded. The
                engine is reset to UNINITIALIZED so initialize() can be retried.
        """
        if self._status in _READY:
            return self.get_mode()
        if self._status == LoadStatus.LOADING and self._load_task is not None:
            return await asyncio.shield(self._load_task)

        self._status = LoadStatus.LOADING
        self._load_task = asyncio.ensure_future(self._load())
        try:
            return await asyncio.shield(self._load_task)
        finally:
            if self._load_task is not None and self._load_task.done():
                self._load_task = None

    async def _load(self) -> EngineMode:
        start = time.perf_counter()
        logger.info("Initializing SAM2 (%s)", self.config.model_size.value)
        try:
            if not self.client.artifacts_available():
                logger.info(
                    "SAM2 models not found in %s - enabling demo mode",
                    os.path.dirname(self.config.model_path("encoder"))
                )
                self._status = LoadStatus.READY_DEMO
                return EngineMode.DEMO

            accelerated = self.config.use_acceleration and self.client.probe_acceleration()
            providers = self.client.execution_providers(accelerated)
            logger.info("Execution providers: %s", ", ".join(providers))

            sessions = await asyncio.gather(
                self.client.load_model("encoder", providers),
                self.client.load_model("decoder", providers),
                return_exceptions=True
            )
            failures = [s for s in sessions if isinstance(s, BaseException)]
            if failures:
                for session in sessions:
                    if not isinstance(session, BaseException):
                        self.client.release(session)
                raise failures[0]
            self._encoder, self._decoder = sessions
        except asyncio.CancelledError:
            self._release_sessions()
            self._status = LoadStatus.UNINITIALIZED
            raise
        except Exception as e:
            self._release_sessions()
            self._status = LoadStatus.UNINITIALIZED
            logger.error("SAM2 initialization failed: %s", e)
            raise InitializationError(f"SAM2 initialization failed: {e}") from e

        self._status = LoadStatus.READY_REAL
        logger.info("SAM2 models loaded in %.0fms", (time.perf_counter() - start) * 1000)
        return EngineMode.REAL

    def _require_ready(self, operation: str) -> None:
        if self._status not in _READY:
            raise NotInitializedError(
                f"SAM2 not initialized - call initialize() before {operation}() "
                f"(status: {self._status.value})"
            )

    async def encode_image(self, image: np.ndarray) -> None:
        """
        Encode an image and cache its embedding for subsequent segment() calls.

        The previous embedding is invalidated as soon as encoding starts. In
        demo mode only the image is remembered; no embedding is produced.
        """
        self._require_ready("encode_image")

        async with self._encode_lock:
            self._encoded = None
            self._current_image = image

            if self._status == LoadStatus.READY_DEMO:
                logger.debug("Demo mode: skipping image encoding")
                return

            start = time.perf_counter()
            tensor = await asyncio.to_thread(preprocess_image, image, self.config.input_size)
            outputs = await self.client.run(self._encoder, {"image": tensor})
            try:
                encoded = EncodedImage(
                    image_embed=outputs["image_embed"],
                    high_res_feats_0=outputs["high_res_feats_0"],
                    high_res_feats_1=outputs["high_res_feats_1"]
                )
            except KeyError as e:
                raise InferenceError(f"Encoder output missing {e}") from e

            self._encoded = encoded
            logger.debug("Image encoded in %.0fms", (time.perf_counter() - start) * 1000)

    def _decoder_inputs(self, encoded: EncodedImage, points: Sequence[PointPrompt]) -> dict:
        coords = np.array([[p.x, p.y] for p in points], dtype=np.float32).reshape(1, len(points), 2)
        labels = np.array([float(p.label) for p in points], dtype=np.float32).reshape(1, len(points))
        size = self.config.input_size
        return {
            "image_embed": encoded.image_embed,
            "high_res_feats_0": encoded.high_res_feats_0,
            "high_res_feats_1": encoded.high_res_feats_1,
            "point_coords": coords,
            "point_labels": labels,
            "mask_input": np.zeros((1, 1, MASK_INPUT_SIZE, MASK_INPUT_SIZE), dtype=np.float32),
            "has_mask_input": np.zeros((1,), dtype=np.float32),
            "orig_im_size": np.array([size, size], dtype=np.int32),
        }

    async def segment(
        self,
        points: Sequence[PointPrompt],
        image: Optional[np.ndarray] = None
    ) -> SegmentationResult:
        """
        Decode masks for the full accumulated point list.

        An empty point list returns an empty result without running the
        decoder. Without a cached embedding (demo mode, or nothing encoded
        yet) masks are synthesized from ``image`` or the last encoded image.
        """
        self._require_ready("segment")
        points = list(points)
        if not points:
            return SegmentationResult(mode=self.get_mode())

        encoded = self._encoded
        if self._status == LoadStatus.READY_DEMO or encoded is None:
            if self._status == LoadStatus.READY_REAL and self._encode_lock.locked():
                raise InferenceError("Image is being encoded; retry once encode_image() completes")
            source = image if image is not None else self._current_image
            if source is None:
                raise InferenceError("No image available for demo segmentation")
            height, width = source.shape[:2]
            return self.demo_generator.generate(points, width, height)

        start = time.perf_counter()
        outputs = await self.client.run(self._decoder, self._decoder_inputs(encoded, points))
        try:
            masks = binarize_masks(outputs["masks"])
            scores = [float(s) for s in np.asarray(outputs["iou_predictions"]).reshape(-1)]
        except KeyError as e:
            raise InferenceError(f"Decoder output missing {e}") from e

        if len(scores) != len(masks):
            raise InferenceError(f"Decoder returned {len(masks)} masks but {len(scores)} scores")

        if not self.config.multimask_output and masks:
            best = int(np.argmax(scores))
            masks, scores = [masks[best]], [scores[best]]

        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("Segmentation completed in %.0fms (%d masks)", elapsed, len(masks))
        return SegmentationResult(
            masks=masks,
            scores=scores,
            processing_time_ms=elapsed,
            mode=EngineMode.REAL
        )

    def update_config(self, **changes) -> None:
        """Change configuration; only allowed before initialize()."""
        if self._status != LoadStatus.UNINITIALIZED:
            logger.warning("Cannot update SAM2 config after it is loaded")
            return
        self.config = dataclasses.replace(self.config, **changes)
        self.client.config = self.config

    def _release_sessions(self) -> None:
        for session in (self._encoder, self._decoder):
            if session is not None:
                self.client.release(session)
        self._encoder = None
        self._decoder = None

    async def dispose(self) -> None:
        """Release sessions and cached tensors. Safe to call repeatedly."""
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
            try:
                await self._load_task
            except (asyncio.CancelledError, InitializationError):
                pass
        self._load_task = None

        self._release_sessions()
        self._encoded = None
        self._current_image = None
        self._status = LoadStatus.UNINITIALIZED
        logger.debug("SAM2 resources disposed")
