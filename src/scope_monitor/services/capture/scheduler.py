"""
Periodic capture, motion gating and detection dispatch.

One CaptureScheduler owns all monitoring state for a source: the last frame
seen by the motion gate, the frame buffer, the focus points and the
in-flight detection task. Ticks run on the event loop with a fixed period;
detections run as separate tasks so a slow vision call never delays the next
motion check.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ...config.keywords import is_complex_action
from ...config.models import CaptureConfig, WatchTarget
from ...errors import ConfigurationError, InferenceError, ScopeMonitorError, UpstreamError
from ..detection.orchestrator import DetectionOrchestrator
from ..events import DetectionEvent
from ..segmentation.engine import SegmentationEngine
from ..segmentation.session import InteractiveSegmentation
from ..segmentation.types import PointPrompt, SegmentationResult
from .buffer import FrameBuffer
from .motion import ASSUMED_MOTION, MotionData, MotionGate
from .sources import FrameSource

logger = logging.getLogger(__name__)

DetectionListener = Callable[[DetectionEvent], object]
ErrorListener = Callable[[ScopeMonitorError], object]


class TickOutcome(Enum):
    """What a single capture tick did."""
    NO_FRAME = "no_frame"
    NO_MOTION = "no_motion"
    AWAITING_FRAMES = "awaiting_frames"    # complex action, buffer not full enough
    IN_FLIGHT = "in_flight"                # previous detection still running
    DISPATCHED = "dispatched"


class MonitoringSession:
    """Cancellation token for one start()..stop() span."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


async def _notify(listeners, *args) -> None:
    for listener in list(listeners):
        try:
            outcome = listener(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Listener %r failed", listener)


class CaptureScheduler:
    """Grabs frames on a timer and turns the interesting ones into detection events."""

    def __init__(
        self,
        source: FrameSource,
        orchestrator: DetectionOrchestrator,
        config: Optional[CaptureConfig] = None,
        target: Optional[WatchTarget] = None,
        engine: Optional[SegmentationEngine] = None,
        motion_gate: Optional[MotionGate] = None
    ):
        self.source = source
        self.orchestrator = orchestrator
        self.config = config or CaptureConfig.from_defaults()
        self.target = target
        self.engine = engine
        self.motion_gate = motion_gate or MotionGate(
            self.config.motion_threshold,
            self.config.pixel_threshold,
            self.config.comparison_size
        )
        self.segmentation = InteractiveSegmentation(engine) if engine is not None else None

        self.frame_buffer = FrameBuffer(self.config.buffer_size)
        self.last_frame: Optional[np.ndarray] = None
        self._focus_points: List[PointPrompt] = []

        self._session: Optional[MonitoringSession] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._detection_task: Optional[asyncio.Task] = None

        self._detection_listeners: List[DetectionListener] = []
        self._error_listeners: List[ErrorListener] = []

        self.stats = {
            "ticks": 0,
            "no_frame": 0,
            "no_motion": 0,
            "awaiting_frames": 0,
            "in_flight": 0,
            "dispatched": 0,
            "detections": 0,
            "alerts": 0,
            "dropped_after_stop": 0,
        }

    # Listeners

    def on_detection(self, listener: DetectionListener) -> None:
        """Register ``listener(event)`` for every completed detection cycle."""
        self._detection_listeners.append(listener)

    def on_segmentation_result(self, listener) -> None:
        """Register ``listener(result, crops)`` for every segmentation run."""
        if self.segmentation is None:
            raise ConfigurationError("Segmentation listeners need a segmentation engine")
        self.segmentation.on_result(listener)

    def on_error(self, listener: ErrorListener) -> None:
        """Register ``listener(error)`` for recovered errors (kind + message)."""
        self._error_listeners.append(listener)

    # Settings

    @property
    def is_monitoring(self) -> bool:
        return self._session is not None

    @property
    def detection_in_flight(self) -> bool:
        return self._detection_task is not None and not self._detection_task.done()

    @property
    def focus_points(self) -> List[PointPrompt]:
        return list(self._focus_points)

    def set_target(self, target: Optional[WatchTarget]) -> None:
        """Change what to watch for; takes effect on the next dispatch."""
        self.target = target

    def set_focus_points(self, points: Sequence[PointPrompt]) -> None:
        self._focus_points = list(points)

    def set_segmentation_enabled(self, enabled: bool) -> None:
        if enabled and self.engine is None:
            raise ConfigurationError("Segmentation requested but no segmentation engine is configured")
        self.config.segmentation_enabled = enabled

    # Lifecycle

    async def start(self, autorun: bool = True) -> None:
        """
        Begin a monitoring session.

        Args:
            autorun: Tick every ``config.interval`` seconds. With False the
                session is open but ticks are driven by calling tick().

        Raises:
            ConfigurationError: no watch target is set
        """
        if self.is_monitoring:
            logger.debug("Monitoring already running")
            return
        if self.target is None or not self.target.description.strip():
            raise ConfigurationError("No watch target configured")

        self._reset_capture_state()
        session = MonitoringSession()
        self._session = session
        logger.info(
            "Monitoring started: target=%r confidence=%.2f interval=%.1fs motion=%s segmentation=%s",
            self.target.description, self.target.confidence, self.config.interval,
            self.config.motion_detection, self.config.segmentation_enabled
        )
        if autorun:
            self._timer_task = asyncio.create_task(self._run(session))

    async def stop(self) -> None:
        """
        End the session.

        The timer is cancelled immediately and capture state is reset. A
        detection still in flight finishes in the background but its result
        is dropped.
        """
        session = self._session
        if session is None:
            return
        session.cancel()
        self._session = None

        timer = self._timer_task
        self._timer_task = None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

        self._reset_capture_state()
        logger.info("Monitoring stopped")

    async def wait_idle(self) -> None:
        """Wait for the in-flight detection, if any, to finish."""
        task = self._detection_task
        if task is None:
            return
        try:
            await task
        except Exception:
            logger.exception("Detection task ended with an error")

    def _reset_capture_state(self) -> None:
        self.frame_buffer.clear()
        self.last_frame = None

    async def _run(self, session: MonitoringSession) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not session.cancelled:
            try:
                await self.tick()
            except ScopeMonitorError as e:
                logger.error("Capture tick failed (%s): %s", e.kind, e.message)
                await _notify(self._error_listeners, e)
            except Exception:
                logger.exception("Capture tick failed")
            next_tick += self.config.interval
            now = loop.time()
            if next_tick < now:
                # Fell behind (slow read); skip the missed slots
                logger.debug("Capture tick overran by %.3fs", now - next_tick)
                next_tick = now
            await asyncio.sleep(max(0.0, next_tick - loop.time()))

    # Capture

    async def tick(self) -> TickOutcome:
        """Run one capture cycle; see TickOutcome for what can happen."""
        session = self._session
        if session is None:
            raise ConfigurationError("Monitoring not started")
        self.stats["ticks"] += 1

        frame = await asyncio.to_thread(self.source.read)
        if frame is None:
            return self._count(TickOutcome.NO_FRAME)

        previous = self.last_frame
        self.last_frame = frame
        motion = ASSUMED_MOTION
        if self.config.motion_detection and previous is not None:
            motion = self.motion_gate.compare(previous, frame)
            if not motion.has_motion:
                return self._count(TickOutcome.NO_MOTION)

        self.frame_buffer.append(frame)
        target = self.target
        complex_action = is_complex_action(target.description)
        if complex_action and len(self.frame_buffer) < self.config.min_complex_frames:
            logger.debug(
                "Complex action: waiting for frames (%d/%d)",
                len(self.frame_buffer), self.config.min_complex_frames
            )
            return self._count(TickOutcome.AWAITING_FRAMES)

        if self.detection_in_flight:
            logger.debug("Detection in flight, skipping dispatch")
            return self._count(TickOutcome.IN_FLIGHT)

        frames = self.frame_buffer.frames() if complex_action else [frame]
        self._detection_task = asyncio.create_task(
            self._detect(session, target, frames, motion, complex_action)
        )
        return self._count(TickOutcome.DISPATCHED)

    def _count(self, outcome: TickOutcome) -> TickOutcome:
        self.stats[outcome.value] += 1
        return outcome

    async def _detect(
        self,
        session: MonitoringSession,
        target: WatchTarget,
        frames: List[np.ndarray],
        motion: MotionData,
        complex_action: bool
    ) -> None:
        focus_image = None
        if self.config.segmentation_enabled and self.segmentation is not None and self._focus_points:
            focus_image = await self._segment_focus(frames[-1])

        try:
            event = await self.orchestrator.detect(frames, target, motion, complex_action, focus_image)
        except ConfigurationError as e:
            logger.error("%s: %s - stopping monitoring", e.kind, e.message)
            await _notify(self._error_listeners, e)
            if not session.cancelled:
                await self.stop()
            return
        except ScopeMonitorError as e:
            logger.error("Detection failed (%s): %s", e.kind, e.message)
            await _notify(self._error_listeners, e)
            return
        except Exception as e:
            logger.exception("Detection failed unexpectedly")
            await _notify(self._error_listeners, UpstreamError(f"Detection failed: {e!r}"))
            return

        if session.cancelled:
            self.stats["dropped_after_stop"] += 1
            logger.debug("Monitoring stopped; dropping detection result %s", event.event_id)
            return

        self.stats["detections"] += 1
        if event.detected:
            self.stats["alerts"] += 1
        await _notify(self._detection_listeners, event)

    async def _segment_focus(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Crop of the best mask around the focus points, or None to use the full frame."""
        try:
            await self.segmentation.load_image(frame)
            await self.segmentation.set_points(self._focus_points)
        except ScopeMonitorError as e:
            logger.warning("Segmentation failed (%s): %s - detecting on the full frame", e.kind, e.message)
            await _notify(self._error_listeners, e)
            return None
        except Exception as e:
            logger.exception("Segmentation failed unexpectedly - detecting on the full frame")
            await _notify(self._error_listeners, InferenceError(f"Segmentation failed: {e!r}"))
            return None
        return self.segmentation.best_crop()

    async def segment_frame(
        self,
        image: Optional[np.ndarray] = None,
        points: Optional[Sequence[PointPrompt]] = None
    ) -> Tuple[SegmentationResult, List[Optional[np.ndarray]]]:
        """
        Segment ``image`` (default: the last captured frame) with ``points``
        (default: the focus points). Engine errors propagate.
        """
        if self.segmentation is None:
            raise ConfigurationError("No segmentation engine configured")
        if image is None:
            image = self.last_frame
        if image is None:
            raise ConfigurationError("No frame available to segment")

        await self.segmentation.load_image(image)
        result = await self.segmentation.set_points(
            self._focus_points if points is None else points
        )
        return result, list(self.segmentation.last_crops)

    def summary(self) -> dict:
        """Counters for the end-of-run report."""
        return dict(self.stats, monitoring=self.is_monitoring)
