"""
Scope Monitor

Watches a camera or video file for a target described in plain language.
Frames are captured on a fixed interval, gated by motion, optionally
narrowed to a SAM2 focus region, and sent to a vision backend; detections
are logged and can be published to NATS.

Usage:
    scope-monitor --camera 0 --target "person falling"
    scope-monitor --video lobby.mp4 --target "package left at the door" --confidence 0.6
    scope-monitor --camera 1 --target "dog on the couch" --segment --focus-point 320,240
    scope-monitor --list-devices
"""

import asyncio
import dataclasses
import logging
import os
import sys
from typing import List, Optional

from .config.models import CaptureConfig, SegmentationConfig, VisionBackendKind, VisionConfig, WatchTarget, ModelSize
from .errors import ConfigurationError, ScopeMonitorError
from .services.capture.scheduler import CaptureScheduler
from .services.capture.sources import CameraSource, FrameSource, VideoFileSource
from .services.communication import AlertPublisher
from .services.detection import DetectionOrchestrator, VisionBackendFactory
from .services.events import DetectionEvent
from .services.segmentation import SegmentationEngine
from .utils.args import parse_arguments, validate_arguments
from .utils.device import enumerate_video_devices, print_device_list
from .utils.images import load_image
from .utils.logging import enable_verbose_logging, setup_logging
from .utils.signals import setup_signal_handlers

logger = logging.getLogger(__name__)


def build_source(args) -> FrameSource:
    """Pick the frame source from the command line, printing the mode banner."""
    if args.video:
        print("\n=== Video File Mode ===")
        print(f"Playing: {args.video}")
        print("=======================\n")
        return VideoFileSource(args.video)

    if args.device:
        print("\n=== Device Mode ===")
        print(f"Using device: {args.device}")
        print("===================\n")
        return CameraSource(args.device)

    index = args.camera if args.camera is not None else 0
    print("\n=== Camera Mode ===")
    print(f"Using camera index: {index}")
    print("===================\n")
    return CameraSource(index)


def default_camera_id(args) -> str:
    if args.camera_id:
        return args.camera_id
    if args.video:
        return os.path.splitext(os.path.basename(args.video))[0]
    if args.device:
        return os.path.basename(args.device.rstrip("/")) or "device"
    return f"camera-{args.camera if args.camera is not None else 0}"


def build_configs(args):
    """Capture, vision and segmentation settings with command-line overrides applied."""
    capture = dataclasses.replace(
        CaptureConfig.from_defaults(),
        interval=args.interval,
        motion_detection=not args.no_motion,
        motion_threshold=args.motion_threshold,
        segmentation_enabled=args.segment
    )

    vision = dataclasses.replace(VisionConfig.from_defaults(), backend=VisionBackendKind(args.backend))
    if args.vision_model:
        vision.model = args.vision_model

    segmentation = dataclasses.replace(
        SegmentationConfig.from_defaults(),
        model_size=ModelSize(args.model_size),
        use_acceleration=not args.no_accel
    )
    if args.models_dir:
        segmentation.models_dir = args.models_dir

    return capture, vision, segmentation


def print_event(event: DetectionEvent) -> None:
    """Console report for one detection cycle."""
    if event.detected:
        tag = "URGENT" if event.is_urgent else "ALERT"
        print(f"\n[{tag} {event.timestamp}] {event.message}")
        print(f"  Urgency: {event.urgency}")
        if event.recommended_action:
            print(f"  Recommended action: {event.recommended_action}")
        print(f"  Reasoning: {event.reasoning}")
    elif event.degraded:
        logger.warning("Degraded result: %s", event.reasoning)
    else:
        logger.info(
            "No detection (%.0f%% confidence, %.1f%% change, %d frame%s)",
            event.confidence * 100, event.change_percent, event.frame_count,
            "" if event.frame_count == 1 else "s"
        )


def print_segmentation(result, crops: List) -> None:
    best = result.best_index()
    if best is None:
        logger.info("Focus region: no masks (%s mode)", result.mode.value if result.mode else "?")
        return
    logger.info(
        "Focus region: %d mask(s), best score %.2f covering %d px (%s mode)",
        len(result.masks), result.scores[best], result.masks[best].area,
        result.mode.value if result.mode else "?"
    )


async def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    args = parse_arguments(argv)
    if args.verbose:
        enable_verbose_logging()

    # Handle --list-devices / --list-backends
    if args.list_devices:
        print_device_list(enumerate_video_devices(verbose=args.verbose))
        return 0
    if args.list_backends:
        VisionBackendFactory.list_backends()
        return 0

    try:
        validate_arguments(args)
    except ConfigurationError as e:
        print(f"Error: {e.message}")
        return 2

    capture_config, vision_config, segmentation_config = build_configs(args)

    # =========================================================================
    # STEP 1: Watch target and vision backend
    # =========================================================================
    try:
        reference = load_image(args.reference) if args.reference else None
    except ConfigurationError as e:
        print(f"Error: {e.message}")
        return 2
    target = WatchTarget(args.target.strip(), args.confidence, reference)

    print("=== Watch Target ===")
    print(f"Target: {target.description}")
    print(f"Confidence threshold: {target.confidence:.2f}")
    print(f"Reference image: {args.reference or 'none'}")
    print(f"Capture interval: {capture_config.interval}s, motion gating: {capture_config.motion_detection}")
    print("====================\n")

    backend = VisionBackendFactory.create_backend(vision_config.backend, vision_config)
    try:
        await backend.load()
    except ScopeMonitorError as e:
        print(f"Error loading vision backend ({e.kind}): {e.message}")
        return 1
    print(f"Vision backend: {backend.get_backend_info()}")

    # =========================================================================
    # STEP 2: Optional SAM2 focus segmentation
    # =========================================================================
    engine = None
    if args.segment:
        engine = SegmentationEngine(segmentation_config)
        try:
            mode = await engine.initialize()
        except ScopeMonitorError as e:
            print(f"Error initializing SAM2 ({e.kind}): {e.message}")
            await backend.close()
            return 1
        print(f"SAM2 {segmentation_config.artifacts.description}: {mode.value} mode")
        print(f"Focus points: {len(args.points)}\n")

    # =========================================================================
    # STEP 3: Alert publishing
    # =========================================================================
    publisher = None
    if args.nats:
        publisher = AlertPublisher(default_camera_id(args), url=args.nats)
        try:
            await publisher.connect()
            print(f"Publishing detection events to {publisher.subject}")
        except Exception as e:
            print(f"Warning: could not connect to NATS at {args.nats}: {e}")
            print("Continuing without alert publishing")
            publisher = None

    # =========================================================================
    # STEP 4: Monitor until interrupted
    # =========================================================================
    source = build_source(args)
    orchestrator = DetectionOrchestrator(backend, capture_config.interval, capture_config.jpeg_quality)
    scheduler = CaptureScheduler(source, orchestrator, capture_config, target, engine)
    if engine is not None:
        scheduler.set_focus_points(args.points)
        scheduler.on_segmentation_result(print_segmentation)

    stop_event = asyncio.Event()

    def on_error(error: ScopeMonitorError) -> None:
        if isinstance(error, ConfigurationError):
            stop_event.set()

    scheduler.on_detection(print_event)
    if publisher is not None:
        scheduler.on_detection(publisher.publish)
    scheduler.on_error(on_error)
    setup_signal_handlers(stop_event.set)

    exit_code = 0
    try:
        source.open()
        await scheduler.start()
        print("Monitoring... press Ctrl+C to stop\n")
        await stop_event.wait()
    except ConfigurationError as e:
        print(f"Error: {e.message}")
        exit_code = 1
    finally:
        await scheduler.stop()
        try:
            await asyncio.wait_for(scheduler.wait_idle(), timeout=vision_config.timeout)
        except asyncio.TimeoutError:
            logger.warning("Abandoning detection still in flight")
        source.close()
        await backend.close()
        if engine is not None:
            await engine.dispose()
        if publisher is not None:
            await publisher.close()

    summary = scheduler.summary()
    print("\n=== Session Summary ===")
    print(f"Ticks: {summary['ticks']}  Dispatched: {summary['dispatched']}  "
          f"Skipped (no motion): {summary['no_motion']}  Skipped (busy): {summary['in_flight']}")
    print(f"Detection cycles: {summary['detections']}  Alerts: {summary['alerts']}")
    print("=======================")
    return exit_code


def run() -> None:
    """Console entry point."""
    sys.exit(asyncio.run(main()))
