"""Command line argument parsing."""

import argparse
from typing import List, Optional, Tuple

from ..config.defaults import DEFAULT_CONFIG
from ..config.models import ModelSize, VisionBackendKind
from ..errors import ConfigurationError
from ..services.segmentation.types import PointPrompt


def parse_point(value: str) -> Tuple[float, float]:
    """Parse an ``X,Y`` pixel coordinate."""
    try:
        x, y = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected X,Y coordinates, got {value!r}")
    return x, y


def build_parser() -> argparse.ArgumentParser:
    capture_defaults = DEFAULT_CONFIG["capture"]
    parser = argparse.ArgumentParser(
        description='Scope Monitor - natural-language camera watch with point-prompted segmentation'
    )

    # Video source options
    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument('--list-devices', action='store_true',
                              help='List available video devices and exit')
    source_group.add_argument('--camera', type=int, default=None,
                              help='Camera device index (e.g., 0, 1, 2)')
    source_group.add_argument('--device', type=str, default=None,
                              help='Device path or stream URL (e.g., /dev/video4, rtsp://...)')
    source_group.add_argument('--video', type=str, default=None,
                              help='Video file to monitor (played back in real time, looping)')

    # Watch target
    parser.add_argument('--target', type=str, default=None,
                        help='What to watch for, in plain language (e.g., "person falling")')
    parser.add_argument('--confidence', type=float, default=0.7,
                        help='Minimum confidence to report a detection (default: 0.7)')
    parser.add_argument('--reference', type=str, default=None,
                        help='Reference image of the target for comparison')

    # Capture options
    parser.add_argument('--interval', type=float, default=capture_defaults["interval"],
                        help=f'Seconds between captures, 0.5-60 (default: {capture_defaults["interval"]})')
    parser.add_argument('--no-motion', action='store_true',
                        help='Analyze every frame instead of only frames with motion')
    parser.add_argument('--motion-threshold', type=float, default=capture_defaults["motion_threshold"],
                        help='Share of changed pixels that counts as motion, 0-1 '
                             f'(default: {capture_defaults["motion_threshold"]})')

    # Segmentation options
    parser.add_argument('--segment', action='store_true',
                        help='Segment focus regions with SAM2 before detection')
    parser.add_argument('--focus-point', type=parse_point, action='append', default=[], metavar='X,Y',
                        help='Pixel to include in the focus region (repeatable)')
    parser.add_argument('--exclude-point', type=parse_point, action='append', default=[], metavar='X,Y',
                        help='Pixel to exclude from the focus region (repeatable)')
    parser.add_argument('--model-size', type=str, default=DEFAULT_CONFIG["segmentation"]["model_size"],
                        choices=[size.value for size in ModelSize],
                        help='SAM2 model size (default: tiny)')
    parser.add_argument('--no-accel', action='store_true',
                        help='Run SAM2 on CPU even when GPU acceleration is available')
    parser.add_argument('--models-dir', type=str, default=None,
                        help='Directory with the SAM2 ONNX encoder/decoder')

    # Vision options
    parser.add_argument('--backend', type=str, default=DEFAULT_CONFIG["vision"]["backend"],
                        choices=[kind.value for kind in VisionBackendKind],
                        help='Vision backend (default: openai)')
    parser.add_argument('--vision-model', type=str, default=None,
                        help='Model name for the OpenAI-compatible backend')
    parser.add_argument('--list-backends', action='store_true',
                        help='List available vision backends and exit')

    # Alerting
    parser.add_argument('--nats', type=str, nargs='?', const=DEFAULT_CONFIG["nats"]["url"], default=None,
                        metavar='URL', help='Publish detection events to NATS (default URL from SCOPE_NATS_URL)')
    parser.add_argument('--camera-id', type=str, default=None,
                        help='Identifier used in the NATS subject (default: derived from the source)')

    parser.add_argument('--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def validate_arguments(args: argparse.Namespace) -> argparse.Namespace:
    """
    Check values and derive helpers; clamps the capture interval.

    Adds ``args.points``: focus points followed by exclude points, as
    PointPrompts in command-line order.

    Raises:
        ConfigurationError: missing target or out-of-range values
    """
    capture_defaults = DEFAULT_CONFIG["capture"]
    if args.list_devices or args.list_backends:
        return args

    if not args.target or not args.target.strip():
        raise ConfigurationError("A watch target is required (--target \"person falling\")")
    if not 0.0 <= args.confidence <= 1.0:
        raise ConfigurationError(f"--confidence must be between 0 and 1, got {args.confidence}")
    if not 0.0 < args.motion_threshold < 1.0:
        raise ConfigurationError(f"--motion-threshold must be between 0 and 1, got {args.motion_threshold}")

    clamped = min(max(args.interval, capture_defaults["min_interval"]), capture_defaults["max_interval"])
    if clamped != args.interval:
        print(f"Interval {args.interval}s out of range, using {clamped}s")
        args.interval = clamped

    if (args.focus_point or args.exclude_point) and not args.segment:
        raise ConfigurationError("--focus-point/--exclude-point require --segment")

    args.points = (
        [PointPrompt.positive(x, y) for x, y in args.focus_point]
        + [PointPrompt.negative(x, y) for x, y in args.exclude_point]
    )
    return args
