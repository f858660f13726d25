"""Logging utilities."""

import logging

import cv2

from ..config.defaults import setup_opencv_environment

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    """Setup logging configuration for the application."""
    # Setup OpenCV environment to suppress logging
    setup_opencv_environment()

    # Set OpenCV log level
    cv2.setLogLevel(0)

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def enable_verbose_logging() -> None:
    """Enable verbose logging for debugging."""
    cv2.setLogLevel(3)  # Show errors
    logging.getLogger().setLevel(logging.DEBUG)
    logging.getLogger("scope_monitor").setLevel(logging.DEBUG)
    print("Verbose logging enabled")
