"""Scope Monitor: natural-language camera watch with point-prompted segmentation."""

__version__ = "0.1.0"
