#!/usr/bin/env python3
"""
Scope Monitor

Entry point for running from a source checkout without installing.

Usage:
    # Watch the default camera
    python scope.py --target "person falling"

    # Video file with SAM2 focus region
    python scope.py --video lobby.mp4 --target "bag left unattended" --segment --focus-point 640,360

    # Publish alerts to NATS
    python scope.py --camera 1 --target "smoke" --nats --camera-id kitchen
"""

import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from scope_monitor.monitor import main

if __name__ == "__main__":
    import asyncio
    sys.exit(asyncio.run(main()))
