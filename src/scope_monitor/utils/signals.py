"""Signal handling utilities."""

import asyncio
import signal
from typing import Callable


def setup_signal_handlers(stop_callback: Callable[[], None]) -> None:
    """Call ``stop_callback`` on SIGINT/SIGTERM so the run loop can shut down cleanly."""
    loop = asyncio.get_running_loop()

    def handler():
        print("\nShutting down...")
        stop_callback()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, handler)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(handler))
