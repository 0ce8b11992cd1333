# nodectl/signals.py
"""
Graceful shutdown signal handling for Windows and Unix.

Registers SIGINT/SIGTERM handlers that ask a foreground node to stop, so
disposable repositories are still cleaned up on Ctrl+C.
"""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)


def setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """
    Set up signal handlers that set stop_event.

    On Windows (ProactorEventLoop), add_signal_handler is not supported,
    so we fall back to signal.signal().

    Args:
        stop_event: Event the foreground command waits on before stopping
    """
    loop = asyncio.get_running_loop()

    def _request_stop(sig_name: str) -> None:
        logger.info(f"Received {sig_name}, stopping node...")
        stop_event.set()

    def _signal_callback(sig_num, frame) -> None:
        loop.call_soon_threadsafe(_request_stop, signal.Signals(sig_num).name)

    try:
        loop.add_signal_handler(signal.SIGINT, _request_stop, "SIGINT")
        loop.add_signal_handler(signal.SIGTERM, _request_stop, "SIGTERM")
        logger.debug("Signal handlers registered (loop-based)")

    except NotImplementedError:
        signal.signal(signal.SIGINT, _signal_callback)
        signal.signal(signal.SIGTERM, _signal_callback)
        logger.debug("Signal handlers registered (fallback for Windows)")
