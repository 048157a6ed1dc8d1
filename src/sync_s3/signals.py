# src/sync_s3/signals.py
"""
Graceful interruption of a sync run.

SIGINT and SIGTERM are translated into an `asyncio.Event` that the transfer
workers check before starting each key. Transfers already in flight finish,
so an interrupted run never leaves a half-written object behind, and the
next run picks up the remaining keys.
"""

import asyncio
import logging
import os
import signal
from typing import Any, Optional, Tuple

logger: logging.Logger = logging.getLogger(__name__)

HANDLED_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class GracefulShutdown:
    """
    An async context manager that turns POSIX signals into a shutdown event.

    The first signal sets the event. A second signal exits immediately.
    Handlers are removed from the running loop on exit.
    """

    def __init__(self) -> None:
        self._event: asyncio.Event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def _handle(self, sig: signal.Signals) -> None:
        if self._event.is_set():
            logger.critical("Received second shutdown signal. Forcing immediate exit.")
            os._exit(1)
        logger.warning(
            f"Received {sig.name}. Finishing in-flight transfers, "
            "no new object will be started."
        )
        self._event.set()

    async def __aenter__(self) -> asyncio.Event:
        """
        Registers the signal handlers on the running loop.

        Returns:
            asyncio.Event: Set once a handled signal is received.
        """
        self._loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # Not supported on every platform, nor outside the main thread
                logger.warning(f"Could not set handler for {sig.name}: {e}")
        return self._event

    async def __aexit__(self, *args: Any) -> None:
        """Removes the signal handlers."""
        if self._loop is None:
            return
        for sig in HANDLED_SIGNALS:
            try:
                self._loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.warning(f"Could not remove handler for {sig.name}: {e}")
        self._loop = None
