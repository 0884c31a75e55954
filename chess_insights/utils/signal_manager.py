# chess_insights/utils/signal_manager.py
"""
Turns SIGINT/SIGTERM into a cancellation request for a running analysis.

Inside an `async with CancelOnSignal(event)` block, Ctrl+C sets `event`
instead of raising `KeyboardInterrupt`. The analysis pipeline checks the
event between games, so the run stops at a clean point and every analysis
finished so far stays stored.
"""

import asyncio
import signal
from typing import List, Tuple

import structlog

logger = structlog.get_logger(__name__)

_SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class CancelOnSignal:
    """Sets `cancel_event` on the first shutdown signal; later signals are only logged."""

    def __init__(self, cancel_event: asyncio.Event):
        self._cancel_event = cancel_event
        self._installed: List[signal.Signals] = []

    @property
    def requested(self) -> bool:
        return self._cancel_event.is_set()

    def _on_signal(self, sig: signal.Signals) -> None:
        if self.requested:
            logger.info("Repeated signal ignored; cancellation already requested.", signal_name=sig.name)
            return
        logger.warning("Signal received, cancelling after the current game.", signal_name=sig.name)
        self._cancel_event.set()

    async def __aenter__(self) -> "CancelOnSignal":
        loop = asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (ValueError, RuntimeError, NotImplementedError) as e:
                # Windows loops and non-main threads cannot own signal handling.
                logger.debug("Signal handler not installed.", signal_name=sig.name, error=str(e))
                continue
            self._installed.append(sig)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        loop = asyncio.get_running_loop()
        while self._installed:
            loop.remove_signal_handler(self._installed.pop())
