# tests/utils/test_signal_manager.py
import asyncio
import os
import signal
import sys

import pytest

from chess_insights.utils.signal_manager import CancelOnSignal


@pytest.mark.asyncio
async def test_handler_sets_event_once():
    cancel_event = asyncio.Event()
    manager = CancelOnSignal(cancel_event)

    manager._on_signal(signal.SIGINT)
    manager._on_signal(signal.SIGINT)

    assert manager.requested
    assert cancel_event.is_set()


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="the event loop cannot own signal handling on Windows")
async def test_sigterm_inside_block_requests_cancellation():
    cancel_event = asyncio.Event()

    async with CancelOnSignal(cancel_event):
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(cancel_event.wait(), timeout=1.0)

    assert cancel_event.is_set()


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="the event loop cannot own signal handling on Windows")
async def test_handlers_are_removed_on_exit():
    loop = asyncio.get_running_loop()

    async with CancelOnSignal(asyncio.Event()):
        pass

    assert loop.remove_signal_handler(signal.SIGTERM) is False
