"""
Cancellable one-shot timers on the asyncio event loop.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    Handle for a callback scheduled to run once after a delay.

    The callback runs at most once. ``cancel()`` may be called any number of
    times, before or after the task fired, and only the first call has an
    effect.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, delay_ms: int, callback: Callable[[], None], name: str = ""):
        self.name = name
        self._callback = callback
        self._done = False
        self._cancelled = False
        self._handle = loop.call_later(max(0, delay_ms) / 1000, self._fire)

    def _fire(self):
        if self._done or self._cancelled:
            return
        self._done = True
        logger.debug(f"Running scheduled task {self.name}")
        self._callback()

    def cancel(self) -> bool:
        """
        Cancel the task if it has not run yet.

        Returns:
            True if this call cancelled a pending task
        """
        if self._done or self._cancelled:
            return False
        self._cancelled = True
        self._handle.cancel()
        logger.debug(f"Cancelled scheduled task {self.name}")
        return True

    @property
    def done(self) -> bool:
        """True once the callback has run."""
        return self._done

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> bool:
        return not (self._done or self._cancelled)


class Scheduler:
    """Creates ScheduledTasks on one event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def call_later(self, delay_ms: int, callback: Callable[[], None], name: str = "") -> ScheduledTask:
        return ScheduledTask(self.loop, delay_ms, callback, name=name)
