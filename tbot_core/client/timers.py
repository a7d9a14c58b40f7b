# tbot_core/client/timers.py
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger("tbot.timers")


class CancellableTimer:
    """A one-shot ``loop.call_later`` timer whose cancel() may be called any number of times."""

    def __init__(self, name: str, delay: float, callback: Callable[[], None], loop: Optional[asyncio.AbstractEventLoop] = None):
        self.name = name
        self.delay = delay
        self._callback = callback
        self._loop = loop or asyncio.get_running_loop()
        self._fired = False
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = self._loop.call_later(delay, self._fire)
        logger.debug(f"Timer '{name}' armed for {delay:.2f}s.")

    @property
    def active(self) -> bool:
        return not self._fired and not self._cancelled

    def _fire(self) -> None:
        if not self.active:
            return
        self._fired = True
        self._handle = None
        logger.debug(f"Timer '{self.name}' fired.")
        self._callback()

    def cancel(self) -> bool:
        """Cancel the timer. Returns True only for the call that actually cancelled it."""
        if not self.active:
            return False
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.debug(f"Timer '{self.name}' cancelled.")
        return True
