"""Timer facility used by debounced actions."""

import asyncio
from typing import Callable, Optional

from application.ports import Scheduler


class LoopScheduler:
    """Scheduler bound to the running asyncio loop (prompt_toolkit's loop in the TUI)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class Debouncer:
    """Coalesces bursts of triggers into one callback after a quiet period."""

    def __init__(self, scheduler: Scheduler, delay: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        self.cancel()
        self._handle = self.scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        self.callback()


def spawn(coro) -> "asyncio.Future":
    """Schedule a coroutine on the running loop without awaiting it."""
    return asyncio.ensure_future(coro)


__all__ = ["LoopScheduler", "Debouncer", "spawn"]
