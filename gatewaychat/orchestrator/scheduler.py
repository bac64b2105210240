"""
Throttles message-store updates during streaming.

At most one update per window reaches the store while a response streams;
changes arriving inside the window collapse into a single deferred flush.
Tool boundaries and terminal events bypass the throttle with ``flush_now``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class UpdateScheduler:
    """
    Parameters
    ----------
    flush : callable
        Called with the ``streaming`` flag to push the current state to the
        store.
    window : float
        Minimum seconds between two throttled flushes.
    clock : callable
        Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        flush: Callable[[bool], None],
        window: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._flush = flush
        self.window = window
        self._clock = clock
        self._last_flush: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule(self) -> None:
        """Flush now if the window has elapsed, otherwise arm one deferred flush."""
        if self._closed or self._timer is not None:
            return
        now = self._clock()
        if self._last_flush is None or now - self._last_flush >= self.window:
            self._do_flush(True)
            return
        delay = self.window - (now - self._last_flush)
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)

    def flush_now(self, streaming: bool = True) -> None:
        self.cancel()
        if self._closed:
            return
        self._do_flush(streaming)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> None:
        """Drop any pending flush and ignore every later one."""
        self.cancel()
        self._closed = True

    def _on_timer(self) -> None:
        self._timer = None
        if not self._closed:
            self._do_flush(True)

    def _do_flush(self, streaming: bool) -> None:
        self._last_flush = self._clock()
        self._flush(streaming)
