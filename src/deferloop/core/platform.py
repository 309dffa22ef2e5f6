# src/deferloop/core/platform.py

"""
Host timer platforms.

- AsyncioPlatform: fire-once callbacks on an asyncio event loop (production use).
- ManualPlatform: virtual clock advanced explicitly (simulations, deterministic tests).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from heapq import heappop, heappush

from .ports import HostCallback


class AsyncioPlatform:
    """
    Timers backed by loop.call_later().

    If no loop is given, the running loop is looked up when a timeout is set,
    so set_timeout() must be called from inside a running loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def set_timeout(self, callback: HostCallback, delay_ms: float = 0) -> asyncio.TimerHandle:
        delay_s = max(0.0, float(delay_ms)) / 1000.0
        return self._get_loop().call_later(delay_s, callback)

    def clear_timeout(self, handle: asyncio.TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def now(self) -> float:
        # Same clock as BaseEventLoop.time().
        return time.monotonic() * 1000.0


@dataclass(slots=True)
class _ManualTimer:
    timer_id: int
    due_ms: float
    callback: HostCallback
    cancelled: bool = False


class ManualPlatform:
    """
    Virtual clock for deterministic driving.

    Nothing fires until advance()/advance_to()/run_due() is called. Timers fire
    in due order, ties in creation order; the clock reads the timer's due time
    while its callback runs.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = float(start_ms)
        self._next_id = 1
        self._timers: dict[int, _ManualTimer] = {}
        self._queue: list[tuple[float, int]] = []

    def now(self) -> float:
        return self._now_ms

    @property
    def pending(self) -> int:
        """Return count of armed (not fired, not cleared) timers."""
        return len(self._timers)

    def set_timeout(self, callback: HostCallback, delay_ms: float = 0) -> int:
        if delay_ms < 0:
            delay_ms = 0
        timer_id = self._next_id
        self._next_id += 1
        timer = _ManualTimer(timer_id=timer_id, due_ms=self._now_ms + float(delay_ms), callback=callback)
        self._timers[timer_id] = timer
        heappush(self._queue, (timer.due_ms, timer_id))
        return timer_id

    def clear_timeout(self, handle: int | None) -> None:
        timer = self._timers.pop(handle, None) if handle is not None else None
        if timer is not None:
            timer.cancelled = True

    def advance(self, delta_ms: float) -> int:
        """Advance the clock and run due callbacks. Returns how many fired."""
        if delta_ms < 0:
            raise ValueError("delta_ms must be >= 0")
        return self.advance_to(self._now_ms + delta_ms)

    def advance_to(self, when_ms: float) -> int:
        if when_ms < self._now_ms:
            raise ValueError("when_ms cannot move backwards")
        fired = 0
        while self._queue and self._queue[0][0] <= when_ms:
            due_ms, timer_id = heappop(self._queue)
            timer = self._timers.pop(timer_id, None)
            if timer is None or timer.cancelled:
                continue
            self._now_ms = max(self._now_ms, due_ms)
            fired += 1
            timer.callback()
        self._now_ms = when_ms
        return fired

    def run_due(self) -> int:
        """Fire everything due at the current instant (e.g. zero-delay timeouts)."""
        return self.advance_to(self._now_ms)
