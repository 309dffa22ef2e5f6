# src/deferloop/timers/ledger.py

from __future__ import annotations

"""
Timer ledger.

Pending deadlines are kept as two parallel ascending lists (deadlines, callbacks).
Only one host timeout is ever outstanding: it covers the earliest deadline and
is reinstalled whenever the head of the ledger changes.
"""

import logging
from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..core.ports import ErrorStrategy, HostCallback, TimerPlatform

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class TimerCallback:
    """
    A deferred call waiting in the ledger.

    The object itself is the cancellation handle returned by RunLoop.later().
    """

    target: Any
    method: Callable[..., Any]
    args: Sequence[Any] | None
    on_error: ErrorStrategy
    debug_info: Any = None

    def __call__(self) -> Any:
        return self.on_error.invoke(self.target, self.method, self.args, self.debug_info)


class TimerLedger:
    def __init__(self, platform: TimerPlatform, on_fire: HostCallback) -> None:
        self._platform = platform
        self._on_fire = on_fire
        self._deadlines: list[float] = []
        self._callbacks: list[HostCallback] = []
        self._timeout_id: Any = None

    def __len__(self) -> int:
        return len(self._deadlines)

    @property
    def next_deadline(self) -> float | None:
        return self._deadlines[0] if self._deadlines else None

    @property
    def timeout_installed(self) -> bool:
        return self._timeout_id is not None

    def insert(self, deadline: float, callback: HostCallback) -> HostCallback:
        # After any equal deadlines: ties fire in insertion order.
        index = bisect_right(self._deadlines, deadline)
        self._deadlines.insert(index, deadline)
        self._callbacks.insert(index, callback)

        if index == 0 or self._timeout_id is None:
            # The old timeout is only cleared once the new one is armed.
            previous, self._timeout_id = self._timeout_id, None
            try:
                self.install_timeout()
            except BaseException:
                self._timeout_id = previous
                del self._deadlines[index]
                del self._callbacks[index]
                raise
            if previous is not None:
                self._platform.clear_timeout(previous)

        return callback

    def remove(self, callback: HostCallback) -> bool:
        for index, candidate in enumerate(self._callbacks):
            if candidate is callback:
                del self._deadlines[index]
                del self._callbacks[index]
                if index == 0:
                    self.reinstall_timeout()
                return True
        return False

    def pop_expired(self, now: float) -> list[HostCallback]:
        """Detach every callback whose deadline is <= now, earliest first."""
        index = bisect_right(self._deadlines, now)
        expired = self._callbacks[:index]
        del self._deadlines[:index]
        del self._callbacks[:index]
        return expired

    def timeout_fired(self) -> None:
        # The host timer is fire-once; nothing left to clear.
        self._timeout_id = None

    def install_timeout(self) -> None:
        if not self._deadlines or self._timeout_id is not None:
            return
        wait_ms = max(0.0, self._deadlines[0] - self._platform.now())
        self._timeout_id = self._platform.set_timeout(self._on_fire, wait_ms)
        logger.debug("Timer timeout installed: %.1f ms (%d pending)", wait_ms, len(self._deadlines))

    def clear_timeout(self) -> None:
        if self._timeout_id is None:
            return
        self._platform.clear_timeout(self._timeout_id)
        self._timeout_id = None

    def reinstall_timeout(self) -> None:
        self.clear_timeout()
        self.install_timeout()

    def clear(self) -> None:
        self.clear_timeout()
        self._deadlines = []
        self._callbacks = []
