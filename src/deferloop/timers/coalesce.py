# src/deferloop/timers/coalesce.py

from __future__ import annotations

"""
Debounce / throttle.

Both keep a small list of CoalesceRecord (target, method, host timer) with at most
one record per (target, method). Lookups are linear scans; the lists stay short.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..core.ports import TimerPlatform
from ..queues.task_models import same_method

logger = logging.getLogger(__name__)

Runner = Callable[..., Any]
# RunLoop.run-compatible: runner(method, *args, target=...)


@dataclass(slots=True, eq=False)
class CoalesceRecord:
    target: Any
    method: Callable[..., Any]
    timer: Any = None


def coerce_wait(wait_ms: Any) -> float:
    wait = float(wait_ms)
    if wait < 0:
        raise ValueError("wait_ms must be >= 0")
    return wait


class CoalesceSet:
    def __init__(self, platform: TimerPlatform) -> None:
        self._platform = platform
        self._records: list[CoalesceRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> CoalesceRecord:
        return self._records[index]

    def find(self, target: Any, method: Any) -> int:
        for index, record in enumerate(self._records):
            if record.target is target and same_method(record.method, method):
                return index
        return -1

    def append(self, record: CoalesceRecord) -> None:
        self._records.append(record)

    def pop(self, index: int) -> CoalesceRecord:
        return self._records.pop(index)

    def discard(self, record: CoalesceRecord) -> bool:
        """Forget a record without touching its timer (the timer already fired)."""
        for index, candidate in enumerate(self._records):
            if candidate is record:
                del self._records[index]
                return True
        return False

    def cancel(self, record: CoalesceRecord) -> bool:
        index = self.find(record.target, record.method)
        if index < 0 or self._records[index] is not record:
            return False
        del self._records[index]
        self._platform.clear_timeout(record.timer)
        return True

    def clear(self) -> None:
        for record in self._records:
            self._platform.clear_timeout(record.timer)
        self._records = []


class Debouncer:
    """
    Trailing-edge coalescing: every call restarts the window.

    With immediate=True the first call of a window runs synchronously and the
    timer only closes the window.
    """

    def __init__(self, platform: TimerPlatform, runner: Runner) -> None:
        self._platform = platform
        self._run = runner
        self.records = CoalesceSet(platform)

    def __call__(
            self,
            target: Any,
            method: Callable[..., Any],
            args: Sequence[Any],
            wait_ms: Any,
            immediate: bool = False,
    ) -> CoalesceRecord:
        wait = coerce_wait(wait_ms)

        index = self.records.find(target, method)
        existed = index > -1
        if existed:
            previous = self.records.pop(index)
            self._platform.clear_timeout(previous.timer)

        record = CoalesceRecord(target, method)

        def fire() -> None:
            try:
                if not immediate:
                    self._run(method, *args, target=target)
            finally:
                self.records.discard(record)

        record.timer = self._platform.set_timeout(fire, wait)
        self.records.append(record)

        if immediate and not existed:
            self._run(method, *args, target=target)

        return record


class Throttler:
    """
    At most one invocation per window; calls while a record is pending are dropped.

    immediate=True (leading) runs the first call synchronously; immediate=False
    runs it when the window closes.
    """

    def __init__(self, platform: TimerPlatform, runner: Runner) -> None:
        self._platform = platform
        self._run = runner
        self.records = CoalesceSet(platform)

    def __call__(
            self,
            target: Any,
            method: Callable[..., Any],
            args: Sequence[Any],
            wait_ms: Any,
            immediate: bool = True,
    ) -> CoalesceRecord:
        wait = coerce_wait(wait_ms)

        index = self.records.find(target, method)
        if index > -1:
            logger.debug("Throttled call to %r dropped", method)
            return self.records[index]

        record = CoalesceRecord(target, method)

        def fire() -> None:
            try:
                if not immediate:
                    self._run(method, *args, target=target)
            finally:
                self.records.discard(record)

        record.timer = self._platform.set_timeout(fire, wait)
        self.records.append(record)

        if immediate:
            self._run(method, *args, target=target)

        return record
