# tests/test_platform.py

from __future__ import annotations

import asyncio

import pytest

from deferloop.core.environment import SchedulerOptions
from deferloop.core.platform import AsyncioPlatform, ManualPlatform
from deferloop.scheduler import RunLoop

from .fakes import Recorder


def test_manual_platform_fires_in_due_order() -> None:
    platform = ManualPlatform()
    rec = Recorder()

    platform.set_timeout(rec("late"), 20)
    platform.set_timeout(rec("early"), 10)
    platform.set_timeout(rec("early-2"), 10)

    assert platform.pending == 3
    assert platform.advance(15) == 2
    assert rec.calls == ["early", "early-2"]
    assert platform.now() == 15

    platform.advance(5)
    assert rec.calls == ["early", "early-2", "late"]
    assert platform.pending == 0


def test_manual_platform_clear_timeout() -> None:
    platform = ManualPlatform()
    rec = Recorder()

    handle = platform.set_timeout(rec("cleared"), 5)
    platform.clear_timeout(handle)
    platform.clear_timeout(handle)
    platform.clear_timeout(None)

    assert platform.advance(10) == 0
    assert rec.calls == []


def test_manual_platform_clock_reads_due_time_inside_callback() -> None:
    platform = ManualPlatform(start_ms=100)
    seen: list[float] = []

    platform.set_timeout(lambda: seen.append(platform.now()), 5)
    platform.advance(50)

    assert seen == [105]
    assert platform.now() == 150


def test_manual_platform_rejects_going_backwards() -> None:
    platform = ManualPlatform(start_ms=10)

    with pytest.raises(ValueError):
        platform.advance(-1)
    with pytest.raises(ValueError):
        platform.advance_to(5)


@pytest.mark.asyncio
async def test_asyncio_platform_runs_later_and_autorun(settings) -> None:
    loop = RunLoop(options=SchedulerOptions(platform=AsyncioPlatform()), settings=settings)
    rec = Recorder()

    loop.defer("actions", rec("autorun"))
    loop.later(rec("later"), wait_ms=10)

    await asyncio.sleep(0.05)

    assert rec.calls == ["autorun", "later"]
    assert loop.current_instance is None
    assert not loop.has_timers()


@pytest.mark.asyncio
async def test_asyncio_platform_clear_timeout() -> None:
    platform = AsyncioPlatform()
    rec = Recorder()

    handle = platform.set_timeout(rec("cleared"), 5)
    platform.clear_timeout(handle)

    await asyncio.sleep(0.02)
    assert rec.calls == []


class _FlakyPlatform(ManualPlatform):
    """ManualPlatform whose next set_timeout() can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_next = False

    def set_timeout(self, callback, delay_ms: float = 0):
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("no host timer")
        return super().set_timeout(callback, delay_ms)


def test_asyncio_platform_outside_loop_leaves_no_open_instance(settings) -> None:
    loop = RunLoop(options=SchedulerOptions(platform=AsyncioPlatform()), settings=settings)
    rec = Recorder()

    with pytest.raises(RuntimeError):
        loop.defer("actions", rec("autorun"))

    assert loop.current_instance is None
    assert loop.depth == 0

    with pytest.raises(RuntimeError):
        loop.later(rec("later"), wait_ms=10)

    assert not loop.has_timers()


def test_failed_timer_install_keeps_ledger_consistent(settings) -> None:
    platform = _FlakyPlatform()
    loop = RunLoop(options=SchedulerOptions(platform=platform), settings=settings)
    rec = Recorder()

    platform.fail_next = True
    with pytest.raises(RuntimeError):
        loop.later(rec("lost"), wait_ms=5)
    assert not loop.has_timers()

    loop.later(rec("20"), wait_ms=20)
    platform.fail_next = True
    with pytest.raises(RuntimeError):
        loop.later(rec("lost-head"), wait_ms=10)
    loop.later(rec("30"), wait_ms=30)

    platform.advance(30)

    assert rec.calls == ["20", "30"]
    assert not loop.has_timers()


def test_failed_autorun_timer_can_be_retried(settings) -> None:
    platform = _FlakyPlatform()
    loop = RunLoop(options=SchedulerOptions(platform=platform), settings=settings)
    rec = Recorder()

    platform.fail_next = True
    with pytest.raises(RuntimeError):
        loop.defer("actions", rec("lost"))
    assert loop.current_instance is None

    loop.defer("actions", rec("kept"))
    platform.advance(0)

    assert rec.calls == ["kept"]
    assert loop.current_instance is None
