# tests/conftest.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from deferloop.core.environment import SchedulerOptions
from deferloop.core.platform import ManualPlatform
from deferloop.scheduler import RunLoop

QUEUES = ["sync", "actions", "render", "destroy"]


@pytest.fixture()
def settings() -> SimpleNamespace:
    """
    Minimal settings object compatible with RunLoop / Environment.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests independent of the process environment.
    """
    return SimpleNamespace(
        queue_names=list(QUEUES),
        default_queue="actions",
        debug=False,
        log_level="INFO",
        log_dir=None,
    )


@pytest.fixture()
def platform() -> ManualPlatform:
    """Virtual clock: nothing fires until the test advances it."""
    return ManualPlatform()


@pytest.fixture()
def runloop(settings: SimpleNamespace, platform: ManualPlatform) -> RunLoop:
    return RunLoop(options=SchedulerOptions(platform=platform), settings=settings)
