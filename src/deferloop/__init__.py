"""
deferloop: a cooperative, single-threaded run-loop scheduler.

Components:
- scheduler.py: RunLoop (begin/end stack, run/join/defer/later/debounce/throttle)
- queues/: named queues, the flush engine, queue sets
- timers/: timer ledger and debounce/throttle records
- core/: ports, environment (error strategies, options), host timer platforms
- config.py / logging_setup.py: settings from env, logging configuration
"""

from .config import Settings, get_settings
from .core.environment import QueueOptions, SchedulerOptions
from .core.platform import AsyncioPlatform, ManualPlatform
from .errors import (
    CallbackNotFoundError,
    NoSuchMethodError,
    NoSuchQueueError,
    RunLoopError,
    SchedulerError,
    UnknownEventError,
)
from .scheduler import RunLoop

__all__ = [
    "AsyncioPlatform",
    "CallbackNotFoundError",
    "ManualPlatform",
    "NoSuchMethodError",
    "NoSuchQueueError",
    "QueueOptions",
    "RunLoop",
    "RunLoopError",
    "SchedulerError",
    "SchedulerOptions",
    "Settings",
    "UnknownEventError",
    "get_settings",
]
