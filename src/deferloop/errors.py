# src/deferloop/errors.py

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for programmer errors raised by the scheduler."""


class RunLoopError(SchedulerError):
    """end() was called with no run-loop instance open."""


class NoSuchQueueError(SchedulerError, LookupError):
    def __init__(self, queue_name: str) -> None:
        super().__init__(
            f"You attempted to schedule an action in a queue ({queue_name}) that doesn't exist"
        )
        self.queue_name = queue_name


class NoSuchMethodError(SchedulerError, LookupError):
    def __init__(self, queue_name: str | None, method: object = None) -> None:
        where = f"in a queue ({queue_name}) " if queue_name else ""
        super().__init__(f"You attempted to schedule an action {where}for a method that doesn't exist")
        self.queue_name = queue_name
        self.method = method


class UnknownEventError(SchedulerError, LookupError):
    def __init__(self, event_name: str, action: str = "on") -> None:
        super().__init__(f'Cannot {action}() event "{event_name}" because it does not exist')
        self.event_name = event_name


class CallbackNotFoundError(SchedulerError, LookupError):
    def __init__(self, event_name: str) -> None:
        super().__init__(f'Cannot off() a callback for "{event_name}" that does not exist')
        self.event_name = event_name
