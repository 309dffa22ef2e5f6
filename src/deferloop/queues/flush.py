# src/deferloop/queues/flush.py

from __future__ import annotations

"""
Flush engine.

A Flush drains one queue as a two-level state machine:
- outer (Flush): pop a snapshot batch, run it, re-check the queue;
- inner (Batch): one record per step.

next() advances by one step, so a flush can be driven cooperatively;
flush() drives it to completion.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable

from ..core.ports import ErrorStrategy
from .task_models import TaskRecord, resolve_method

if TYPE_CHECKING:
    from .queue import Queue

logger = logging.getLogger(__name__)


class FlushState(str, Enum):
    INITIAL = "initial"
    FLUSHING = "flushing"
    DONE = "done"
    RETURN = "return"


class StepResult(str, Enum):
    NEXT = "next"
    DONE = "done"


class Batch:
    """Runs an immutable snapshot of records, one per step."""

    def __init__(self, tasks: tuple[TaskRecord, ...], on_error: ErrorStrategy) -> None:
        self.tasks = tasks
        self.on_error = on_error
        self.position = 0

    def __len__(self) -> int:
        return len(self.tasks)

    def next(self) -> StepResult:
        if self.position >= len(self.tasks):
            return StepResult.DONE

        record = self.tasks[self.position]
        self.position += 1

        if record.method is None:
            # Cancelled while this batch was in flight.
            return StepResult.NEXT

        method = resolve_method(record.target, record.method)
        if method is None:
            logger.warning("Skipping task: %r has no callable %r", record.target, record.method)
            return StepResult.NEXT

        self.on_error.invoke(record.target, method, record.args, record.debug_info)
        return StepResult.NEXT

    def flush(self) -> None:
        while self.next() is not StepResult.DONE:
            pass


class Flush:
    """
    Drains one queue.

    drain=True keeps popping batches until the queue is observed empty;
    drain=False returns after a single batch (the queue set re-checks
    higher-priority queues between batches).
    """

    def __init__(
            self,
            queue: Queue,
            *,
            drain: bool = True,
            on_error: ErrorStrategy | None = None,
            before: Callable[[], None] | None = None,
            after: Callable[[], None] | None = None,
    ) -> None:
        self.queue = queue
        self.drain = drain
        self.on_error = on_error if on_error is not None else queue.on_error
        self.before = before
        self.after = after

        self.state = FlushState.INITIAL
        self.batch: Batch | None = None

    def should_flush(self) -> bool:
        return self.queue.has_tasks()

    def will_flush(self) -> None:
        if self.before is not None:
            self.before()

    def did_flush(self) -> None:
        if self.after is not None:
            self.after()

    def flush(self) -> None:
        self.will_flush()
        while self.next() is not StepResult.DONE:
            pass
        self.did_flush()

    def next(self) -> StepResult:
        if self.state is FlushState.INITIAL:
            if self.queue.has_tasks():
                self.batch = Batch(self.queue.pop_tasks(), self.on_error)
                self.queue.track_batch(self.batch)
                self.state = FlushState.FLUSHING
            else:
                self.state = FlushState.RETURN
            return StepResult.NEXT

        if self.state is FlushState.FLUSHING:
            try:
                result = self.batch.next()
            except BaseException:
                self._abandon_batch()
                raise
            if result is StepResult.DONE:
                self._release_batch()
                self.state = FlushState.DONE
            return StepResult.NEXT

        if self.state is FlushState.DONE:
            self.state = FlushState.INITIAL if self.drain else FlushState.RETURN
            return StepResult.NEXT

        # RETURN
        self.batch = None
        self.state = FlushState.INITIAL
        return StepResult.DONE

    def _release_batch(self) -> None:
        if self.batch is not None:
            self.queue.release_batch(self.batch)
        self.batch = None

    def _abandon_batch(self) -> None:
        # An error escaped the invocation boundary; the rest of this batch is dropped.
        self._release_batch()
        self.state = FlushState.INITIAL
