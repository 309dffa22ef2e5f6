# src/deferloop/queues/queue.py

from __future__ import annotations

"""
One named lane of deferred work.

Records are appended to a flat list; a record's position is its list index.
push_unique() keeps at most one live record per (identity, method) and
overwrites args in place, so coalesced work keeps the position of the first request.
"""

import logging
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any, Sequence

from ..core.environment import NO_ERROR_HANDLER, Environment, QueueOptions
from .flush import Batch, Flush
from .task_models import Method, TaskHandle, TaskRecord, same_method

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _IndexEntry:
    method: Method
    position: int


class Queue:
    def __init__(
            self,
            name: str,
            options: QueueOptions | None = None,
            env: Environment | None = None,
    ) -> None:
        self.name = name
        self.options = options or QueueOptions()
        self.on_error = env.on_error if env is not None else NO_ERROR_HANDLER
        self._identity = env.identity if env is not None else None

        self.tasks: list[TaskRecord] = []
        # identity tag -> records of that owner in the current store
        self._target_index: dict[Hashable, list[_IndexEntry]] = {}
        self._being_flushed: Batch | None = None

    def __len__(self) -> int:
        return len(self.tasks)

    def __repr__(self) -> str:
        return f"Queue({self.name!r}, pending={len(self.tasks)})"

    def has_tasks(self) -> bool:
        return len(self.tasks) > 0

    # ---- scheduling ----

    def push(
            self,
            target: Any,
            method: Method,
            args: Sequence[Any] | None = None,
            debug_info: Any = None,
    ) -> TaskHandle:
        record = TaskRecord(target, method, args, debug_info)
        self.tasks.append(record)
        return TaskHandle(self, target, method, record)

    def push_unique(
            self,
            target: Any,
            method: Method,
            args: Sequence[Any] | None = None,
            debug_info: Any = None,
    ) -> TaskHandle:
        tag = self._identity_tag(target)
        if tag is not None:
            record = self._push_unique_with_tag(tag, target, method, args, debug_info)
        else:
            record = self._push_unique_without_tag(target, method, args, debug_info)
        return TaskHandle(self, target, method, record)

    def _identity_tag(self, target: Any) -> Hashable | None:
        if target is None or self._identity is None:
            return None
        return self._identity(target)

    def _push_unique_without_tag(self, target, method, args, debug_info) -> TaskRecord:
        for record in self.tasks:
            if record.target is target and same_method(record.method, method):
                record.args = args
                record.debug_info = debug_info
                return record

        record = TaskRecord(target, method, args, debug_info)
        self.tasks.append(record)
        return record

    def _push_unique_with_tag(self, tag, target, method, args, debug_info) -> TaskRecord:
        entries = self._target_index.setdefault(tag, [])
        for entry in entries:
            if same_method(entry.method, method):
                record = self.tasks[entry.position]
                record.args = args
                record.debug_info = debug_info
                return record

        record = TaskRecord(target, method, args, debug_info)
        self.tasks.append(record)
        entries.append(_IndexEntry(method, len(self.tasks) - 1))
        return record

    # ---- flushing ----

    def pop_tasks(self) -> tuple[TaskRecord, ...]:
        """Detach the current store; later pushes land in a fresh one."""
        batch = tuple(self.tasks)
        self.tasks = []
        self._target_index = {}
        return batch

    def track_batch(self, batch: Batch) -> None:
        """Remember the batch in flight so cancel() can reach its unrun records."""
        self._being_flushed = batch

    def release_batch(self, batch: Batch) -> None:
        if self._being_flushed is batch:
            self._being_flushed = None

    def flush(self, drain: bool = True) -> None:
        Flush(
            self,
            drain=drain,
            on_error=self.on_error,
            before=self.options.before,
            after=self.options.after,
        ).flush()

    # ---- cancellation ----

    def cancel(self, handle: TaskHandle) -> bool:
        """
        Remove a pending record, or null it out if it is in the batch being flushed.

        Returns False when the record is no longer live (already run or cancelled).
        """
        record = handle.record

        for position, candidate in enumerate(self.tasks):
            if candidate is record:
                del self.tasks[position]
                self._forget_position(position)
                return True

        batch = self._being_flushed
        if batch is not None:
            # Records before the cursor already ran (or are running).
            for candidate in batch.tasks[batch.position:]:
                if candidate is record:
                    if candidate.method is None:
                        return False
                    # Positions of an in-flight batch must not shift.
                    candidate.method = None
                    logger.debug("Task cancelled mid-flush in queue %s; it will be skipped", self.name)
                    return True

        return False

    def _forget_position(self, position: int) -> None:
        for tag in list(self._target_index):
            entries = [e for e in self._target_index[tag] if e.position != position]
            for e in entries:
                if e.position > position:
                    e.position -= 1
            if entries:
                self._target_index[tag] = entries
            else:
                del self._target_index[tag]
