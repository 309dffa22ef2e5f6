# src/deferloop/queues/task_models.py

from __future__ import annotations

import types
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Sequence

if TYPE_CHECKING:
    from .queue import Queue

Method = Callable[..., Any] | str


@dataclass(slots=True, eq=False)
class TaskRecord:
    """
    One scheduled call in a queue's store.

    method is None once the record was cancelled inside an in-flight batch;
    the flush skips such records.
    """

    target: Any
    method: Method | None
    args: Sequence[Any] | None
    debug_info: Any = None


@dataclass(slots=True, frozen=True, eq=False)
class TaskHandle:
    """Returned by Queue.push/push_unique; pass it to cancel()."""

    queue: Queue
    target: Any
    method: Method
    record: TaskRecord


def same_method(a: Any, b: Any) -> bool:
    if a is b:
        return True
    # Bound methods are created per attribute access; == compares __self__ and __func__.
    return isinstance(a, types.MethodType) and isinstance(b, types.MethodType) and a == b


def resolve_method(target: Any, method: Method | None) -> Callable[..., Any] | None:
    """Return a callable for method (looked up on target if it is a name), or None."""
    if method is None:
        return None
    if isinstance(method, str):
        if target is None:
            return None
        resolved = getattr(target, method, None)
        return resolved if callable(resolved) else None
    return method if callable(method) else None
