# src/deferloop/queues/queue_set.py

from __future__ import annotations

from typing import Any, Sequence

from ..core.environment import Environment
from ..errors import NoSuchMethodError, NoSuchQueueError
from .queue import Queue
from .task_models import Method, TaskHandle


class QueueSet:
    """
    One run-loop instance: a Queue per name, flushed in priority order.

    Any progress restarts the scan from the first queue, so earlier queues
    always settle before a later queue gets another batch.
    """

    def __init__(self, queue_names: Sequence[str], env: Environment) -> None:
        self.queue_names = queue_names
        self.env = env
        self.queues: dict[str, Queue] = {
            name: Queue(name, env.queue_options.get(name), env) for name in queue_names
        }

    def __repr__(self) -> str:
        pending = {name: len(q) for name, q in self.queues.items() if len(q)}
        return f"QueueSet(pending={pending})"

    def schedule(
            self,
            name: str,
            target: Any,
            method: Method | None,
            args: Sequence[Any] | None = None,
            once: bool = False,
            debug_info: Any = None,
    ) -> TaskHandle:
        queue = self.queues.get(name)
        if queue is None:
            raise NoSuchQueueError(name)

        if method is None or method == "":
            raise NoSuchMethodError(name, method)

        if once:
            return queue.push_unique(target, method, args, debug_info)
        return queue.push(target, method, args, debug_info)

    def has_tasks(self) -> bool:
        return any(q.has_tasks() for q in self.queues.values())

    def flush(self) -> None:
        queue_names = self.queue_names
        index = 0
        count = len(queue_names)

        while index < count:
            queue = self.queues[queue_names[index]]

            if not queue.has_tasks():
                index += 1
            else:
                queue.flush(drain=False)
                index = 0
