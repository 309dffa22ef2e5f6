# src/deferloop/scheduler.py

from __future__ import annotations

"""
Run-loop.

A RunLoop owns:
- a stack of QueueSet instances (begin() pushes, end() flushes and pops),
- a timer ledger multiplexed behind one host timeout,
- debounce / throttle record sets.

All of it is instance state, so independent RunLoops do not interfere.
Call shapes are explicit: `method` is a callable or an attribute name on the
keyword-only `target`; positional arguments after it are passed through.
"""

import logging
import traceback
from typing import Any, Callable, Sequence

from .config import get_settings
from .core.environment import Environment, SchedulerOptions
from .errors import CallbackNotFoundError, NoSuchMethodError, NoSuchQueueError, RunLoopError, UnknownEventError
from .queues.queue_set import QueueSet
from .queues.task_models import Method, TaskHandle, resolve_method
from .timers.coalesce import CoalesceRecord, Debouncer, Throttler, coerce_wait
from .timers.ledger import TimerCallback, TimerLedger

logger = logging.getLogger(__name__)

EVENTS = ("begin", "end")


class RunLoop:
    def __init__(
            self,
            queue_names: Sequence[str] | None = None,
            options: SchedulerOptions | None = None,
            *,
            settings=None,
    ) -> None:
        if settings is None:
            settings = get_settings()
        if queue_names is None:
            queue_names = settings.queue_names

        self.queue_names: tuple[str, ...] = tuple(queue_names)
        if not self.queue_names:
            raise ValueError("RunLoop needs at least one queue name")

        self.options = options
        self.env = Environment.for_options(options, self.queue_names, settings=settings)
        if self.env.default_queue not in self.queue_names:
            raise NoSuchQueueError(str(self.env.default_queue))
        self.debug = self.env.debug
        self._platform = self.env.platform

        self.current_instance: QueueSet | None = None
        self.instance_stack: list[QueueSet] = []
        self._event_callbacks: dict[str, list[Callable[[Any, Any], None]]] = {e: [] for e in EVENTS}

        self._timers = TimerLedger(self._platform, self._run_expired_timers)
        self._debouncer = Debouncer(self._platform, self.run)
        self._throttler = Throttler(self._platform, self.run)
        self._autorun: Any = None

    @property
    def platform(self):
        return self._platform

    @property
    def depth(self) -> int:
        """Open run-loop instances (current + suspended)."""
        return len(self.instance_stack) + (1 if self.current_instance is not None else 0)

    # ---- begin / end ----

    def new_instance(self) -> QueueSet:
        return QueueSet(self.queue_names, self.env)

    def begin(self) -> None:
        previous = self.current_instance
        if previous is not None:
            self.instance_stack.append(previous)

        self.current_instance = self.new_instance()
        logger.debug("Run-loop begin (depth=%d)", self.depth)

        self._trigger("begin", self.current_instance, previous)
        if self.env.on_begin is not None:
            self.env.on_begin(self.current_instance, previous)

    def end(self) -> None:
        current = self.current_instance
        if current is None:
            raise RunLoopError("end() called without a matching begin()")

        try:
            current.flush()
        finally:
            self.current_instance = self.instance_stack.pop() if self.instance_stack else None

        logger.debug("Run-loop end (depth=%d)", self.depth)
        self._trigger("end", current, self.current_instance)
        if self.env.on_end is not None:
            self.env.on_end(current, self.current_instance)

    # ---- events ----

    def on(self, event_name: str, callback: Callable[[Any, Any], None]) -> None:
        if not callable(callback):
            raise TypeError("Callback must be callable")
        callbacks = self._event_callbacks.get(event_name)
        if callbacks is None:
            raise UnknownEventError(event_name, "on")
        callbacks.append(callback)

    def off(self, event_name: str, callback: Callable[[Any, Any], None]) -> None:
        callbacks = self._event_callbacks.get(event_name)
        if callbacks is None:
            raise UnknownEventError(event_name, "off")

        kept = [cb for cb in callbacks if cb is not callback]
        if len(kept) == len(callbacks):
            raise CallbackNotFoundError(event_name)
        callbacks[:] = kept

    def _trigger(self, event_name: str, arg1: Any, arg2: Any) -> None:
        # Copy: a callback may unsubscribe itself.
        for callback in list(self._event_callbacks.get(event_name, ())):
            callback(arg1, arg2)

    # ---- immediate execution ----

    def run(self, method: Method, *args: Any, target: Any = None) -> Any:
        """Run under a fresh run-loop instance, then flush and tear it down."""
        fn = self._resolve(target, method)
        on_error = self.env.on_error

        self.begin()
        try:
            return fn(*args)
        except Exception as error:
            if not on_error.has_handler:
                raise
            on_error.handle_error(error, None)
            return None
        finally:
            self.end()

    def join(self, method: Method, *args: Any, target: Any = None) -> Any:
        """Call inline if an instance is open, else run()."""
        if self.current_instance is None:
            return self.run(method, *args, target=target)
        return self._resolve(target, method)(*args)

    # ---- queue scheduling ----

    def defer(self, queue_name: str, method: Method, *args: Any, target: Any = None) -> TaskHandle:
        return self._schedule(queue_name, target, method, args, once=False)

    def defer_once(self, queue_name: str, method: Method, *args: Any, target: Any = None) -> TaskHandle:
        """Like defer(), but at most one pending call per (target, method); last args win."""
        return self._schedule(queue_name, target, method, args, once=True)

    schedule = defer
    schedule_once = defer_once

    def _schedule(
            self,
            queue_name: str,
            target: Any,
            method: Method,
            args: Sequence[Any],
            *,
            once: bool,
    ) -> TaskHandle:
        if queue_name not in self.queue_names:
            raise NoSuchQueueError(queue_name)
        fn = self._resolve(target, method, queue_name)
        debug_info = self._capture_stack(drop=2)

        if self.current_instance is None:
            self._create_autorun()
        return self.current_instance.schedule(queue_name, target, fn, args or None, once, debug_info)

    # ---- timers ----

    def later(self, method: Method, *args: Any, wait_ms: Any = 0, target: Any = None) -> TimerCallback:
        """
        Run method after wait_ms, inside the default queue of a fresh run-loop.

        Returns the ledger callback; pass it to cancel().
        """
        fn = self._resolve(target, method)
        execute_at = self._platform.now() + coerce_wait(wait_ms)
        callback = TimerCallback(target, fn, args or None, self.env.on_error, self._capture_stack(drop=1))
        return self._timers.insert(execute_at, callback)

    def debounce(
            self,
            method: Method,
            *args: Any,
            wait_ms: Any,
            target: Any = None,
            immediate: bool = False,
    ) -> CoalesceRecord:
        fn = self._resolve(target, method)
        return self._debouncer(target, fn, args, wait_ms, immediate)

    def throttle(
            self,
            method: Method,
            *args: Any,
            wait_ms: Any,
            target: Any = None,
            immediate: bool = True,
    ) -> CoalesceRecord:
        fn = self._resolve(target, method)
        return self._throttler(target, fn, args, wait_ms, immediate)

    def cancel(self, handle: Any) -> bool:
        if isinstance(handle, TaskHandle):
            return handle.queue.cancel(handle)
        if isinstance(handle, TimerCallback):
            return self._timers.remove(handle)
        if isinstance(handle, CoalesceRecord):
            return self._throttler.records.cancel(handle) or self._debouncer.records.cancel(handle)
        return False

    def has_timers(self) -> bool:
        return bool(
            len(self._timers)
            or len(self._debouncer.records)
            or len(self._throttler.records)
            or self._autorun is not None
        )

    def cancel_timers(self) -> None:
        """Drop every pending timer, debounce and throttle (e.g. at shutdown)."""
        self._throttler.records.clear()
        self._debouncer.records.clear()
        self._timers.clear()

        if self._autorun is not None:
            self._platform.clear_timeout(self._autorun)
            self._autorun = None

    def _run_expired_timers(self) -> None:
        self._timers.timeout_fired()
        self.run(self._schedule_expired_timers)

    def _schedule_expired_timers(self) -> None:
        default_queue = self.env.default_queue
        for callback in self._timers.pop_expired(self._platform.now()):
            self.schedule(default_queue, callback)
        self._timers.install_timeout()

    # ---- helpers ----

    def _create_autorun(self) -> None:
        # Arm first: if the host cannot take a timeout, no instance is left open.
        self._autorun = self._platform.set_timeout(self._end_autorun, 0)
        try:
            self.begin()
        except BaseException:
            self._platform.clear_timeout(self._autorun)
            self._autorun = None
            raise

    def _end_autorun(self) -> None:
        self._autorun = None
        self.end()

    def _resolve(self, target: Any, method: Method, queue_name: str | None = None) -> Callable[..., Any]:
        fn = resolve_method(target, method)
        if fn is None:
            raise NoSuchMethodError(queue_name, method)
        return fn

    def _capture_stack(self, drop: int) -> list[traceback.FrameSummary] | None:
        """Stack of the scheduling call site; drop is the number of RunLoop frames between it and here."""
        if not self.debug:
            return None
        return traceback.extract_stack()[:-(drop + 1)]
