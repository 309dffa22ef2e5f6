# src/deferloop/core/environment.py

"""
Scheduler environment.

Resolves programmatic SchedulerOptions (plus Settings fallbacks) into the
collaborators the run-loop needs: an error strategy, a host timer platform,
the default queue, begin/end hooks and the identity map.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .platform import AsyncioPlatform
from .ports import ErrorStrategy, IdentityMap, TimerPlatform

logger = logging.getLogger(__name__)

LoopHook = Callable[[Any, Any], None]


@dataclass(slots=True)
class QueueOptions:
    """Per-queue flush hooks; each wraps one flush() call of the queue."""

    before: Callable[[], None] | None = None
    after: Callable[[], None] | None = None


@dataclass(slots=True)
class SchedulerOptions:
    default_queue: str | None = None

    # Error routing: on_error wins over the target/method pair.
    on_error: Callable[[BaseException, Any], None] | None = None
    on_error_target: Any = None
    on_error_method: str | None = None

    on_begin: LoopHook | None = None
    on_end: LoopHook | None = None

    platform: TimerPlatform | None = None
    identity: IdentityMap | None = None
    queue_options: dict[str, QueueOptions] = field(default_factory=dict)

    # None -> take it from Settings.
    debug: bool | None = None


def _call(target: Any, method: Callable[..., Any], args: Sequence[Any] | None) -> Any:
    if args:
        return method(*args)
    return method()


class NoErrorHandler:
    """No handler configured: task errors propagate to the caller."""

    has_handler = False

    def invoke(self, target, method, args, debug_info=None):
        return _call(target, method, args)

    def handle_error(self, error, debug_info=None) -> None:
        return None


class _RoutingErrorHandler:
    has_handler = True

    def invoker(self) -> Callable[[BaseException, Any], None] | None:
        raise NotImplementedError

    def invoke(self, target, method, args, debug_info=None):
        try:
            return _call(target, method, args)
        except Exception as error:
            logger.debug("Scheduled task raised; routing to error handler", exc_info=True)
            self.handle_error(error, debug_info)
            return None

    def handle_error(self, error, debug_info=None) -> None:
        handler = self.invoker()
        if handler is None:
            raise error
        handler(error, debug_info)


class FunctionOnError(_RoutingErrorHandler):
    def __init__(self, func: Callable[[BaseException, Any], None]) -> None:
        self.func = func

    def invoker(self):
        return self.func


class TargetActionOnError(_RoutingErrorHandler):
    """Looks the handler up on every error, so the target may rebind it."""

    def __init__(self, target: Any, method_name: str) -> None:
        self.target = target
        self.method_name = method_name

    def invoker(self):
        if self.target is None:
            return None
        return getattr(self.target, self.method_name, None)


NO_ERROR_HANDLER = NoErrorHandler()


def triage_on_error(options: SchedulerOptions | None) -> ErrorStrategy:
    if options is None:
        return NO_ERROR_HANDLER

    if options.on_error is not None:
        return FunctionOnError(options.on_error)
    if options.on_error_target is not None and options.on_error_method:
        return TargetActionOnError(options.on_error_target, options.on_error_method)
    return NO_ERROR_HANDLER


@dataclass(slots=True)
class Environment:
    on_error: ErrorStrategy
    default_queue: str | None
    platform: TimerPlatform
    on_begin: LoopHook | None = None
    on_end: LoopHook | None = None
    identity: IdentityMap | None = None
    queue_options: dict[str, QueueOptions] = field(default_factory=dict)
    debug: bool = False

    @classmethod
    def for_options(
            cls,
            options: SchedulerOptions | None,
            queue_names: Sequence[str],
            *,
            settings=None,
    ) -> "Environment":
        fallback_queue = getattr(settings, "default_queue", None) or None
        if fallback_queue not in queue_names:
            fallback_queue = queue_names[0] if queue_names else None

        if options is None:
            return cls(
                on_error=NO_ERROR_HANDLER,
                default_queue=fallback_queue,
                platform=AsyncioPlatform(),
                debug=bool(getattr(settings, "debug", False)),
            )

        debug = options.debug
        if debug is None:
            debug = bool(getattr(settings, "debug", False))

        return cls(
            on_error=triage_on_error(options),
            default_queue=options.default_queue or fallback_queue,
            platform=options.platform or AsyncioPlatform(),
            on_begin=options.on_begin,
            on_end=options.on_end,
            identity=options.identity,
            queue_options=dict(options.queue_options),
            debug=debug,
        )
