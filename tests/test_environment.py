# tests/test_environment.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from deferloop.core.environment import (
    NO_ERROR_HANDLER,
    Environment,
    FunctionOnError,
    QueueOptions,
    SchedulerOptions,
    TargetActionOnError,
    triage_on_error,
)
from deferloop.core.platform import AsyncioPlatform, ManualPlatform

from .fakes import ErrorSink


def _boom() -> None:
    raise RuntimeError("boom")


def test_triage_on_error_selects_strategy() -> None:
    sink = ErrorSink()

    assert triage_on_error(None) is NO_ERROR_HANDLER
    assert triage_on_error(SchedulerOptions()) is NO_ERROR_HANDLER
    assert isinstance(triage_on_error(SchedulerOptions(on_error=sink)), FunctionOnError)
    assert isinstance(
        triage_on_error(SchedulerOptions(on_error_target=sink, on_error_method="handle")),
        TargetActionOnError,
    )
    # Target without a method name is not enough.
    assert triage_on_error(SchedulerOptions(on_error_target=sink)) is NO_ERROR_HANDLER


def test_no_error_handler_propagates() -> None:
    assert NO_ERROR_HANDLER.invoke(None, lambda x: x * 2, (21,)) == 42
    with pytest.raises(RuntimeError):
        NO_ERROR_HANDLER.invoke(None, _boom, None)


def test_function_on_error_routes_with_debug_info() -> None:
    sink = ErrorSink()
    strategy = FunctionOnError(sink)

    assert strategy.invoke(None, _boom, None, "captured") is None
    assert strategy.has_handler

    error, debug_info = sink.errors[0]
    assert isinstance(error, RuntimeError)
    assert debug_info == "captured"


def test_target_action_on_error_looks_up_handler_at_error_time() -> None:
    first = ErrorSink()
    second = ErrorSink()
    holder = SimpleNamespace(on_error=first)
    strategy = TargetActionOnError(holder, "on_error")

    strategy.invoke(None, _boom, None)
    holder.on_error = second
    strategy.invoke(None, _boom, None)

    assert len(first.errors) == 1
    assert len(second.errors) == 1


def test_target_action_without_handler_reraises() -> None:
    strategy = TargetActionOnError(SimpleNamespace(), "missing")

    with pytest.raises(RuntimeError):
        strategy.invoke(None, _boom, None)


def test_for_options_falls_back_to_settings() -> None:
    settings = SimpleNamespace(default_queue="render", debug=True)

    env = Environment.for_options(None, ["sync", "render"], settings=settings)

    assert env.default_queue == "render"
    assert env.debug is True
    assert env.on_error is NO_ERROR_HANDLER
    assert isinstance(env.platform, AsyncioPlatform)


def test_for_options_ignores_unknown_settings_queue() -> None:
    settings = SimpleNamespace(default_queue="actions", debug=False)

    env = Environment.for_options(None, ["sync", "render"], settings=settings)

    assert env.default_queue == "sync"


def test_for_options_prefers_explicit_options() -> None:
    platform = ManualPlatform()
    hooks = QueueOptions(before=lambda: None)
    options = SchedulerOptions(
        default_queue="sync",
        platform=platform,
        queue_options={"render": hooks},
        debug=False,
    )

    env = Environment.for_options(
        options, ["sync", "render"], settings=SimpleNamespace(default_queue="render", debug=True)
    )

    assert env.default_queue == "sync"
    assert env.platform is platform
    assert env.queue_options["render"] is hooks
    assert env.debug is False
