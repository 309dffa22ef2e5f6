# tests/test_flush.py

from __future__ import annotations

import pytest

from deferloop.core.environment import FunctionOnError, QueueOptions
from deferloop.queues.flush import Flush, FlushState, StepResult
from deferloop.queues.queue import Queue

from .fakes import ErrorSink, Owner, Recorder


def test_flush_drains_work_scheduled_during_flush() -> None:
    q = Queue("q")
    rec = Recorder()

    def first() -> None:
        rec.calls.append("first")
        q.push(None, rec("second"))

    q.push(None, first)
    q.flush()

    assert rec.calls == ["first", "second"]
    assert not q.has_tasks()


def test_flush_without_drain_runs_a_single_batch() -> None:
    q = Queue("q")
    rec = Recorder()

    def first() -> None:
        rec.calls.append("first")
        q.push(None, rec("second"))

    q.push(None, first)
    q.flush(drain=False)

    assert rec.calls == ["first"]
    assert q.has_tasks()


def test_next_steps_one_record_at_a_time() -> None:
    q = Queue("q")
    rec = Recorder()
    q.push(None, rec("a"))
    q.push(None, rec("b"))

    flush = Flush(q)

    assert flush.next() is StepResult.NEXT  # pops the batch
    assert rec.calls == []
    assert flush.state is FlushState.FLUSHING

    assert flush.next() is StepResult.NEXT
    assert rec.calls == ["a"]

    assert flush.next() is StepResult.NEXT
    assert rec.calls == ["a", "b"]

    steps = 0
    while flush.next() is not StepResult.DONE:
        steps += 1
        assert steps < 10

    assert flush.state is FlushState.INITIAL
    assert flush.batch is None


def test_before_and_after_hooks_wrap_whole_flush() -> None:
    events: list[str] = []
    options = QueueOptions(before=lambda: events.append("before"), after=lambda: events.append("after"))
    q = Queue("q", options=options)

    def first() -> None:
        events.append("a")
        q.push(None, lambda: events.append("b"))

    q.push(None, first)
    q.flush()

    assert events == ["before", "a", "b", "after"]


def test_method_name_is_resolved_on_target_at_flush() -> None:
    q = Queue("q")
    owner = Owner()

    q.push(owner, "save", (1, 2))
    q.flush()

    assert owner.saved == [(1, 2)]


def test_error_without_handler_propagates_and_drops_rest_of_batch() -> None:
    q = Queue("q")
    rec = Recorder()

    def boom() -> None:
        raise RuntimeError("boom")

    q.push(None, boom)
    q.push(None, rec("after"))

    with pytest.raises(RuntimeError, match="boom"):
        q.flush()

    assert rec.calls == []
    assert not q.has_tasks()

    # The queue is usable again.
    q.push(None, rec("next"))
    q.flush()
    assert rec.calls == ["next"]


def test_error_with_handler_is_routed_and_flush_continues() -> None:
    q = Queue("q")
    rec = Recorder()
    sink = ErrorSink()

    def boom() -> None:
        raise ValueError("bad")

    q.push(None, boom, None, "stack")
    q.push(None, rec("after"))

    Flush(q, on_error=FunctionOnError(sink)).flush()

    assert rec.calls == ["after"]
    assert len(sink.errors) == 1
    error, debug_info = sink.errors[0]
    assert isinstance(error, ValueError)
    assert debug_info == "stack"
