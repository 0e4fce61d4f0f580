"""Tests for the bounded latency trace buffer."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

from bible_study_engine.services.tracing import TraceRecorder


class _Clock:
    def __init__(self) -> None:
        self.now = 10.0

    def __call__(self) -> float:
        return self.now


def test_durations_are_measured_from_start() -> None:
    clock = _Clock()
    tracer = TraceRecorder(clock=clock)
    tracer.trace("llm", "start")
    clock.now = 10.25
    first = tracer.trace("llm", "first_token")
    clock.now = 11.0
    done = tracer.trace("llm", "complete")

    assert first.duration == 250.0
    assert done.duration == 1000.0
    assert not tracer.active_entities()
    assert [event.phase for event in tracer.for_entity("llm")] == ["start", "first_token", "complete"]


def test_error_phase_sets_error_level() -> None:
    tracer = TraceRecorder()
    tracer.trace("get_scripture_passage", "start")
    event = tracer.trace("get_scripture_passage", "error", message="upstream failed")
    assert event.level == "error"
    assert event.message == "upstream failed"
    assert event.duration is not None


def test_complete_without_start_has_no_duration() -> None:
    tracer = TraceRecorder()
    assert tracer.trace("tts", "complete").duration is None


def test_buffer_is_bounded() -> None:
    tracer = TraceRecorder(capacity=3)
    for index in range(5):
        tracer.trace(f"entity-{index}", "tool_call")
    assert [event.entity for event in tracer.events] == ["entity-2", "entity-3", "entity-4"]


def test_wire_shape_uses_camel_case() -> None:
    tracer = TraceRecorder()
    event = tracer.trace("search", "start", metadata={"query": "love"})
    wire = event.to_wire()
    assert wire["entity"] == "search"
    assert wire["metadata"] == {"query": "love"}
    assert "duration" not in wire
    tracer.clear()
    assert not tracer.events
    assert not tracer.active_entities()
