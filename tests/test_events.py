"""Tests for livellm.events: lifecycle models and the emitter."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter

from livellm.events import (
    ComponentFailed,
    ComponentRendered,
    EventKind,
    LifecycleEmitter,
    LifecycleEvent,
    StreamDone,
    StreamStarted,
    TransportFailed,
)


class TestEventModels:
    def test_kind_defaults(self):
        assert StreamStarted().kind == EventKind.STREAM_START
        assert StreamDone(full_text="x").kind == EventKind.STREAM_DONE
        assert TransportFailed(source="sse", message="reset").kind == "transport-error"

    def test_timestamp_populated(self):
        assert StreamStarted().timestamp > 0

    def test_discriminated_union(self):
        adapter = TypeAdapter(LifecycleEvent)
        event = adapter.validate_python({
            "kind": "component-error",
            "component_type": "badge",
            "error_kind": "parse_error",
            "message": "Invalid JSON",
        })
        assert isinstance(event, ComponentFailed)
        assert event.raw == ""

    def test_round_trip_json(self):
        adapter = TypeAdapter(LifecycleEvent)
        original = ComponentRendered(component_type="alert", props={"text": "hi"})
        restored = adapter.validate_json(original.model_dump_json())
        assert restored == original


class TestLifecycleEmitter:
    def test_subscribe_by_kind(self):
        emitter = LifecycleEmitter()
        seen = []
        emitter.subscribe(EventKind.STREAM_DONE, seen.append)
        emitter.emit(StreamStarted())
        emitter.emit(StreamDone(full_text="abc"))
        assert [e.kind for e in seen] == [EventKind.STREAM_DONE]

    def test_subscribe_with_string_kind(self):
        emitter = LifecycleEmitter()
        seen = []
        emitter.subscribe("stream-start", seen.append)
        emitter.emit(StreamStarted(source="sse"))
        assert seen[0].source == "sse"

    def test_wildcard_receives_after_typed(self):
        emitter = LifecycleEmitter()
        order = []
        emitter.subscribe_all(lambda e: order.append("all"))
        emitter.subscribe(EventKind.STREAM_START, lambda e: order.append("typed"))
        emitter.emit(StreamStarted())
        assert order == ["typed", "all"]

    def test_unsubscribe(self):
        emitter = LifecycleEmitter()
        seen = []
        emitter.subscribe(EventKind.STREAM_START, seen.append)
        emitter.subscribe_all(seen.append)
        assert emitter.listener_count(EventKind.STREAM_START) == 1

        emitter.unsubscribe(seen.append)
        emitter.emit(StreamStarted())
        assert seen == []
        assert emitter.listener_count(EventKind.STREAM_START) == 0

    def test_unsubscribe_single_kind(self):
        emitter = LifecycleEmitter()
        seen = []
        emitter.subscribe(EventKind.STREAM_START, seen.append)
        emitter.subscribe(EventKind.STREAM_DONE, seen.append)
        emitter.unsubscribe(seen.append, EventKind.STREAM_START)
        emitter.emit(StreamStarted())
        emitter.emit(StreamDone(full_text=""))
        assert len(seen) == 1

    def test_listener_error_is_swallowed(self, caplog):
        emitter = LifecycleEmitter()
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        emitter.subscribe(EventKind.STREAM_START, broken)
        emitter.subscribe(EventKind.STREAM_START, seen.append)
        with caplog.at_level("ERROR"):
            emitter.emit(StreamStarted())
        assert len(seen) == 1
        assert "Lifecycle listener error" in caplog.text

    def test_history(self):
        emitter = LifecycleEmitter()
        emitter.emit(StreamStarted())
        emitter.emit(StreamDone(full_text=""))
        history = emitter.history
        assert [e.kind for e in history] == ["stream-start", "stream-done"]
        history.clear()
        assert len(emitter.history) == 2

    def test_history_disabled(self):
        emitter = LifecycleEmitter(keep_history=False)
        emitter.emit(StreamStarted())
        assert emitter.history == []

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            LifecycleEmitter().subscribe("not-a-kind", print)
