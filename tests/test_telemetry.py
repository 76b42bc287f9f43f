"""Tests for the in-process telemetry bus."""

from __future__ import annotations

from typing import Any

from marginalia.services import telemetry


def test_emit_delivers_payload_copies_to_listeners() -> None:
    received: list[dict[str, Any]] = []

    def _listener(payload: dict[str, Any]) -> None:
        payload["mutated"] = True
        received.append(payload)

    telemetry.register_event_listener("suggestions.test", _listener)
    telemetry.register_event_listener("suggestions.test", _listener)
    try:
        telemetry.emit("suggestions.test", {"count": 2})
    finally:
        telemetry.unregister_event_listener("suggestions.test", _listener)
    telemetry.emit("suggestions.test", {"count": 3})

    assert received == [{"event": "suggestions.test", "count": 2, "mutated": True}]


def test_failing_listener_does_not_break_emit() -> None:
    def _broken(_payload: dict[str, Any]) -> None:
        raise RuntimeError("boom")

    telemetry.register_event_listener("suggestions.test", _broken)
    try:
        with telemetry.EventRecorder("suggestions.test") as recorder:
            telemetry.emit("suggestions.test")
    finally:
        telemetry.unregister_event_listener("suggestions.test", _broken)

    assert recorder.events() == [{"event": "suggestions.test"}]


def test_event_recorder_filters_and_unsubscribes() -> None:
    recorder = telemetry.EventRecorder("suggestions.a", "suggestions.b")

    telemetry.emit("suggestions.a", {"n": 1})
    telemetry.emit("suggestions.b", {"n": 2})
    recorder.close()
    telemetry.emit("suggestions.a", {"n": 3})

    assert [event["n"] for event in recorder.events()] == [1, 2]
    assert recorder.events("suggestions.b") == [{"event": "suggestions.b", "n": 2}]
