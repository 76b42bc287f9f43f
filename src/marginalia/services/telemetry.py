"""In-process telemetry bus for suggestion lifecycle events."""

from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Any, Callable, Mapping

LOGGER = logging.getLogger(__name__)

EventListener = Callable[[dict[str, Any]], None]

_EVENT_LISTENERS: dict[str, list[EventListener]] = {}


def register_event_listener(event_name: str, callback: EventListener) -> None:
    """Register a callback invoked whenever :func:`emit` fires *event_name*."""

    if not event_name or callback is None:
        return
    listeners = _EVENT_LISTENERS.setdefault(event_name, [])
    if callback not in listeners:
        listeners.append(callback)


def unregister_event_listener(event_name: str, callback: EventListener) -> None:
    listeners = _EVENT_LISTENERS.get(event_name)
    if not listeners:
        return
    try:
        listeners.remove(callback)
    except ValueError:
        return
    if not listeners:
        _EVENT_LISTENERS.pop(event_name, None)


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Broadcast a structured telemetry event to in-process listeners."""

    if not event_name:
        return
    event_payload = {"event": event_name}
    if payload:
        event_payload.update(payload)
    listeners = list(_EVENT_LISTENERS.get(event_name, ()))
    for callback in listeners:
        try:
            callback(dict(event_payload))
        except Exception:  # pragma: no cover - listeners must not break emitters
            LOGGER.debug("Telemetry listener %s failed", callback, exc_info=True)
    LOGGER.debug("Telemetry emit %s: %s", event_name, event_payload)


class EventRecorder:
    """Ring buffer that subscribes to a set of events; handy for tests and the CLI."""

    def __init__(self, *event_names: str, capacity: int = 200) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max(10, capacity))
        self._lock = Lock()
        self._names = tuple(event_names)
        for name in self._names:
            register_event_listener(name, self._record)

    def _record(self, payload: dict[str, Any]) -> None:
        with self._lock:
            self._events.append(payload)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            snapshot = list(self._events)
        if name is None:
            return snapshot
        return [entry for entry in snapshot if entry.get("event") == name]

    def close(self) -> None:
        for name in self._names:
            unregister_event_listener(name, self._record)

    def __enter__(self) -> "EventRecorder":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


__all__ = [
    "EventListener",
    "EventRecorder",
    "emit",
    "register_event_listener",
    "unregister_event_listener",
]
