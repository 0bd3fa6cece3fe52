"""Lifecycle notifications emitted by stream sessions.

Each event kind is its own Pydantic model, discriminated by ``kind``.
Hosts subscribe per kind (or to everything) to observe rendering and
log recovered errors. Notifications are never required for rendering
to be correct: listener failures are logged and swallowed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    """Closed set of lifecycle event kinds."""

    STREAM_START = "stream-start"
    COMPONENT_START = "component-start"
    COMPONENT_RENDERED = "component-rendered"
    COMPONENT_ERROR = "component-error"
    STREAM_DONE = "stream-done"
    STREAM_ABORTED = "stream-aborted"
    TRANSPORT_ERROR = "transport-error"


class _Event(BaseModel):
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp when the event occurred",
    )


class StreamStarted(_Event):
    """First token of a session arrived."""

    kind: Literal[EventKind.STREAM_START] = EventKind.STREAM_START
    source: str = Field(default="manual", description="Which adapter fed the session")


class ComponentStarted(_Event):
    """A component fence opened and its skeleton was inserted."""

    kind: Literal[EventKind.COMPONENT_START] = EventKind.COMPONENT_START
    component_type: str


class ComponentRendered(_Event):
    """A component block was replaced by a live widget."""

    kind: Literal[EventKind.COMPONENT_RENDERED] = EventKind.COMPONENT_RENDERED
    component_type: str
    props: dict[str, Any] = Field(default_factory=dict)


class ComponentFailed(_Event):
    """A component block fell back to its degraded rendering."""

    kind: Literal[EventKind.COMPONENT_ERROR] = EventKind.COMPONENT_ERROR
    component_type: str
    error_kind: str = Field(description="parse_error, unknown_component, validation_error, ...")
    message: str
    raw: str = Field(default="", description="Raw body text of the failed block")


class StreamDone(_Event):
    """end() completed; full_text is the canonical accumulated input."""

    kind: Literal[EventKind.STREAM_DONE] = EventKind.STREAM_DONE
    full_text: str


class StreamAborted(_Event):
    """abort() moved the session to its terminal ABORTED state."""

    kind: Literal[EventKind.STREAM_ABORTED] = EventKind.STREAM_ABORTED
    reason: str = ""


class TransportFailed(_Event):
    """An adapter could not read from its external source."""

    kind: Literal[EventKind.TRANSPORT_ERROR] = EventKind.TRANSPORT_ERROR
    source: str
    message: str


LifecycleEvent = Annotated[
    Union[
        StreamStarted,
        ComponentStarted,
        ComponentRendered,
        ComponentFailed,
        StreamDone,
        StreamAborted,
        TransportFailed,
    ],
    Field(discriminator="kind"),
]

# Type alias for event listener callbacks
EventListener = Callable[[Any], Any]


class LifecycleEmitter:
    """Dispatches lifecycle events to typed per-kind subscribers.

    Dispatch is synchronous because the stream session itself never
    suspends. Listener exceptions are logged but never propagate.
    """

    def __init__(self, keep_history: bool = True) -> None:
        self._listeners: dict[EventKind, list[EventListener]] = {}
        self._wildcard: list[EventListener] = []
        self._keep_history = keep_history
        self._history: list[_Event] = []

    @property
    def history(self) -> list[_Event]:
        """All events emitted so far."""
        return list(self._history)

    def subscribe(self, kind: EventKind, listener: EventListener) -> None:
        """Register a listener for a single event kind."""
        self._listeners.setdefault(EventKind(kind), []).append(listener)

    def subscribe_all(self, listener: EventListener) -> None:
        """Register a listener that receives every event."""
        self._wildcard.append(listener)

    def unsubscribe(self, listener: EventListener, kind: EventKind | None = None) -> None:
        """Remove a previously registered listener."""
        if kind is None:
            self._wildcard = [ln for ln in self._wildcard if ln != listener]
            kinds = list(self._listeners)
        else:
            kinds = [EventKind(kind)]
        for k in kinds:
            remaining = [ln for ln in self._listeners.get(k, []) if ln != listener]
            if remaining:
                self._listeners[k] = remaining
            else:
                self._listeners.pop(k, None)

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners.get(EventKind(kind), []))

    def emit(self, event: _Event) -> None:
        """Deliver ``event`` to its kind's subscribers, then to wildcards."""
        kind = event.kind  # type: ignore[attr-defined]
        if self._keep_history:
            self._history.append(event)
        logger.debug("lifecycle %s", kind)

        for listener in [*self._listeners.get(kind, []), *self._wildcard]:
            try:
                listener(event)
            except Exception:
                logger.exception("Lifecycle listener error for %s", kind)
