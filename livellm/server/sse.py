"""SSE record writer and action-to-message formatting.

``SSEWriter`` produces protocol-conforming ``data: <json>`` records. It
does not own a response object: the caller yields the returned strings
from whatever streaming response its framework provides.
"""

from __future__ import annotations

import json
from typing import Any

from livellm.schemas.protocol import (
    ActionPayload,
    DoneEvent,
    ErrorCode,
    ErrorEvent,
    MetadataEvent,
    TokenEvent,
    UsageInfo,
    event_to_json,
)

SSE_HEADERS: dict[str, str] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class SSEWriter:
    """Formats protocol events as SSE records and tracks the emitted text."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self.closed = False

    @property
    def full_text(self) -> str:
        return "".join(self._parts)

    @staticmethod
    def _record(event: Any) -> str:
        return f"data: {event_to_json(event)}\n\n"

    def token(self, text: str) -> str:
        self._parts.append(text)
        return self._record(TokenEvent(token=text))

    def metadata(
        self,
        *,
        model: str | None = None,
        provider: str | None = None,
        usage: UsageInfo | None = None,
        latency_ms: float | None = None,
    ) -> str:
        return self._record(
            MetadataEvent(model=model, provider=provider, usage=usage, latency_ms=latency_ms)
        )

    def error(
        self,
        code: ErrorCode | str,
        message: str,
        recoverable: bool = False,
    ) -> str:
        return self._record(
            ErrorEvent(code=ErrorCode(code), message=message, recoverable=recoverable)
        )

    def done(self, *, usage: UsageInfo | None = None, include_text: bool = False) -> str:
        self.closed = True
        return self._record(
            DoneEvent(usage=usage, full_text=self.full_text if include_text else None)
        )


def format_action_as_message(action: ActionPayload) -> str:
    """Turn an action payload into a line for the conversation history.

    >>> format_action_as_message(ActionPayload(component="choice", action="select",
    ...                                        value="react", label="React"))
    'User selected: React'
    """
    parts: list[str] = []
    if action.context:
        parts.append(f'[Re: "{action.context}"]')

    if action.action == "select":
        parts.append(f"User selected: {action.label}")
    elif action.action == "confirm":
        msg = "User confirmed"
        if action.label and action.label != "Yes":
            msg += f": {action.label}"
        parts.append(msg)
    elif action.action == "cancel":
        msg = "User cancelled"
        if action.label and action.label != "No":
            msg += f": {action.label}"
        parts.append(msg)
    elif action.action == "submit":
        parts.append(f"User submitted: {json.dumps(action.value, default=str)}")
    elif action.action == "change":
        parts.append(f"User set {action.label or action.component} to: {action.value}")
    else:
        detail = action.label or json.dumps(action.value, default=str)
        parts.append(f"User action ({action.action}): {detail}")

    return " ".join(parts)
