"""Wire protocol between a chat server and the stream adapters.

Newline-delimited records, each a JSON object with a ``type``
discriminant in ``{token, metadata, error, done}``. Over SSE every
record is sent as a ``data: <json>`` line followed by a blank line.
Also defines the action payload sent back when a user interacts with
an action widget.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

# Legacy end-of-stream sentinel still emitted by OpenAI-style servers
DONE_SENTINEL = "[DONE]"


class UsageInfo(BaseModel):
    """Token accounting reported by the upstream model."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class ErrorCode(StrEnum):
    PROVIDER_ERROR = "provider_error"
    RATE_LIMIT = "rate_limit"
    CONTEXT_OVERFLOW = "context_overflow"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class TokenEvent(BaseModel):
    """A single text token from the LLM response."""

    type: Literal["token"] = "token"
    token: str


class MetadataEvent(BaseModel):
    """Model info at stream start and/or usage stats at the end."""

    type: Literal["metadata"] = "metadata"
    model: str | None = None
    provider: str | None = None
    usage: UsageInfo | None = None
    latency_ms: float | None = None


class ErrorEvent(BaseModel):
    """An error reported mid-stream by the server."""

    type: Literal["error"] = "error"
    code: ErrorCode = ErrorCode.UNKNOWN
    message: str
    recoverable: bool = False


class DoneEvent(BaseModel):
    """End of stream."""

    type: Literal["done"] = "done"
    usage: UsageInfo | None = None
    full_text: str | None = Field(default=None, alias="fullText")

    model_config = {"populate_by_name": True}


ProtocolEvent = Annotated[
    Union[TokenEvent, MetadataEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(ProtocolEvent)


def parse_event_data(data: str) -> TokenEvent | MetadataEvent | ErrorEvent | DoneEvent | None:
    """Parse one record body into a typed event.

    Returns None for blank, unparseable or unknown records. A bare
    ``{"token": "..."}`` object (pre-protocol servers) is accepted as a
    token event.
    """
    if not data or not data.strip():
        return None
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(raw, dict):
        return None

    if "type" not in raw:
        token = raw.get("token")
        return TokenEvent(token=token) if isinstance(token, str) else None

    try:
        return _EVENT_ADAPTER.validate_python(raw)
    except PydanticValidationError:
        return None


def parse_record_line(line: str) -> TokenEvent | MetadataEvent | ErrorEvent | DoneEvent | None:
    """Parse a full line, with or without the SSE ``data:`` prefix."""
    stripped = line.strip()
    if stripped.startswith("data:"):
        stripped = stripped[5:].strip()
    return parse_event_data(stripped)


def event_to_json(event: BaseModel) -> str:
    """Compact JSON body for one record (unset optional fields omitted)."""
    return event.model_dump_json(exclude_none=True, by_alias=True)


# ── Action feedback ─────────────────────────────────────────────


class ActionPayload(BaseModel):
    """Sent back when the user interacts with an action widget."""

    component: str = Field(description="Component type, e.g. 'choice' or 'confirm'")
    action: str = Field(description="'select' | 'confirm' | 'cancel' | 'submit' | 'change'")
    value: Any = None
    label: str = ""
    context: str | None = Field(default=None, description="Question or prompt shown by the widget")
    component_id: str = ""
