"""LiveLLM schema definitions.

Pydantic v2 models for configuration and the wire protocol.
"""

from livellm.schemas.config import LiveLLMConfig, ModelConfig, StreamConfig
from livellm.schemas.protocol import (
    DONE_SENTINEL,
    ActionPayload,
    DoneEvent,
    ErrorCode,
    ErrorEvent,
    MetadataEvent,
    TokenEvent,
    UsageInfo,
    parse_event_data,
    parse_record_line,
)

__all__ = [
    "ActionPayload",
    "DONE_SENTINEL",
    "DoneEvent",
    "ErrorCode",
    "ErrorEvent",
    "LiveLLMConfig",
    "MetadataEvent",
    "ModelConfig",
    "StreamConfig",
    "TokenEvent",
    "UsageInfo",
    "parse_event_data",
    "parse_record_line",
]
