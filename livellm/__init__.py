"""LiveLLM: render streamed LLM output with live embedded components."""

__version__ = "0.1.0"

from .components import default_registry, register_builtins
from .dom import Element, create_container
from .errors import (
    BlockError,
    ComponentRenderError,
    ConfigError,
    LiveLLMError,
    ParseError,
    TransportError,
    UnknownComponent,
    ValidationError,
)
from .events import EventKind, LifecycleEmitter
from .registry import Registry
from .scheduler import AsyncioTicker, ManualTicker, RenderScheduler
from .schemas.config import StreamConfig
from .stream import StreamSession, StreamState, create_session, render_text

__all__ = [
    "AsyncioTicker",
    "BlockError",
    "ComponentRenderError",
    "ConfigError",
    "Element",
    "EventKind",
    "LifecycleEmitter",
    "LiveLLMError",
    "ManualTicker",
    "ParseError",
    "Registry",
    "RenderScheduler",
    "StreamConfig",
    "StreamSession",
    "StreamState",
    "TransportError",
    "UnknownComponent",
    "ValidationError",
    "create_container",
    "create_session",
    "default_registry",
    "register_builtins",
    "render_text",
]
