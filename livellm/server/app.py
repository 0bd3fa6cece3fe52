"""FastAPI application serving the LiveLLM stream protocol.

Endpoints:
    POST /api/chat/stream  model tokens as protocol SSE records
    POST /api/render       complete text rendered to HTML in one pass
    GET  /api/components   registered component types

Requires the 'server' optional dependency group:
    pip install livellm[server]
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, Field

from livellm.components import default_registry
from livellm.events import EventKind, LifecycleEmitter
from livellm.providers.litellm_source import LiteLLMTokenSource
from livellm.registry import Registry
from livellm.schemas.config import ModelConfig, StreamConfig
from livellm.schemas.protocol import ActionPayload, ErrorCode
from livellm.server.sse import SSE_HEADERS, SSEWriter, format_action_as_message
from livellm.stream import render_text

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    role: str = Field(pattern="^(user|assistant|system)$")
    content: str


class ChatRequest(BaseModel):
    """Chat request; ``action`` is set when the message comes from a widget."""

    message: str = ""
    history: list[ChatMessage] = Field(default_factory=list)
    action: ActionPayload | None = None

    def to_messages(self) -> list[dict[str, str]]:
        messages = [m.model_dump() for m in self.history]
        text = self.message
        if self.action is not None:
            action_text = format_action_as_message(self.action)
            text = f"{action_text}\n{text}" if text else action_text
        if text:
            messages.append({"role": "user", "content": text})
        return messages


class RenderRequest(BaseModel):
    content: str


class RenderResponse(BaseModel):
    html: str
    components: list[str] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(default_factory=list)


SourceFactory = Callable[[], LiteLLMTokenSource]


def create_app(
    model_config: ModelConfig | None = None,
    *,
    registry: Registry | None = None,
    stream_config: StreamConfig | None = None,
    source_factory: SourceFactory | None = None,
) -> Any:
    """Create and configure the FastAPI application.

    FastAPI is imported inside this function so the package can be
    imported without the server extras installed.
    """
    try:
        from fastapi import FastAPI, HTTPException
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import StreamingResponse
    except ImportError as exc:
        raise ImportError(
            "The LiveLLM server requires extra dependencies. "
            "Install with: pip install livellm[server]"
        ) from exc

    components = registry or default_registry()
    config = stream_config or StreamConfig()

    def _make_source() -> LiteLLMTokenSource:
        if source_factory is not None:
            return source_factory()
        if model_config is None:
            raise HTTPException(status_code=503, detail="No chat model configured")
        return LiteLLMTokenSource(model_config)

    app = FastAPI(
        title="LiveLLM",
        description="Streamed LLM output with embedded live components",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/chat/stream")
    async def chat_stream(request: ChatRequest):
        """Stream a model reply as protocol SSE records."""
        source = _make_source()
        messages = request.to_messages()
        if not messages:
            raise HTTPException(status_code=422, detail="Empty chat request")

        async def _records() -> AsyncIterator[str]:
            writer = SSEWriter()
            started = time.monotonic()
            yield writer.metadata(model=source.model_id)
            try:
                async for delta in source.stream(messages):
                    yield writer.token(delta)
            except TimeoutError as exc:
                logger.error("Chat stream timed out: %s", exc)
                yield writer.error(ErrorCode.TIMEOUT, str(exc))
                return
            except Exception as exc:
                logger.exception("Chat stream failed")
                yield writer.error(ErrorCode.PROVIDER_ERROR, str(exc))
                return
            yield writer.metadata(
                usage=source.usage,
                latency_ms=round((time.monotonic() - started) * 1000, 1),
            )
            yield writer.done(usage=source.usage)

        return StreamingResponse(_records(), headers=SSE_HEADERS, media_type="text/event-stream")

    @app.post("/api/render", response_model=RenderResponse)
    async def render(request: RenderRequest) -> RenderResponse:
        """Render a complete response body to HTML."""
        events = LifecycleEmitter()
        errors: list[dict[str, Any]] = []
        events.subscribe(
            EventKind.COMPONENT_ERROR,
            lambda e: errors.append(
                {"component": e.component_type, "error": e.error_kind, "message": e.message}
            ),
        )
        session = render_text(
            request.content,
            registry=components,
            config=config.model_copy(update={"show_cursor": False}),
            events=events,
        )
        rendered = [r.component_type for r in session.results if r.ok]
        return RenderResponse(html=session.to_html(), components=rendered, errors=errors)

    @app.get("/api/components")
    async def list_components() -> list[dict[str, Any]]:
        """List registered components with their JSON schemas."""
        result = []
        for name in components.names():
            registration = components.lookup(name)
            if registration is None:
                continue
            result.append({
                "name": name,
                "category": registration.category.value,
                "description": registration.description,
                "schema": registration.props_model.model_json_schema(),
            })
        return result

    return app
