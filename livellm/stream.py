"""Incremental stream-to-UI state machine.

A ``StreamSession`` consumes text one character at a time so that a
component can be rendered the moment its closing fence arrives:

1. Prose is accumulated and rendered as markdown on scheduler ticks
2. A ```livellm:<type> fence inserts a skeleton placeholder
3. The JSON body is buffered until the closing ```
4. The finalizer swaps the skeleton for a live widget or a fallback

The session is fully synchronous and never suspends; transport adapters
own the waiting. It is single-use: after DONE or ABORTED a new target
needs a new session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from livellm.dom import Element, NodeKind, create_container
from livellm.errors import ParseError
from livellm.events import (
    ComponentFailed,
    ComponentRendered,
    ComponentStarted,
    LifecycleEmitter,
    StreamAborted,
    StreamDone,
    StreamStarted,
)
from livellm.finalizer import ComponentFinalizer, FinalizeResult
from livellm.prose import MarkdownRenderer, PythonMarkdownRenderer
from livellm.registry import ActionCallback, Registry
from livellm.scheduler import AsyncioTicker, ManualTicker, RenderScheduler, TickSource
from livellm.schemas.config import StreamConfig

logger = logging.getLogger(__name__)

_FENCE_CHAR = "`"
_CLOSE_MARKER = ["\n", "`", "`", "`"]
_BARE_CLOSE = ["`", "`", "`"]

PaintHook = Callable[[Element], Any]


class StreamState(StrEnum):
    """Exactly one is active per session. DONE and ABORTED are terminal."""

    TEXT = "text"
    FENCE_MAYBE = "fence_maybe"
    COMPONENT = "component"
    DONE = "done"
    ABORTED = "aborted"


_TERMINAL = frozenset({StreamState.DONE, StreamState.ABORTED})


class StreamSession:
    """Renders one token stream into one target container."""

    def __init__(
        self,
        registry: Registry,
        container: Element | None = None,
        *,
        markdown: MarkdownRenderer | None = None,
        events: LifecycleEmitter | None = None,
        ticks: TickSource | None = None,
        config: StreamConfig | None = None,
        on_action: ActionCallback | None = None,
        on_paint: PaintHook | None = None,
    ) -> None:
        self._config = config or StreamConfig()
        self._registry = registry
        self._markdown = markdown or PythonMarkdownRenderer()
        self._info_re = self._config.info_pattern()
        self._finalizer = ComponentFinalizer(
            registry,
            max_json_size=self._config.max_json_size,
            component_prefix=self._config.component_prefix,
            on_action=on_action,
        )
        self._scheduler = RenderScheduler(
            ticks or AsyncioTicker(self._config.frame_interval), self._paint
        )
        self._on_paint = on_paint
        self.container = container if container is not None else create_container()
        self.events = events or LifecycleEmitter()
        self.source = "manual"

        self._state = StreamState.TEXT
        self._full_buffer: list[str] = []
        self._text_accum: list[str] = []
        self._fence_accum = ""
        self._component_type: str | None = None
        self._component_json: list[str] = []
        self._text_block: Element | None = None
        self._pending_element: Element | None = None
        self._cursor_element: Element | None = (
            self._create_cursor() if self._config.show_cursor else None
        )
        self._aborted = False
        self._started = False
        self._processing = False
        self.results: list[FinalizeResult] = []

    # ═══ Public API ═══════════════════════════════════════════

    def push(self, token: str) -> None:
        """Ingest a chunk of arbitrary length."""
        if self._state in _TERMINAL or not token:
            return
        self._enter()
        try:
            if not self._started:
                self._started = True
                self.events.emit(StreamStarted(source=self.source))

            self._full_buffer.append(token)
            for ch in token:
                if self._aborted:
                    break
                self._process_char(ch)
        finally:
            self._processing = False

    def end(self) -> None:
        """Finish the stream: fallback any open block, flush text, go DONE."""
        if self._state in _TERMINAL:
            return
        self._enter()
        try:
            if self._state == StreamState.FENCE_MAYBE:
                # The fence never completed; it was ordinary text
                self._text_accum.append(self._fence_accum)
                self._fence_accum = ""
                self._state = StreamState.TEXT
            elif self._state == StreamState.COMPONENT:
                component_type = self._component_type or ""
                body = "".join(self._component_json)
                self._reset_component()
                self._state = StreamState.TEXT
                self._apply_result(
                    self._finalizer.fail(
                        component_type,
                        body,
                        ParseError(component_type, "Unterminated component block"),
                    )
                )
                if self._aborted:
                    # A component-error listener aborted the session
                    return

            # Backticks held while waiting for a possible third one
            if self._fence_accum:
                self._text_accum.append(self._fence_accum)
                self._fence_accum = ""

            self._flush_text()
            self._scheduler.cancel()
            self._remove_cursor()
            self._state = StreamState.DONE
            self._notify_surface()
        finally:
            self._processing = False

        logger.debug("Stream done (%d chars)", sum(len(t) for t in self._full_buffer))
        self.events.emit(StreamDone(full_text=self.get_full_text()))

    def abort(self, reason: str = "") -> None:
        """Immediate terminal transition; in-flight state is discarded."""
        if self._state in _TERMINAL:
            return
        self._aborted = True
        self._scheduler.cancel()
        if self._pending_element is not None:
            self._pending_element.remove()
            self._pending_element = None
        self._text_accum = []
        self._fence_accum = ""
        self._reset_component()
        self._text_block = None
        self._remove_cursor()
        self._state = StreamState.ABORTED
        self._notify_surface()
        logger.debug("Stream aborted%s", f": {reason}" if reason else "")
        self.events.emit(StreamAborted(reason=reason))

    def get_state(self) -> StreamState:
        return self._state

    def get_full_text(self) -> str:
        """The raw accumulated input, independent of rendered output."""
        return "".join(self._full_buffer)

    # ── Convenience accessors ─────────────────────────────────

    @property
    def config(self) -> StreamConfig:
        return self._config

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def scheduler(self) -> RenderScheduler:
        return self._scheduler

    @property
    def is_terminal(self) -> bool:
        return self._state in _TERMINAL

    @property
    def component_type(self) -> str | None:
        return self._component_type

    @property
    def component_json(self) -> str:
        return "".join(self._component_json)

    @property
    def pending_element(self) -> Element | None:
        return self._pending_element

    @property
    def cursor_element(self) -> Element | None:
        return self._cursor_element

    def widgets(self) -> list[Any]:
        """Widget instances created so far, in output order."""
        return [
            node.data["widget"]
            for node in self.container.find_all(NodeKind.COMPONENT)
            if "widget" in node.data
        ]

    def to_html(self) -> str:
        """Current contents of the container, without the wrapper element."""
        return self.container.inner_to_html()

    # ═══ Character-level state machine ═══════════════════════

    def _enter(self) -> None:
        if self._processing:
            raise RuntimeError("StreamSession is not reentrant")
        self._processing = True

    def _process_char(self, ch: str) -> None:
        if self._state == StreamState.TEXT:
            self._process_text_char(ch)
        elif self._state == StreamState.FENCE_MAYBE:
            self._process_fence_char(ch)
        elif self._state == StreamState.COMPONENT:
            self._process_component_char(ch)

    def _process_text_char(self, ch: str) -> None:
        """Accumulate prose, holding up to two backticks of a possible fence."""
        if ch == _FENCE_CHAR:
            self._fence_accum += ch
            if len(self._fence_accum) == 3:
                self._state = StreamState.FENCE_MAYBE
            return

        if self._fence_accum:
            self._text_accum.append(self._fence_accum)
            self._fence_accum = ""
        self._text_accum.append(ch)
        self._scheduler.mark_dirty()

    def _process_fence_char(self, ch: str) -> None:
        """Classify the info string after ``` once its line ends."""
        self._fence_accum += ch
        info = self._fence_accum[3:]

        if ch == "\n":
            match = self._info_re.match(info[:-1].strip())
            if match:
                self._open_component(match.group(1))
            else:
                self._fence_to_text()
        elif len(info) > self._config.max_info_length:
            self._fence_to_text()

    def _process_component_char(self, ch: str) -> None:
        self._component_json.append(ch)
        buf = self._component_json
        if buf[-4:] == _CLOSE_MARKER:
            body = "".join(buf[:-4])
        elif buf == _BARE_CLOSE:
            body = ""
        else:
            return

        component_type = self._component_type or ""
        self._reset_component()
        self._state = StreamState.TEXT
        self._apply_result(self._finalizer.finalize(component_type, body))

    def _fence_to_text(self) -> None:
        # An ordinary fenced code block, not a component
        self._text_accum.append(self._fence_accum)
        self._fence_accum = ""
        self._state = StreamState.TEXT
        self._scheduler.mark_dirty()

    def _open_component(self, component_type: str) -> None:
        self._flush_text()
        self._component_type = component_type
        self._component_json = []
        self._fence_accum = ""
        self._state = StreamState.COMPONENT
        self.events.emit(ComponentStarted(component_type=component_type))
        if self._aborted:
            return
        self._insert_skeleton(component_type)

    def _reset_component(self) -> None:
        self._component_type = None
        self._component_json = []

    # ═══ Rendering ═══════════════════════════════════════════

    def _paint(self) -> None:
        """One surface write per tick: text run, cursor, then notify."""
        self._render_current_text()
        self._move_cursor_to_end()
        self._notify_surface()

    def _notify_surface(self) -> None:
        if self._on_paint is None:
            return
        try:
            self._on_paint(self.container)
        except Exception:
            logger.exception("Paint hook failed")

    def _render_current_text(self) -> None:
        text = "".join(self._text_accum)
        if not text.strip():
            return

        if self._text_block is None:
            self._text_block = Element(
                tag="div",
                classes=["livellm-stream-block", "livellm-prose"],
                kind=NodeKind.PROSE,
            )
            self._append(self._text_block)

        self._text_block.set_html(self._markdown.render(text))
        self._text_block.data["source"] = text

    def _flush_text(self) -> None:
        """Finalize the current text block; later prose starts a new one."""
        self._render_current_text()
        self._text_accum = []
        self._text_block = None

    def _apply_result(self, result: FinalizeResult) -> None:
        self.results.append(result)
        if self._pending_element is not None and self._pending_element.is_attached:
            self._pending_element.replace_with(result.node)
        else:
            self._append(result.node)
        self._pending_element = None
        self._text_block = None
        self._scheduler.mark_dirty()

        if result.error is None:
            self.events.emit(
                ComponentRendered(component_type=result.component_type, props=result.props or {})
            )
        else:
            self.events.emit(
                ComponentFailed(
                    component_type=result.component_type,
                    error_kind=result.error.kind,
                    message=result.error.message,
                    raw=result.node.data.get("raw", ""),
                )
            )

    def _insert_skeleton(self, component_type: str) -> None:
        skeleton = self._registry.get_skeleton(component_type)
        self._pending_element = Element(
            tag="div",
            classes=["livellm-skeleton-wrapper"],
            attrs={"data-pending": component_type, "style": f"min-height:{skeleton.height}"},
            inner_html=skeleton.markup,
            kind=NodeKind.SKELETON,
            data={"component_type": component_type},
        )
        self._append(self._pending_element)
        self._scheduler.mark_dirty()

    def _append(self, node: Element) -> None:
        """Append before the cursor so it stays the trailing edge."""
        cursor = self._cursor_element
        reference = cursor if cursor is not None and cursor.is_attached else None
        self.container.insert_before(node, reference)

    # ═══ Cursor ══════════════════════════════════════════════

    def _create_cursor(self) -> Element:
        return Element(
            tag="span",
            classes=["livellm-cursor"],
            attrs={"aria-hidden": "true"},
            text=self._config.cursor_char,
            kind=NodeKind.CURSOR,
        )

    def _move_cursor_to_end(self) -> None:
        if self._cursor_element is not None:
            self.container.append(self._cursor_element)

    def _remove_cursor(self) -> None:
        if self._cursor_element is not None:
            self._cursor_element.remove()
            self._cursor_element = None


# ═══ Construction helpers ═════════════════════════════════════


def create_session(
    container: Element | None = None,
    *,
    registry: Registry | None = None,
    **kwargs: Any,
) -> StreamSession:
    """Build a session wired to the built-in components by default."""
    if registry is None:
        from livellm.components import default_registry

        registry = default_registry()
    return StreamSession(registry, container, **kwargs)


def render_text(
    text: str,
    *,
    registry: Registry | None = None,
    config: StreamConfig | None = None,
    markdown: MarkdownRenderer | None = None,
    events: LifecycleEmitter | None = None,
) -> StreamSession:
    """Render a complete response in one go and return the finished session."""
    session = create_session(
        registry=registry,
        config=config,
        markdown=markdown,
        events=events,
        ticks=ManualTicker(),
    )
    session.push(text)
    session.end()
    return session
