"""Rich terminal surface for stream sessions.

Projects a session's container onto Rich renderables: prose blocks as
Markdown, skeletons as dim placeholder panels, live widgets through a
per-type renderer, and fallbacks as red "degraded" panels. The
``LiveStreamDisplay`` wraps ``rich.live.Live`` and exposes a paint hook
that the session calls once per render tick.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from livellm.dom import Element, NodeKind

_BADGE_STYLES: dict[str, str] = {
    "green": "bold white on green",
    "red": "bold white on red",
    "blue": "bold white on blue",
    "yellow": "bold black on yellow",
    "gray": "bold white on grey39",
    "purple": "bold white on purple",
}

_ALERT_STYLES: dict[str, tuple[str, str]] = {
    "info": ("ℹ", "blue"),
    "success": ("✓", "green"),
    "warning": ("⚠", "yellow"),
    "error": ("✗", "red"),
}

WidgetRenderer = Callable[[dict[str, Any]], RenderableType]


# ── Widget renderers ──────────────────────────────────────────────


def _render_badge(props: dict[str, Any]) -> RenderableType:
    color = props.get("color", "blue")
    style = _BADGE_STYLES.get(color, "bold")
    if props.get("variant") == "outline":
        style = f"bold {color}"
    return Text(f" {props.get('text', '')} ", style=style)


def _render_alert(props: dict[str, Any]) -> RenderableType:
    icon, color = _ALERT_STYLES.get(props.get("type", "info"), ("ℹ", "blue"))
    return Panel(
        Text(f"{icon} {props.get('text', '')}"),
        border_style=color,
        expand=False,
    )


def _render_progress(props: dict[str, Any]) -> RenderableType:
    total = float(props.get("max", 100) or 100)
    value = float(props.get("value", 0))
    table = Table.grid(padding=(0, 1))
    table.add_column()
    table.add_column(width=40)
    table.add_column(justify="right")
    table.add_row(
        Text(props.get("label", ""), style="dim"),
        ProgressBar(total=total, completed=min(value, total), width=40),
        Text(f"{min(100.0, value / total * 100):.0f}%"),
    )
    return table


def _render_choice(props: dict[str, Any]) -> RenderableType:
    text = Text()
    if props.get("question"):
        text.append(props["question"] + "\n", style="bold")
    for i, option in enumerate(props.get("options", []), start=1):
        label = option if isinstance(option, str) else option.get("label", "")
        text.append(f"  [{i}] ", style="cyan")
        text.append(f"{label}\n")
    return Panel(text, title="[bold cyan]Choice[/bold cyan]", border_style="cyan", expand=False)


def _render_confirm(props: dict[str, Any]) -> RenderableType:
    text = Text(props.get("text", "Are you sure?") + "\n", style="bold")
    text.append(f"  [y] {props.get('confirm_label', 'Yes')}", style="green")
    text.append(f"   [n] {props.get('cancel_label', 'No')}", style="red")
    return Panel(text, title="[bold]Confirm[/bold]", border_style="magenta", expand=False)


def _render_generic(component_type: str, props: dict[str, Any]) -> RenderableType:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    for key, value in props.items():
        shown = value if isinstance(value, str) else json.dumps(value, default=str)
        table.add_row(key, shown)
    return Panel(table, title=f"[bold]{component_type}[/bold]", border_style="green", expand=False)


DEFAULT_WIDGET_RENDERERS: dict[str, WidgetRenderer] = {
    "badge": _render_badge,
    "alert": _render_alert,
    "progress": _render_progress,
    "choice": _render_choice,
    "confirm": _render_confirm,
}


# ── Container projection ──────────────────────────────────────────


def render_node(
    node: Element,
    widget_renderers: dict[str, WidgetRenderer] | None = None,
) -> RenderableType | None:
    """Rich renderable for one top-level container child (None to skip)."""
    renderers = DEFAULT_WIDGET_RENDERERS if widget_renderers is None else widget_renderers

    if node.kind == NodeKind.PROSE:
        return Markdown(node.data.get("source", node.text_content()))

    if node.kind == NodeKind.SKELETON:
        component_type = node.data.get("component_type", "component")
        return Panel(
            Text(f"Loading {component_type}…", style="dim italic"),
            border_style="dim",
            expand=False,
        )

    if node.kind == NodeKind.COMPONENT:
        component_type = node.data.get("component_type", "")
        props = node.data.get("props", {})
        renderer = renderers.get(component_type)
        if renderer is not None:
            return renderer(props)
        return _render_generic(component_type, props)

    if node.kind == NodeKind.FALLBACK:
        error = node.data.get("error")
        title = "[bold red]degraded[/bold red]"
        if error is not None:
            title += f" [dim]{error.kind}[/dim]"
        body: list[RenderableType] = [
            Syntax(node.data.get("fenced", ""), "json", theme="monokai", word_wrap=True)
        ]
        if error is not None:
            body.append(Text(error.message, style="red"))
        return Panel(Group(*body), title=title, border_style="red")

    if node.kind == NodeKind.CURSOR:
        return Text(node.text, style="blink bold")

    text = node.text_content()
    return Text(text) if text else None


def render_container(
    container: Element,
    widget_renderers: dict[str, WidgetRenderer] | None = None,
) -> Group:
    """Rich group for an entire container, in output order."""
    parts = [render_node(child, widget_renderers) for child in container.children]
    return Group(*(p for p in parts if p is not None))


class LiveStreamDisplay:
    """Rich Live view of a stream session's container.

    Use as a context manager and pass ``paint`` as the session's
    ``on_paint`` hook::

        with LiveStreamDisplay(console) as display:
            session = create_session(on_paint=display.paint)
    """

    def __init__(
        self,
        console: Console,
        *,
        title: str = "",
        widget_renderers: dict[str, WidgetRenderer] | None = None,
        refresh_per_second: int = 12,
        transient: bool = False,
    ) -> None:
        self._console = console
        self._title = title
        self._widget_renderers = widget_renderers
        self._refresh_per_second = refresh_per_second
        self._transient = transient
        self._live: Live | None = None
        self._last: Element | None = None
        self.paints = 0

    def __enter__(self) -> LiveStreamDisplay:
        self._live = Live(
            Text(""),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=self._transient,
            auto_refresh=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        if self._live:
            if self._last is not None:
                self._live.update(self._build(self._last), refresh=True)
            self._live.__exit__(*args)
            self._live = None

    def _build(self, container: Element) -> RenderableType:
        group = render_container(container, self._widget_renderers)
        if self._title:
            return Panel(group, title=self._title, border_style="blue")
        return group

    def paint(self, container: Element) -> None:
        """Paint hook: re-project the container onto the live view."""
        self._last = container
        self.paints += 1
        if self._live is not None:
            self._live.update(self._build(container), refresh=True)
