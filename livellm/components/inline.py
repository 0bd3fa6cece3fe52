"""Inline display components: badge, alert, progress."""

from __future__ import annotations

import html
from typing import Any, Literal

from pydantic import BaseModel, Field

from livellm.dom import Element, NodeKind
from livellm.registry import ActionCallback, Skeleton

# ── Badge ─────────────────────────────────────────────────────────


class BadgeProps(BaseModel):
    text: str
    color: Literal["green", "red", "blue", "yellow", "gray", "purple"] = "blue"
    variant: Literal["solid", "outline"] = "solid"


BADGE_SKELETON = Skeleton(
    markup='<span class="livellm-skeleton" style="display:inline-block;width:60px;height:20px;"></span>',
    height="20px",
)


class Badge:
    props_model = BadgeProps

    def __init__(self) -> None:
        self._listeners: list[ActionCallback] = []

    def default_props(self) -> dict[str, Any]:
        return {"color": "blue", "variant": "solid"}

    def render(self, props: BadgeProps) -> Element:
        return Element(
            tag="span",
            classes=[
                "livellm-badge",
                f"livellm-badge--{props.color}",
                f"livellm-badge--{props.variant}",
            ],
            text=props.text,
            kind=NodeKind.COMPONENT,
        )

    def on_action(self, callback: ActionCallback) -> None:
        # Badges are display-only; keep the listener so re-binding is harmless
        self._listeners.append(callback)


# ── Alert ─────────────────────────────────────────────────────────


class AlertProps(BaseModel):
    type: Literal["info", "success", "warning", "error"] = "info"
    text: str


ALERT_SKELETON = Skeleton(
    markup='<div class="livellm-skeleton" style="height:48px;border-radius:8px;"></div>',
    height="48px",
)

_ALERT_ICONS = {"info": "ℹ", "success": "✓", "warning": "⚠", "error": "✗"}


class Alert:
    props_model = AlertProps

    def __init__(self) -> None:
        self._listeners: list[ActionCallback] = []

    def default_props(self) -> dict[str, Any]:
        return {"type": "info"}

    def render(self, props: AlertProps) -> Element:
        icon = _ALERT_ICONS[props.type]
        return Element(
            tag="div",
            classes=["livellm-alert", f"livellm-alert--{props.type}"],
            attrs={"role": "alert"},
            inner_html=(
                f'<span class="livellm-alert-icon">{icon}</span>'
                f'<span class="livellm-alert-text">{html.escape(props.text)}</span>'
            ),
            kind=NodeKind.COMPONENT,
        )

    def on_action(self, callback: ActionCallback) -> None:
        self._listeners.append(callback)


# ── Progress ──────────────────────────────────────────────────────


class ProgressProps(BaseModel):
    value: float = Field(ge=0)
    max: float = Field(default=100, ge=1)
    label: str = ""
    color: str = ""


PROGRESS_SKELETON = Skeleton(
    markup='<span class="livellm-skeleton" style="display:inline-block;width:120px;height:10px;"></span>',
    height="10px",
)


class Progress:
    props_model = ProgressProps

    def __init__(self) -> None:
        self._listeners: list[ActionCallback] = []

    def default_props(self) -> dict[str, Any]:
        return {"max": 100, "label": "", "color": ""}

    @staticmethod
    def percent(props: ProgressProps) -> float:
        return max(0.0, min(100.0, props.value / props.max * 100))

    def render(self, props: ProgressProps) -> Element:
        pct = self.percent(props)
        style = f"width:{pct:.0f}%"
        if props.color:
            style += f";background:{html.escape(props.color)}"
        label = (
            f'<span class="livellm-progress-label">{html.escape(props.label)}</span>'
            if props.label
            else ""
        )
        return Element(
            tag="div",
            classes=["livellm-progress"],
            attrs={
                "role": "progressbar",
                "aria-valuenow": f"{props.value:g}",
                "aria-valuemax": f"{props.max:g}",
            },
            inner_html=(
                f'{label}<div class="livellm-progress-track">'
                f'<div class="livellm-progress-fill" style="{style}"></div></div>'
            ),
            kind=NodeKind.COMPONENT,
        )

    def on_action(self, callback: ActionCallback) -> None:
        self._listeners.append(callback)
