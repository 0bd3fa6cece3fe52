"""Built-in LiveLLM components."""

from __future__ import annotations

from livellm.components.action import (
    CHOICE_SKELETON,
    CONFIRM_SKELETON,
    Choice,
    ChoiceProps,
    Confirm,
    ConfirmProps,
)
from livellm.components.inline import (
    ALERT_SKELETON,
    BADGE_SKELETON,
    PROGRESS_SKELETON,
    Alert,
    AlertProps,
    Badge,
    BadgeProps,
    Progress,
    ProgressProps,
)
from livellm.registry import ComponentCategory, Registry


def register_builtins(registry: Registry) -> Registry:
    """Install the built-in components into ``registry`` and return it."""
    registry.register(
        "badge", Badge, BadgeProps,
        skeleton=BADGE_SKELETON, category=ComponentCategory.INLINE,
        description="Short colored label",
    )
    registry.register(
        "alert", Alert, AlertProps,
        skeleton=ALERT_SKELETON, category=ComponentCategory.INLINE,
        description="Info, success, warning or error callout",
    )
    registry.register(
        "progress", Progress, ProgressProps,
        skeleton=PROGRESS_SKELETON, category=ComponentCategory.INLINE,
        description="Progress bar with optional label",
    )
    registry.register(
        "choice", Choice, ChoiceProps,
        skeleton=CHOICE_SKELETON, category=ComponentCategory.ACTION,
        description="Single-select question; emits a select action",
    )
    registry.register(
        "confirm", Confirm, ConfirmProps,
        skeleton=CONFIRM_SKELETON, category=ComponentCategory.ACTION,
        description="Yes/no prompt; emits confirm or cancel",
    )
    return registry


def default_registry() -> Registry:
    """A fresh registry holding the built-in components."""
    return register_builtins(Registry())


__all__ = [
    "Alert",
    "AlertProps",
    "Badge",
    "BadgeProps",
    "Choice",
    "ChoiceProps",
    "Confirm",
    "ConfirmProps",
    "Progress",
    "ProgressProps",
    "default_registry",
    "register_builtins",
]
