"""Component registry.

Maps a component type name to its props schema, skeleton placeholder
and widget factory. Widgets implement the ``Widget`` protocol on their
own; there is no shared base class and the registry keeps no state
other than the registrations themselves.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from pydantic import BaseModel

from livellm.dom import Element
from livellm.schemas.protocol import ActionPayload

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[\w][\w-]*$", re.ASCII)

ActionCallback = Callable[[ActionPayload], Any]


class ComponentCategory(StrEnum):
    INLINE = "inline"
    BLOCK = "block"
    ACTION = "action"


@dataclass(frozen=True)
class Skeleton:
    """Placeholder markup shown while a component body is streaming."""

    markup: str
    height: str


DEFAULT_SKELETON = Skeleton(
    markup='<div class="livellm-skeleton"><div class="shimmer"></div></div>',
    height="100px",
)


class Widget(Protocol):
    """Capability interface every component variant implements."""

    props_model: type[BaseModel]

    def default_props(self) -> dict[str, Any]: ...

    def render(self, props: BaseModel) -> Element: ...

    def on_action(self, callback: ActionCallback) -> None: ...


WidgetFactory = Callable[[], Widget]


@dataclass
class ComponentRegistration:
    """Everything the finalizer needs to build one component type."""

    name: str
    factory: WidgetFactory
    props_model: type[BaseModel]
    skeleton: Skeleton = DEFAULT_SKELETON
    category: ComponentCategory = ComponentCategory.BLOCK
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def tag_name(self) -> str:
        return f"livellm-{self.name}"

    def instantiate(self) -> Widget:
        return self.factory()


class Registry:
    """Catalog of available components, keyed by type name."""

    def __init__(self) -> None:
        self._components: dict[str, ComponentRegistration] = {}

    def register(
        self,
        name: str,
        factory: WidgetFactory,
        props_model: type[BaseModel],
        *,
        skeleton: Skeleton | None = None,
        category: ComponentCategory = ComponentCategory.BLOCK,
        description: str = "",
    ) -> ComponentRegistration:
        """Register (or replace) a component type.

        Raises:
            ValueError: If ``name`` is not a valid component type name.
        """
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid component name: {name!r}")
        if name in self._components:
            logger.info("Replacing component registration for %s", name)
        registration = ComponentRegistration(
            name=name,
            factory=factory,
            props_model=props_model,
            skeleton=skeleton or DEFAULT_SKELETON,
            category=category,
            description=description,
        )
        self._components[name] = registration
        return registration

    def lookup(self, name: str) -> ComponentRegistration | None:
        """Return the registration for ``name``, or None when absent."""
        return self._components.get(name)

    def has(self, name: str) -> bool:
        return name in self._components

    def names(self) -> list[str]:
        """All registered component names, in registration order."""
        return list(self._components)

    def remove(self, name: str) -> bool:
        return self._components.pop(name, None) is not None

    def get_skeleton(self, name: str) -> Skeleton:
        """Declared skeleton for ``name``, or the generic default."""
        registration = self._components.get(name)
        return registration.skeleton if registration else DEFAULT_SKELETON

    def clear(self) -> None:
        self._components.clear()

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, name: object) -> bool:
        return name in self._components
