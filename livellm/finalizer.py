"""Component finalization and fallback policy.

Turns a captured component body into either a live widget node or an
inert fallback block. Every failure mode is block-local: ``finalize()``
never raises, it returns a result carrying the error so the caller can
report it and keep streaming.
"""

from __future__ import annotations

import html
import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from livellm.dom import Element, NodeKind
from livellm.errors import (
    BlockError,
    ComponentRenderError,
    ParseError,
    UnknownComponent,
    ValidationError,
)
from livellm.registry import ActionCallback, Registry

logger = logging.getLogger(__name__)

DEFAULT_MAX_JSON_SIZE = 50_000


@dataclass
class FinalizeResult:
    """Outcome of finalizing one block."""

    node: Element
    component_type: str
    props: dict[str, Any] | None = None
    error: BlockError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_json_body(component_type: str, raw: str, max_size: int = DEFAULT_MAX_JSON_SIZE) -> Any:
    """Parse a component body under a size bound.

    Raises:
        ParseError: If the body is too large or is not valid JSON.
    """
    body = raw.strip()
    if len(body) > max_size:
        raise ParseError(
            component_type,
            f"JSON exceeds maximum size of {max_size} characters (got {len(body)})",
        )
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(component_type, f"Invalid JSON: {exc.msg}") from exc
    except (RecursionError, ValueError) as exc:
        raise ParseError(component_type, f"Invalid JSON: {exc}") from exc


def _format_validation_errors(exc: PydanticValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "props"
        if err["type"] == "missing":
            messages.append(f"{loc} is required")
        else:
            messages.append(f"{loc}: {err['msg']}")
    return messages


class ComponentFinalizer:
    """Validates component bodies and instantiates widgets.

    Holds references to the registry and the session's action callback;
    one finalizer is created per stream session.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        max_json_size: int = DEFAULT_MAX_JSON_SIZE,
        component_prefix: str = "livellm:",
        on_action: ActionCallback | None = None,
    ) -> None:
        self._registry = registry
        self._max_json_size = max_json_size
        self._prefix = component_prefix
        self._on_action = on_action

    def finalize(self, component_type: str, raw_json: str) -> FinalizeResult:
        """Build the node that replaces a component's skeleton."""
        try:
            return self._build(component_type, raw_json)
        except BlockError as exc:
            return self.fail(component_type, raw_json, exc)

    def fail(self, component_type: str, raw_json: str, error: BlockError) -> FinalizeResult:
        """Fallback result for a block the caller already knows is broken."""
        logger.warning("Component %s fell back: %s", component_type, error.message)
        return FinalizeResult(
            node=self.fallback(component_type, raw_json, error),
            component_type=component_type,
            error=error,
        )

    def _build(self, component_type: str, raw_json: str) -> FinalizeResult:
        data = parse_json_body(component_type, raw_json, self._max_json_size)

        registration = self._registry.lookup(component_type)
        if registration is None:
            raise UnknownComponent(component_type)

        if not isinstance(data, dict):
            raise ValidationError(component_type, ["component body must be a JSON object"])
        try:
            props = registration.props_model.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(component_type, _format_validation_errors(exc)) from exc

        try:
            widget = registration.instantiate()
            if self._on_action is not None:
                widget.on_action(self._on_action)
            node = widget.render(props)
        except Exception as exc:
            logger.exception("Widget %s failed to render", component_type)
            raise ComponentRenderError(component_type, f"Render failed: {exc}") from exc

        final_props = props.model_dump(mode="json")
        node.kind = NodeKind.COMPONENT
        node.attrs["data-livellm"] = component_type
        node.attrs["data-props"] = json.dumps(final_props, separators=(",", ":"))
        node.data.update(
            {"component_type": component_type, "props": final_props, "widget": widget}
        )
        return FinalizeResult(node=node, component_type=component_type, props=final_props)

    def fallback(self, component_type: str, raw_json: str, error: BlockError) -> Element:
        """Inert, escaped rendering of the original fenced block."""
        fenced = f"```{self._prefix}{component_type}\n{raw_json.strip()}\n```"
        code = (
            f'<pre><code class="language-{html.escape(self._prefix + component_type)}">'
            f"{html.escape(fenced)}</code></pre>"
        )
        classes = ["livellm-fallback"]
        header = ""
        if isinstance(error, ValidationError):
            classes.append("livellm-error")
            items = "".join(f"<li>{html.escape(msg)}</li>" for msg in error.errors)
            header = (
                f'<div class="livellm-error-header">Component "{html.escape(component_type)}"'
                f" validation errors:</div>"
                f'<ul class="livellm-error-list">{items}</ul>'
            )
        return Element(
            tag="div",
            classes=classes,
            attrs={
                "data-degraded": "true",
                "data-livellm-type": component_type,
                "data-error": error.kind,
            },
            inner_html=header + code,
            kind=NodeKind.FALLBACK,
            data={
                "component_type": component_type,
                "raw": raw_json,
                "fenced": fenced,
                "error": error,
            },
        )
