"""Error taxonomy for the streaming renderer.

Block errors (ParseError, UnknownComponent, ValidationError,
ComponentRenderError) are local to a single component block. The
finalizer converts them into a fallback rendering and a lifecycle
notification; they never escape ``StreamSession.push()``.

TransportError is the only error that reaches the caller: it is raised
by the transport adapters after they abort the session.
"""

from __future__ import annotations


class LiveLLMError(Exception):
    """Base class for all LiveLLM errors."""


class ConfigError(LiveLLMError, ValueError):
    """Configuration file is present but malformed."""


# ── Block-local errors ──────────────────────────────────────────


class BlockError(LiveLLMError):
    """A component block could not be turned into a live widget."""

    kind = "block_error"

    def __init__(self, component_type: str, message: str) -> None:
        super().__init__(message)
        self.component_type = component_type
        self.message = message


class ParseError(BlockError):
    """Component body is not valid JSON, exceeds the size bound, or never closed."""

    kind = "parse_error"


class UnknownComponent(BlockError):
    """Component type is not present in the registry."""

    kind = "unknown_component"

    def __init__(self, component_type: str) -> None:
        super().__init__(
            component_type, f'Component "{component_type}" is not registered'
        )


class ValidationError(BlockError):
    """Component props do not satisfy the registered schema."""

    kind = "validation_error"

    def __init__(self, component_type: str, errors: list[str]) -> None:
        joined = "; ".join(errors) if errors else "invalid props"
        super().__init__(component_type, f"Invalid props for {component_type}: {joined}")
        self.errors = errors


class ComponentRenderError(BlockError):
    """Widget factory or render raised while building the live node."""

    kind = "render_error"


# ── Transport ───────────────────────────────────────────────────


class TransportError(LiveLLMError):
    """Reading from the external token source failed.

    Not recoverable in place: the adapter aborts the session and
    re-raises this to the caller.
    """

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
