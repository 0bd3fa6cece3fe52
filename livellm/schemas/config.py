"""Configuration schemas for stream sessions and the token source.

Loaded from defaults.toml by ``livellm.config``. Every field has a
default so a session can be constructed without any file on disk.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator


class StreamConfig(BaseModel):
    """Tunables for a single stream session."""

    component_prefix: str = Field(
        default="livellm:",
        description="Reserved info-string prefix that marks a component fence",
    )
    max_json_size: int = Field(
        default=50_000, gt=0, description="Largest component body accepted, in characters"
    )
    max_info_length: int = Field(
        default=50,
        gt=0,
        description="Longest fence info string considered before giving up on a component",
    )
    show_cursor: bool = Field(default=True, description="Show the trailing-edge cursor")
    cursor_char: str = Field(default="▊", description="Character used for the cursor")
    frame_interval: float = Field(
        default=1 / 60, ge=0.0, description="Seconds between render ticks (asyncio ticker)"
    )

    @field_validator("component_prefix")
    @classmethod
    def _prefix_not_empty(cls, value: str) -> str:
        if not value or value.strip() != value or "`" in value:
            raise ValueError("component_prefix must be non-empty, unpadded and backtick-free")
        return value

    def info_pattern(self) -> re.Pattern[str]:
        """Regex matching a full component info string and capturing the type."""
        return re.compile(rf"^{re.escape(self.component_prefix)}([\w][\w-]*)$", re.ASCII)


class ModelConfig(BaseModel):
    """LiteLLM routing information for the chat token source."""

    provider: str = Field(description="Provider identifier (e.g. 'anthropic', 'openai')")
    model: str = Field(description="LiteLLM model identifier")
    display_name: str = Field(default="", description="Human-friendly model name for CLI output")
    api_key_env: str = Field(default="", description="Environment variable holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    timeout: int = Field(default=120, gt=0, description="Per-call timeout in seconds")


class LiveLLMConfig(BaseModel):
    """Top-level configuration file contents."""

    stream: StreamConfig = Field(default_factory=StreamConfig)
    model: ModelConfig | None = None
