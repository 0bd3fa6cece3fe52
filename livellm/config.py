"""TOML configuration loader.

Loads stream tunables and the default chat model from defaults.toml
shipped inside the package, or from a user-supplied file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from livellm.errors import ConfigError
from livellm.schemas.config import LiveLLMConfig, ModelConfig, StreamConfig

# Default config directory relative to the livellm package
_CONFIG_DIR = Path(__file__).parent / "config"


def default_config_path() -> Path:
    return _CONFIG_DIR / "defaults.toml"


def load_config(config_path: Path | None = None) -> LiveLLMConfig:
    """Load the LiveLLM configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to livellm/config/defaults.toml.

    Returns:
        LiveLLMConfig with values from the file (unset keys keep defaults).

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the TOML is unparseable or a section is invalid.
    """
    path = config_path or default_config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    stream_section = raw.get("stream", {})
    if not isinstance(stream_section, dict):
        raise ConfigError(f"[stream] must be a table in {path}")

    model_section = raw.get("model")
    if model_section is not None and not isinstance(model_section, dict):
        raise ConfigError(f"[model] must be a table in {path}")

    try:
        stream = StreamConfig(**stream_section)
        model = ModelConfig(**model_section) if model_section else None
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    return LiveLLMConfig(stream=stream, model=model)


def load_stream_config(config_path: Path | None = None) -> StreamConfig:
    """Shortcut returning only the ``[stream]`` section."""
    return load_config(config_path).stream
