"""API key loading for the chat token source.

Keys are read with this priority:
  1. Environment variables (highest, already set in the shell)
  2. ~/.livellm/keys.env
  3. .env in the current directory
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

LIVELLM_HOME = Path.home() / ".livellm"
KEYS_FILE = LIVELLM_HOME / "keys.env"


def load_keys_env(extra_files: list[Path] | None = None) -> None:
    """Load API keys from ~/.livellm/keys.env and .env into os.environ.

    Existing env vars are NOT overwritten, and earlier files win over
    later ones.
    """
    files = [KEYS_FILE, Path.cwd() / ".env", *(extra_files or [])]
    for env_file in files:
        if env_file.is_file():
            _load_env_file(env_file)


def has_key(env_var: str) -> bool:
    """True when ``env_var`` is set to a non-empty value."""
    return bool(env_var) and bool(os.environ.get(env_var))


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)
