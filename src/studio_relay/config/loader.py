"""Layered settings loading for the relay server.

Sources, lowest to highest priority::

    built-in defaults < ~/.studio/settings.yaml < <project>/.studio/settings.yaml < STUDIO_* env

Provider credentials never live in these files; they are read from the
environment when an upstream request is built.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from studio_relay.config.settings import Settings

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = ".studio"
SETTINGS_FILE_NAME = "settings.yaml"

# env var -> (dotted settings key, value kind)
_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "STUDIO_SERVER_HOST": ("server.host", str),
    "STUDIO_SERVER_PORT": ("server.port", int),
    "STUDIO_SYSTEM_PROMPT": ("relay.system_prompt", str),
    "STUDIO_CONNECT_TIMEOUT": ("relay.connect_timeout", float),
    "STUDIO_MESSAGES_FILE": ("storage.messages_file", str),
    "STUDIO_VERBOSE": ("verbose", bool),
}

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})


def settings_files(project_dir: Path | None = None, user_dir: Path | None = None) -> list[Path]:
    """Return the settings files that exist, lowest priority first."""
    found: list[Path] = []
    for base in (user_dir, project_dir):
        if base is None:
            continue
        candidate = Path(base) / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME
        if candidate.is_file():
            found.append(candidate)
    return found


def _merge(lower: dict[str, Any], higher: dict[str, Any]) -> dict[str, Any]:
    """Merge *higher* over *lower*; nested mappings merge key by key."""
    merged = dict(lower)
    for key, value in higher.items():
        below = merged.get(key)
        merged[key] = _merge(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Expected mapping in {path}, got {type(content).__name__}")
    return content


def _coerce(env_var: str, raw: str, kind: type) -> Any:
    if kind is bool:
        return raw.strip().lower() in _TRUE_WORDS
    try:
        return kind(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e


def _env_layer() -> dict[str, Any]:
    """Build a nested mapping from the STUDIO_* variables that are set."""
    layer: dict[str, Any] = {}
    for env_var, (dotted, kind) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        *parents, leaf = dotted.split(".")
        node = layer
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = _coerce(env_var, raw, kind)
    return layer


async def load_settings(
    project_dir: Path | None = None,
    user_dir: Path | None = None,
) -> Settings:
    """Load and validate settings from every layer.

    Raises ``ValueError`` for unreadable YAML, bad environment values or
    values that fail validation.
    """
    data: dict[str, Any] = {}
    for path in settings_files(project_dir, user_dir):
        logger.debug("Applying settings from %s", path)
        data = _merge(data, _read_yaml(path))

    env = _env_layer()
    if env:
        logger.debug("Applying environment overrides: %s", ", ".join(sorted(env)))
        data = _merge(data, env)

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings: {e}") from e
