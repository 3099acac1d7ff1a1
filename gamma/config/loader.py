"""Layered configuration loading.

Layers, lowest to highest priority:

1. ``config/default.toml`` (required)
2. ``config/{APP_ENV}.toml`` (optional overlay for the active environment)
3. The process variables the logger factory reads (``SERVICE_NAME``,
   ``APP_VERSION``, ``APP_ENV``, ``LOG_LEVEL``, ``LOG_REDACT_PATHS``)

``GAMMA_*`` variables are applied on top of the result by Settings.
"""

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from gamma.observability.factory import logger_env_values
from gamma.observability.models import DEFAULT_ENV

CONFIG_DIR_VARIABLE = "GAMMA_CONFIG_DIR"
ENVIRONMENT_VARIABLE = "APP_ENV"
DEFAULT_FILE = "default.toml"

# LoggerConfig field -> location of the same value in the settings tree
SETTINGS_PATHS: dict[str, tuple[str, ...]] = {
    "service": ("app_name",),
    "version": ("version",),
    "env": ("environment",),
    "level": ("observability", "logging", "level"),
    "redact_paths": ("observability", "logging", "redact_paths"),
}

_SEARCH_DEPTH = 5


def find_config_dir(environ: Mapping[str, str]) -> Path:
    """Locate the directory holding the TOML files.

    ``GAMMA_CONFIG_DIR`` wins when set and must exist. Otherwise the first
    ``config/`` found walking up from the working directory is used.

    Raises:
        FileNotFoundError: If GAMMA_CONFIG_DIR points nowhere
    """
    explicit = environ.get(CONFIG_DIR_VARIABLE)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_VARIABLE} is not a directory: {explicit}")
        return path

    start = Path.cwd()
    for candidate in [start, *start.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return start / "config"


def environment_name(environ: Mapping[str, str]) -> str:
    """Return the active environment (``APP_ENV``, default development)."""
    return environ.get(ENVIRONMENT_VARIABLE) or DEFAULT_ENV


def read_toml(path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {path}") from None


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``overlay`` merged in; tables merge, values replace."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate the logger variables in ``environ`` into a settings tree."""
    tree: dict[str, Any] = {}
    for field, value in logger_env_values(environ).items():
        *parents, leaf = SETTINGS_PATHS[field]
        node = tree
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value
    return tree


def load_config(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Build the configuration tree for the active environment.

    Args:
        environ: Variable mapping; defaults to ``os.environ``

    Returns:
        Merged configuration with ``environment`` always set

    Raises:
        FileNotFoundError: If default.toml is missing
    """
    if environ is None:
        environ = os.environ

    config_dir = find_config_dir(environ)
    default_path = config_dir / DEFAULT_FILE
    if not default_path.is_file():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/{DEFAULT_FILE} or set {CONFIG_DIR_VARIABLE}."
        )

    env = environment_name(environ)
    config = read_toml(default_path)
    overlay_path = config_dir / f"{env}.toml"
    if overlay_path.is_file():
        config = deep_merge(config, read_toml(overlay_path))

    config.setdefault("environment", env)
    return deep_merge(config, env_overrides(environ))
