"""Configuration file discovery and loading.

Configuration is read from the first of these found while walking up from
the repository path:

1. ``.ccver.toml`` - the whole file is the ccver table
2. ``pyproject.toml`` with a ``[tool.ccver]`` table

If neither exists the defaults are used.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ccver.config.models import CCVerConfig
from ccver.exceptions import ConfigNotFoundError, ConfigValidationError

log = logging.getLogger(__name__)

CONFIG_FILENAME = ".ccver.toml"
PYPROJECT_FILENAME = "pyproject.toml"
TOOL_KEY = "ccver"


def find_config_file(start: Path | None = None) -> Path | None:
    """Find the file holding ccver configuration.

    Args:
        start: Directory to start from (defaults to the current directory)

    Returns:
        Path to ``.ccver.toml`` or to a pyproject.toml with a
        ``[tool.ccver]`` table, or None if there is none
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        dedicated = directory / CONFIG_FILENAME
        if dedicated.is_file():
            return dedicated
        pyproject = directory / PYPROJECT_FILENAME
        if pyproject.is_file() and extract_ccver_config(load_toml(pyproject)):
            return pyproject
    return None


def load_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigValidationError: If the file is not valid TOML
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigNotFoundError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def extract_ccver_config(data: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.ccver]`` table of a parsed pyproject.toml, or {}."""
    return data.get("tool", {}).get(TOOL_KEY, {})


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> CCVerConfig:
    """Load configuration for the repository at ``path``.

    Args:
        path: Repository directory (defaults to the current directory)
        overrides: Top-level values that take precedence over the file,
            typically taken from command line flags. None values are ignored.

    Returns:
        Validated configuration

    Raises:
        ConfigValidationError: If the configuration is invalid
    """
    config_path = find_config_file(path)
    data: dict[str, Any] = {}
    if config_path is None:
        log.debug("No ccver configuration found, using defaults")
    elif config_path.name == CONFIG_FILENAME:
        log.debug("Loading configuration from %s", config_path)
        data = load_toml(config_path)
    else:
        log.debug("Loading [tool.%s] from %s", TOOL_KEY, config_path)
        data = dict(extract_ccver_config(load_toml(config_path)))

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return CCVerConfig.model_validate(data)
    except ValidationError as e:
        source = config_path or "defaults"
        raise ConfigValidationError(f"Invalid ccver configuration ({source}):\n{e}") from e
