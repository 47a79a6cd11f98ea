"""
Configuration loader — reads modsync.yml into a WorkspaceConfig.

Reads YAML, validates against the Pydantic schema, and resolves the
workspace root. A missing config file is not an error: the workspace
is then the current directory with default settings.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from modsync.core.models.workspace import WorkspaceConfig

logger = logging.getLogger(__name__)

# Default config filename
WORKSPACE_CONFIG_FILE = "modsync.yml"


class ConfigError(Exception):
    """Raised when workspace configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for modsync.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to modsync.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / WORKSPACE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> WorkspaceConfig:
    """Load and validate workspace configuration.

    Args:
        path: Explicit path to modsync.yml. If None, searches upward
            and falls back to defaults rooted at the cwd.

    Returns:
        Validated WorkspaceConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    explicit = path is not None
    if path is None:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found — using defaults at %s", WORKSPACE_CONFIG_FILE, Path.cwd())
        return WorkspaceConfig(name=Path.cwd().name, root=Path.cwd())

    if not path.is_file():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return WorkspaceConfig(name=Path.cwd().name, root=Path.cwd())

    logger.debug("Loading workspace config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "workspace" key or be flat
    workspace_data = data.get("workspace", data)
    if not isinstance(workspace_data, dict):
        raise ConfigError(
            f"Expected a mapping under 'workspace' in {path}, "
            f"got {type(workspace_data).__name__}"
        )
    workspace_data = dict(workspace_data)

    root = path.parent.resolve()
    workspace_data["root"] = root
    workspace_data.setdefault("name", root.name)

    try:
        config = WorkspaceConfig.model_validate(workspace_data)
    except Exception as e:
        raise ConfigError(f"Invalid workspace configuration: {e}") from e

    logger.info("Loaded workspace '%s' with %d folder(s)", config.name, len(config.folders))
    return config
