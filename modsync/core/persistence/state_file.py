"""
State file persistence — atomic read/write for WorkspaceState.

State lives as JSON in a per-user directory ($MODSYNC_STATE_DIR, else
~/.modsync). Writes are atomic (write to temp file, then rename) to
prevent corruption if the process crashes mid-write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from modsync.core.models.state import WorkspaceState

logger = logging.getLogger(__name__)

STATE_DIR_ENV = "MODSYNC_STATE_DIR"
DEFAULT_STATE_DIR = ".modsync"
DEFAULT_STATE_FILE = "state.json"


def default_state_path() -> Path:
    """Get the per-user state file path."""
    override = os.environ.get(STATE_DIR_ENV)
    state_dir = Path(override) if override else Path.home() / DEFAULT_STATE_DIR
    return state_dir / DEFAULT_STATE_FILE


def load_state(path: Path) -> WorkspaceState:
    """Load workspace state from a JSON file.

    Args:
        path: Path to the state JSON file.

    Returns:
        WorkspaceState model. If the file doesn't exist or is unreadable,
        returns a fresh state.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return WorkspaceState()

    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw)
        state = WorkspaceState.model_validate(data)
        logger.debug(
            "Loaded state from %s (%d modules, %d files)",
            path, len(state.modules), len(state.files),
        )
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
        return WorkspaceState()
    except Exception as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return WorkspaceState()


def save_state(state: WorkspaceState, path: Path) -> None:
    """Save workspace state to a JSON file (atomic write).

    Args:
        state: The state to save.
        path: Target path for the state file.
    """
    state.touch()

    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json", by_alias=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # Atomic write: temp file in same directory, then rename
    try:
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".state_",
            suffix=".tmp",
        )
        os.close(_fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
            logger.debug("State saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save state to %s: %s", path, e)
        raise
