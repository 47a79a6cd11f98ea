"""
Domain models — Pydantic types for modsync.

All models are re-exported here for convenient access:

    from modsync.core.models import Module, TrackedFile, WorkspaceState
"""

from modsync.core.models.module import Module
from modsync.core.models.state import WorkspaceState
from modsync.core.models.tracked_file import TrackedFile, base_name, normalize_path
from modsync.core.models.workspace import WorkspaceConfig

__all__ = [
    # module.py
    "Module",
    # tracked_file.py
    "TrackedFile",
    "base_name",
    "normalize_path",
    # workspace.py
    "WorkspaceConfig",
    # state.py
    "WorkspaceState",
]
