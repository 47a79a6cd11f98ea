"""
WorkspaceState — what survives between runs.

Serialized to ``state.json`` in the per-user state directory. Holds
the modules (with their tokens) and the modified-file list, each as a
flat array of records using the camelCase field names of the models.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from modsync.core.models.module import Module
from modsync.core.models.tracked_file import TrackedFile


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class WorkspaceState(BaseModel):
    """Root persisted state."""

    # ── Schema ───────────────────────────────────────────────────
    schema_version: int = 1

    # ── Timestamps ───────────────────────────────────────────────
    updated_at: str = Field(default_factory=_now_iso)
    last_discovery_at: str | None = None

    # ── Component state ──────────────────────────────────────────
    modules: list[Module] = Field(default_factory=list)
    files: list[TrackedFile] = Field(default_factory=list)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _now_iso()

