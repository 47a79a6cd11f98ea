"""
Tracking use cases — record and forget modified files.

A path is trackable when it sits inside a workspace folder bound to a
module and matches the supported/excluded file rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from modsync.core.context import WorkspaceContext
from modsync.core.models.tracked_file import TrackedFile
from modsync.core.services.discovery import folder_for_path, scan_module_files

logger = logging.getLogger(__name__)


@dataclass
class TrackResult:
    """Paths changed by a track/untrack call, and the ones left alone."""

    changed: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)  # path → reason

    def to_dict(self) -> dict:
        return {"changed": list(self.changed), "skipped": dict(self.skipped)}


def make_tracked_file(ctx: WorkspaceContext, path: Path) -> TrackedFile | str:
    """Build the TrackedFile for *path*, or return why it can't be tracked."""
    folder = folder_for_path(path, ctx.config.folder_paths())
    if folder is None:
        return "outside the workspace folders"

    instance_url = ctx.registry.get_instance_url_for_workspace_path(folder.as_posix())
    if instance_url is None:
        return "not in a module folder"

    resolved = path.resolve()
    if not ctx.config.is_supported_file("/" + resolved.relative_to(folder).as_posix()):
        return "unsupported file type"

    return TrackedFile(
        file_path=resolved.as_posix(),
        instance_url=instance_url,
        workspace_folder_path=folder.as_posix(),
    )


def track_paths(ctx: WorkspaceContext, paths: list[Path]) -> TrackResult:
    """Track every eligible path; already-tracked paths count as skipped."""
    result = TrackResult()
    for path in paths:
        tracked = make_tracked_file(ctx, path)
        if isinstance(tracked, str):
            result.skipped[str(path)] = tracked
            continue
        if ctx.tracker.add(tracked):
            result.changed.append(tracked.file_path)
        else:
            result.skipped[str(path)] = "already tracked"
    return result


def untrack_paths(ctx: WorkspaceContext, paths: list[Path]) -> TrackResult:
    result = TrackResult()
    for path in paths:
        key = path.resolve().as_posix()
        if ctx.tracker.remove(key):
            result.changed.append(key)
        else:
            result.skipped[str(path)] = "not tracked"
    return result


def list_module_files(ctx: WorkspaceContext) -> dict[str, list[str]]:
    """Supported files of every module folder, keyed by module name."""
    files: dict[str, list[str]] = {}
    for folder in ctx.config.folder_paths():
        instance_url = ctx.registry.get_instance_url_for_workspace_path(folder.as_posix())
        if instance_url is None:
            continue
        name = next(
            (m.name for m in ctx.registry.get_modules()
             if m.instance_url == instance_url and m.workspace_folder_name == folder.name),
            folder.name,
        )
        files[name] = scan_module_files(folder, ctx.config)
    return files
