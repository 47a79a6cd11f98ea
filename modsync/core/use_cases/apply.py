"""
Apply use case — send tracked files to their instances.

Each uploaded file leaves the tracker as soon as its own upload
succeeds; files that fail stay tracked for the next attempt. The
session of each instance is resumed with the stored token first; an
instance is compiled once after at least one of its files went up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from modsync.core.context import WorkspaceContext
from modsync.core.models.tracked_file import TrackedFile, normalize_path
from modsync.core.services.remote_session import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying changes."""

    applied: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)     # file path → error
    compiled: dict[str, str] = field(default_factory=dict)   # instance url → message
    compile_errors: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed and not self.compile_errors

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "applied": list(self.applied),
            "failed": dict(self.failed),
            "compiled": dict(self.compiled),
            "compile_errors": dict(self.compile_errors),
        }


def _files_in_scope(
    ctx: WorkspaceContext,
    module_name: str | None,
) -> tuple[dict[str, list[TrackedFile]], str | None]:
    connected = ctx.registry.get_connected_instance_urls()
    if not connected:
        return {}, "No module connected, cannot apply changes"

    if module_name is None:
        grouped = ctx.tracker.group_by_instance(connected)
    else:
        module = ctx.registry.get_module(module_name)
        if module is None:
            return {}, f"There is no module {module_name} in your current workspace"
        if module.instance_url not in connected:
            return {}, f"Module {module_name} is not connected"
        folder = normalize_path(module.workspace_folder_path)
        files = [
            f for f in ctx.tracker.for_instance(module.instance_url)
            if f.workspace_folder_path == folder
        ]
        grouped = {module.instance_url: files} if files else {}

    if not grouped:
        return {}, "No file has changed, cannot apply changes"
    return grouped, None


def apply_changes(ctx: WorkspaceContext, module_name: str | None = None) -> ApplyResult:
    """Upload tracked files of connected instances, then compile.

    Args:
        ctx: Loaded workspace context.
        module_name: Restrict to one module's files; None applies
            every connected instance.
    """
    grouped, error = _files_in_scope(ctx, module_name)
    if error:
        return ApplyResult(error=error)

    result = ApplyResult()
    for instance_url, files in grouped.items():
        session = ctx.sessions.get(instance_url)
        try:
            session.login(token=ctx.registry.get_token_for_instance_url(instance_url))
        except AuthenticationError as e:
            logger.error("Cannot resume session on %s: %s", instance_url, e)
            for tracked in files:
                result.failed[tracked.file_path] = str(e)
            continue

        uploaded = 0
        for tracked in files:
            try:
                session.upload(tracked)
            except Exception as e:
                logger.error("Cannot apply %s: %s", tracked.file_path, e)
                result.failed[tracked.file_path] = str(e)
                continue
            ctx.tracker.remove(tracked.file_path)
            result.applied.append(tracked.file_path)
            uploaded += 1
            logger.info("Applied %s", tracked.file_path)

        if uploaded and ctx.config.compile_on_apply:
            try:
                result.compiled[instance_url] = session.compile()
                logger.info("Compilation on %s succeeded", instance_url)
            except Exception as e:
                logger.error("Cannot trigger compilation on %s: %s", instance_url, e)
                result.compile_errors[instance_url] = str(e)

    return result
