"""
Status use case — project registry and tracker state for display.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from modsync.core.context import WorkspaceContext
from modsync.core.services.status_projection import StatusSummary, build_status, render_status
from modsync.core.use_cases.discover import run_discover


@dataclass
class StatusResult:
    """Aggregated workspace status."""

    summary: StatusSummary | None = None
    module_count: int = 0
    tracked_count: int = 0
    discovery_errors: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def text(self) -> str:
        return render_status(self.summary) if self.summary else ""

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["modules"] = self.module_count
        result["tracked_files"] = self.tracked_count
        if self.summary:
            result.update(self.summary.to_dict())
        if self.discovery_errors:
            result["discovery_errors"] = list(self.discovery_errors)
        return result


def get_status(ctx: WorkspaceContext, *, refresh: bool = False) -> StatusResult:
    """Build the status projection from the live context.

    Args:
        ctx: Loaded workspace context.
        refresh: Re-run discovery first (also done when discovery
            has never run for this state file).

    Returns:
        StatusResult; recomputed on every call.
    """
    result = StatusResult()

    if refresh or ctx.state.last_discovery_at is None:
        discovered = run_discover(ctx, save=True)
        result.discovery_errors = discovered.errors

    result.summary = build_status(
        ctx.tracker.list(),
        ctx.registry.get_modules(),
        ctx.registry.get_connected_instance_urls(),
    )
    result.module_count = ctx.registry.count()
    result.tracked_count = len(ctx.tracker)
    return result
