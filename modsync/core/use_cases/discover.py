"""
Discovery use case — refresh the registry from the workspace folders.

Ties together the discovery service, token carry-over and state
persistence. A folder that fails discovery is reported and skipped;
it never empties the registry on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from modsync.core.context import WorkspaceContext
from modsync.core.models.module import Module
from modsync.core.models.tracked_file import normalize_path
from modsync.core.services.discovery import discover_modules

logger = logging.getLogger(__name__)


@dataclass
class DiscoverResult:
    """Result of the discover use case."""

    modules: list[Module] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    tokens_restored: int = 0
    state_saved: bool = False

    def to_dict(self) -> dict:
        return {
            "modules": [
                {
                    "name": m.name,
                    "instance_url": m.instance_url,
                    "workspace_folder": m.workspace_folder_name,
                    "connected": m.connected,
                }
                for m in self.modules
            ],
            "errors": list(self.errors),
            "tokens_restored": self.tokens_restored,
            "state_saved": self.state_saved,
        }


def run_discover(ctx: WorkspaceContext, *, save: bool = True) -> DiscoverResult:
    """Discover modules and replace the registry with them.

    Args:
        ctx: Loaded workspace context.
        save: Whether to persist the refreshed state.
    """
    discovery = discover_modules(ctx.config.folder_paths())

    result = DiscoverResult(errors=[str(e) for e in discovery.errors])

    # Folders that failed keep whatever the registry already knew about them,
    # at their place in folder order.
    failed = {normalize_path(e.folder.as_posix()) for e in discovery.errors}
    known = ctx.registry.get_modules()
    modules: list[Module] = []
    for folder in ctx.config.folder_paths():
        key = normalize_path(folder.as_posix())
        candidates = known if key in failed else discovery.modules
        modules.extend(
            m for m in candidates
            if normalize_path(m.workspace_folder_path) == key
        )

    result.tokens_restored = ctx.adopt_modules(modules)
    result.modules = ctx.registry.get_modules()

    if not result.modules:
        logger.warning("No module found in %d workspace folder(s)", len(ctx.config.folders))

    if save:
        try:
            ctx.save()
            result.state_saved = True
        except OSError as e:
            logger.error("Failed to save state: %s", e)

    return result
