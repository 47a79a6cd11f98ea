"""
Workspace context — the session object every use case works on.

Built once by the entry point (the CLI, or a test) and passed by
reference. It owns the module registry, the file tracker and the
remote session pool; no other component holds its own copy.

    ctx = WorkspaceContext.load(config_path)
    ctx.registry.propagate_token(url, token)
    ctx.save()
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from modsync.core.config.loader import load_config
from modsync.core.models.module import Module
from modsync.core.models.state import WorkspaceState
from modsync.core.models.workspace import WorkspaceConfig
from modsync.core.persistence.state_file import default_state_path, load_state, save_state
from modsync.core.services.file_tracker import FileTracker
from modsync.core.services.module_registry import ModuleRegistry
from modsync.core.services.remote_session import SessionFactory, SessionPool

logger = logging.getLogger(__name__)


@dataclass
class WorkspaceContext:
    """Process-wide state for one workspace."""

    config: WorkspaceConfig
    state_path: Path
    state: WorkspaceState = field(default_factory=WorkspaceState)
    registry: ModuleRegistry = field(default_factory=ModuleRegistry)
    tracker: FileTracker = field(default_factory=FileTracker)
    sessions: SessionPool = field(default_factory=SessionPool)

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        *,
        state_path: Path | None = None,
        session_factory: SessionFactory | None = None,
    ) -> WorkspaceContext:
        """Load config and persisted state into a fresh context.

        Raises:
            ConfigError: If the config file is invalid.
        """
        config = load_config(config_path)
        state_path = state_path or default_state_path()
        state = load_state(state_path)
        return cls(
            config=config,
            state_path=state_path,
            state=state,
            registry=ModuleRegistry(state.modules),
            tracker=FileTracker(state.files),
            sessions=SessionPool(session_factory, timeout=config.timeout),
        )

    def adopt_modules(self, modules: Iterable[Module]) -> int:
        """Replace the registry with freshly discovered modules.

        Tokens persisted for the same (name, instance) pair are carried
        over. Returns the number of modules that got a token back.
        """
        known = {
            (m.name, m.instance_url): m.token
            for m in self.registry.get_modules()
            if m.token
        }
        restored: list[Module] = []
        count = 0
        for module in modules:
            token = known.get((module.name, module.instance_url))
            if token and not module.token:
                module = module.with_token(token)
                count += 1
            restored.append(module)
        self.registry.set_modules(restored)
        self.state.last_discovery_at = datetime.now(UTC).isoformat()
        if count:
            logger.info("Restored %d persisted token(s)", count)
        return count

    def snapshot(self) -> WorkspaceState:
        """Copy the live registry and tracker into the persisted state."""
        self.state.modules = self.registry.get_modules()
        self.state.files = self.tracker.list()
        return self.state

    def save(self) -> None:
        save_state(self.snapshot(), self.state_path)
