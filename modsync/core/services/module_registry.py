"""
Module registry — the workspace's modules and their connectivity.

Connectivity is never stored on its own: every connectivity view is
recomputed from the modules' tokens, so it cannot drift after a token
change. Lookups that miss return ``None``; nothing here raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from modsync.core.models.module import Module
from modsync.core.models.tracked_file import normalize_path

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Ordered collection of Modules, in discovery order."""

    def __init__(self, modules: Iterable[Module] = ()) -> None:
        self._modules: list[Module] = list(modules)

    def __len__(self) -> int:
        return len(self._modules)

    # ── Bulk state ──────────────────────────────────────────────

    def set_modules(self, modules: Iterable[Module]) -> None:
        """Replace the whole collection. No merge with prior state."""
        self._modules = list(modules)
        logger.debug("Registry now holds %d module(s)", len(self._modules))

    def get_modules(self) -> list[Module]:
        return list(self._modules)

    def count(self) -> int:
        return len(self._modules)

    # ── Tokens ──────────────────────────────────────────────────

    def propagate_token(self, instance_url: str, token: str | None) -> int:
        """Set *token* on every module bound to *instance_url*.

        One authentication covers every module sharing the instance.
        Passing ``None`` logs the instance out. Returns the number of
        modules updated.
        """
        updated = 0
        for i, module in enumerate(self._modules):
            if module.instance_url == instance_url:
                self._modules[i] = module.with_token(token)
                updated += 1
        if updated == 0:
            logger.debug("No module bound to %s", instance_url)
        return updated

    def clear_tokens(self) -> None:
        """Global logout."""
        self._modules = [m.with_token(None) for m in self._modules]

    def get_token_for_instance_url(self, instance_url: str) -> str | None:
        """Token held by the first connected module on *instance_url*."""
        for module in self._modules:
            if module.instance_url == instance_url and module.token:
                return module.token
        return None

    # ── Connectivity views ──────────────────────────────────────

    def get_disconnected_modules(self) -> list[Module]:
        return [m for m in self._modules if not m.connected]

    def get_connected_instance_urls(self) -> list[str]:
        """Distinct instance URLs with at least one tokened module, first-seen order."""
        urls: list[str] = []
        for module in self._modules:
            if module.connected and module.instance_url not in urls:
                urls.append(module.instance_url)
        return urls

    def is_instance_connected(self, instance_url: str) -> bool:
        return instance_url in self.get_connected_instance_urls()

    # ── Lookups (first match wins) ──────────────────────────────

    def get_module(self, name: str) -> Module | None:
        """First module called *name*.

        Module names are only unique per instance; when two instances
        host a module with the same name, the first discovered wins.
        """
        for module in self._modules:
            if module.name == name:
                return module
        return None

    def get_instance_url_for_module_name(self, name: str) -> str | None:
        module = self.get_module(name)
        return module.instance_url if module else None

    def get_module_name_for_instance_url(self, instance_url: str) -> str | None:
        for module in self._modules:
            if module.instance_url == instance_url:
                return module.name
        return None

    def get_instance_url_for_workspace_path(self, workspace_path: str) -> str | None:
        wanted = normalize_path(workspace_path)
        for module in self._modules:
            if normalize_path(module.workspace_folder_path) == wanted:
                return module.instance_url
        return None

    def resolve_instance_url(self, name_or_url: str) -> str | None:
        """Accept an instance URL or a module name; URLs win."""
        for module in self._modules:
            if module.instance_url == name_or_url:
                return module.instance_url
        return self.get_instance_url_for_module_name(name_or_url)

    def instance_urls(self) -> list[str]:
        """Every distinct instance URL, first-seen order."""
        urls: list[str] = []
        for module in self._modules:
            if module.instance_url not in urls:
                urls.append(module.instance_url)
        return urls
