"""
Module model — a workspace unit bound to a remote instance.

A module is discovered from manifests in a workspace folder and owns
its own authentication state. The token is the only connectivity
signal: a module is connected iff it holds a non-empty token.

Modules are frozen. Token changes go through ModuleRegistry, which
replaces the instance with an updated copy.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class Module(BaseModel):
    """A remote module known to the workspace."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    # ── Identity ─────────────────────────────────────────────────
    name: str
    instance_url: str

    # ── Authentication ───────────────────────────────────────────
    token: str | None = None

    # ── Display / workspace metadata ─────────────────────────────
    module_info: str = ""            # free-form label, falls back to name
    workspace_folder_name: str = ""
    workspace_folder_path: str = ""

    @field_validator("token", mode="before")
    @classmethod
    def _empty_token_is_absent(cls, value: str | None) -> str | None:
        return value or None

    @property
    def connected(self) -> bool:
        """Whether this module currently holds a token."""
        return self.token is not None

    @property
    def label(self) -> str:
        """Descriptive label used by the status projection."""
        return self.module_info or self.name

    def with_token(self, token: str | None) -> Module:
        """Return a copy carrying *token* (``None`` clears it)."""
        return self.model_copy(update={"token": token or None})
