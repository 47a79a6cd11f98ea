"""
Workspace configuration — loaded from modsync.yml.

Describes which folders make up the workspace and which files count
as module sources. Everything has a default, so an empty file (or no
file at all) is a valid configuration.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_SUPPORTED_EXTENSIONS = [
    ".java", ".css", ".less", ".js", ".html", ".md", ".xml", ".txt", ".yaml",
]

DEFAULT_EXCLUDED_PATTERNS = [
    "BUILD", "README", ".xml", ".min.", "/Theme/", "/docs/", "/files/", "/target/", ".json",
]


class WorkspaceConfig(BaseModel):
    """Root workspace configuration.

    ``folders`` are resolved against ``root`` (the directory holding
    modsync.yml, or the cwd when there is no config file).
    """

    name: str = ""
    root: Path = Field(default_factory=Path.cwd)
    folders: list[str] = Field(default_factory=lambda: ["."])

    supported_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_EXTENSIONS),
    )
    excluded_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_PATTERNS),
    )

    timeout: float = 10.0          # seconds, for remote session calls
    compile_on_apply: bool = True

    def folder_paths(self) -> list[Path]:
        """Absolute paths of the configured workspace folders."""
        return [(self.root / folder).resolve() for folder in self.folders]

    def is_supported_file(self, path: str) -> bool:
        """Whether *path* is a module source file worth tracking.

        Exclusions win over supported extensions.
        """
        posix = path.replace("\\", "/")
        if not any(posix.endswith(ext) for ext in self.supported_extensions):
            return False
        return not any(pattern in posix for pattern in self.excluded_patterns)
