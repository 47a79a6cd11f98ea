"""
TrackedFile model — a local file modified relative to its module.

Paths are normalized on construction so that POSIX and Windows style
paths compare equal inside the tracker.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


_DRIVE = re.compile(r"^[A-Za-z]:/")


def normalize_path(path: str) -> str:
    """Strip one leading separator and convert backslashes to slashes.

    ``/a/b``, ``\\a\\b`` and ``a/b`` all normalize to ``a/b``.
    """
    if path[:1] in ("/", "\\"):
        path = path[1:]
    return path.replace("\\", "/")


def base_name(path: str) -> str:
    """Substring after the final ``/`` of a normalized path."""
    return normalize_path(path).rsplit("/", 1)[-1]


class TrackedFile(BaseModel):
    """A modified file waiting to be applied to its instance."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    file_path: str
    instance_url: str = ""
    workspace_folder_path: str = ""

    @field_validator("file_path", "workspace_folder_path")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_path(value)

    @property
    def file_name(self) -> str:
        return base_name(self.file_path)

    @property
    def local_path(self) -> Path:
        """The file on disk. Drive-letter paths keep their form; others are rooted."""
        if _DRIVE.match(self.file_path):
            return Path(self.file_path)
        return Path("/" + self.file_path)
