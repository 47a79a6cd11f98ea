"""
File tracker — the set of locally modified files.

Entries are keyed by normalized path, so adding a path that is
already tracked (in any separator style) is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from modsync.core.models.tracked_file import TrackedFile, normalize_path

logger = logging.getLogger(__name__)


class FileTracker:
    """Insertion-ordered collection of TrackedFiles, unique by path."""

    def __init__(self, files: Iterable[TrackedFile] = ()) -> None:
        self._files: dict[str, TrackedFile] = {}
        for tracked in files:
            self.add(tracked)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file_path: object) -> bool:
        return isinstance(file_path, str) and self.is_tracked(file_path)

    def is_tracked(self, file_path: str) -> bool:
        return normalize_path(file_path) in self._files

    def add(self, tracked: TrackedFile) -> bool:
        """Track *tracked* unless its path already is. Returns True if inserted."""
        if tracked.file_path in self._files:
            return False
        self._files[tracked.file_path] = tracked
        logger.debug("Tracking %s (%s)", tracked.file_path, tracked.instance_url)
        return True

    def remove(self, file_path: str) -> bool:
        """Stop tracking *file_path*. Returns True if it was tracked."""
        removed = self._files.pop(normalize_path(file_path), None)
        if removed is not None:
            logger.debug("Untracked %s", removed.file_path)
        return removed is not None

    def list(self) -> list[TrackedFile]:
        return list(self._files.values())

    def clear(self) -> None:
        self._files.clear()

    def for_instance(self, instance_url: str) -> list[TrackedFile]:
        return [f for f in self._files.values() if f.instance_url == instance_url]

    def group_by_instance(self, connected_urls: Iterable[str]) -> dict[str, list[TrackedFile]]:
        """Tracked files of connected instances, keyed by instance URL."""
        connected = list(connected_urls)
        grouped: dict[str, list[TrackedFile]] = {}
        for tracked in self._files.values():
            if tracked.instance_url in connected:
                grouped.setdefault(tracked.instance_url, []).append(tracked)
        return grouped
