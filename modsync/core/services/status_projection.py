"""
Status projection — fold registry and tracker state into a summary.

Pure logic: no side effects, no persistence. The summary is rebuilt
every time it is requested; nothing is cached.

The rendered document has up to three sections separated by a
horizontal rule:

    Modified files:            one entry per tracked file (base name)
    Connected instances ...:   connected URL, then its modules' labels
    Disconnected modules:      omitted entirely when empty
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from modsync.core.models.module import Module
from modsync.core.models.tracked_file import TrackedFile

NONE_MARKER = "- none"
SECTION_SEPARATOR = "\n\n---\n\n"

FILES_HEADER = "Modified files:"
CONNECTED_HEADER = "Connected instances and their modules:"
DISCONNECTED_HEADER = "Disconnected modules:"


@dataclass
class StatusSummary:
    """Display-ready workspace status."""

    modified_files: list[str] = field(default_factory=list)
    connected: dict[str, list[str]] = field(default_factory=dict)  # url → module labels
    disconnected: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "modified_files": list(self.modified_files),
            "connected_instances": [
                {"instance_url": url, "modules": list(labels)}
                for url, labels in self.connected.items()
            ],
            "disconnected_modules": list(self.disconnected),
        }


def build_status(
    files: Iterable[TrackedFile],
    modules: Iterable[Module],
    connected_urls: Iterable[str],
) -> StatusSummary:
    """Group modules by connected instance and list the rest.

    Modules are indexed by URL once; each group keeps registry order.
    """
    modules = list(modules)
    connected_urls = list(connected_urls)

    by_url: dict[str, list[Module]] = {}
    for module in modules:
        by_url.setdefault(module.instance_url, []).append(module)

    return StatusSummary(
        modified_files=[f.file_name for f in files],
        connected={
            url: [m.label for m in by_url.get(url, [])]
            for url in connected_urls
        },
        disconnected=[m.name for m in modules if m.instance_url not in connected_urls],
    )


def _bullets(items: Iterable[str]) -> str:
    return "".join(f"- {item}\n\n" for item in items)


def render_files(summary: StatusSummary) -> str:
    if not summary.modified_files:
        return f"{FILES_HEADER}\n\n{NONE_MARKER}"
    return f"{FILES_HEADER}\n\n" + _bullets(summary.modified_files)


def render_connected(summary: StatusSummary) -> str:
    if not summary.connected:
        return f"{CONNECTED_HEADER}\n\n{NONE_MARKER}\n\n"
    text = f"{CONNECTED_HEADER}\n\n"
    for url, labels in summary.connected.items():
        text += f"{url}:\n" + _bullets(labels)
    return text


def render_disconnected(summary: StatusSummary) -> str:
    if not summary.disconnected:
        return ""
    return f"{DISCONNECTED_HEADER}\n\n" + _bullets(summary.disconnected)


def render_status(summary: StatusSummary) -> str:
    """Render the summary as a single sectioned text document."""
    sections = [render_files(summary), render_connected(summary)]
    disconnected = render_disconnected(summary)
    if disconnected:
        sections.append(disconnected)
    return SECTION_SEPARATOR.join(sections)


def project_status(
    files: Iterable[TrackedFile],
    modules: Iterable[Module],
    connected_urls: Iterable[str],
) -> str:
    """Shortcut: build and render in one call."""
    return render_status(build_status(files, modules, connected_urls))
