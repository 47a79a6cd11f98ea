"""
Discovery service — find modules in workspace folders.

A workspace folder is a module when it contains exactly one
``module-info.json``. Its instance URL comes from the
``simplicite.url`` property of the folder's ``pom.xml``.

Failures are per folder: an ambiguous or malformed folder is skipped
and reported in ``DiscoveryResult.errors`` while the other folders
proceed. Nothing is raised out of ``discover_modules``.

Pure logic — reads the filesystem, never writes.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

from modsync.core.models.module import Module
from modsync.core.models.tracked_file import normalize_path
from modsync.core.models.workspace import WorkspaceConfig

logger = logging.getLogger(__name__)

MODULE_MANIFEST = "module-info.json"
POM_MANIFEST = "pom.xml"
INSTANCE_URL_PROPERTY = "simplicite.url"

# Never searched for manifests.
_SKIPPED_DIRS = {".git", "node_modules", "target"}


class DiscoveryError(Exception):
    """A workspace folder could not be turned into a module."""

    def __init__(self, folder: Path, message: str) -> None:
        super().__init__(f"{folder}: {message}")
        self.folder = folder


class DiscoveryAmbiguityError(DiscoveryError):
    """More than one module manifest in a single workspace folder."""


class MalformedManifestError(DiscoveryError):
    """A manifest exists but cannot be parsed or lacks required data."""


@dataclass
class DiscoveryResult:
    """Modules found across the workspace, plus per-folder failures."""

    modules: list[Module] = field(default_factory=list)
    errors: list[DiscoveryError] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)  # folders without a manifest

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "modules": [m.model_dump(mode="json", by_alias=True, exclude={"token"}) for m in self.modules],
            "errors": [str(e) for e in self.errors],
            "skipped": [str(p) for p in self.skipped],
        }


def _find(folder: Path, filename: str) -> list[Path]:
    """Every *filename* below *folder*, shallowest first."""
    found = [
        p for p in folder.rglob(filename)
        if p.is_file() and not _SKIPPED_DIRS.intersection(p.relative_to(folder).parts[:-1])
    ]
    return sorted(found, key=lambda p: (len(p.parts), str(p)))


def read_module_name(manifest: Path, folder: Path) -> str:
    """Module name from module-info.json, falling back to the folder name."""
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise MalformedManifestError(folder, f"invalid {MODULE_MANIFEST}: {e}") from e

    if not isinstance(data, dict):
        raise MalformedManifestError(
            folder, f"expected a JSON object in {MODULE_MANIFEST}"
        )
    name = data.get("name")
    return name if isinstance(name, str) and name else folder.name


def read_instance_url(pom: Path, folder: Path) -> str:
    """The ``simplicite.url`` property of a pom.xml.

    Maven namespaces are ignored so both namespaced and bare poms work.
    """
    try:
        root = ET.parse(pom).getroot()
    except (OSError, ET.ParseError) as e:
        raise MalformedManifestError(folder, f"invalid {POM_MANIFEST}: {e}") from e

    for element in root.iter():
        if _local_name(element.tag) != "properties":
            continue
        for prop in element:
            if _local_name(prop.tag) == INSTANCE_URL_PROPERTY and prop.text and prop.text.strip():
                return prop.text.strip()

    raise MalformedManifestError(
        folder, f"no <{INSTANCE_URL_PROPERTY}> property in {POM_MANIFEST}"
    )


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def discover_folder(folder: Path) -> Module | None:
    """Turn one workspace folder into a Module.

    Returns None when the folder holds no module manifest.

    Raises:
        DiscoveryAmbiguityError: More than one module-info.json.
        MalformedManifestError: Unreadable manifest or missing instance URL.
    """
    manifests = _find(folder, MODULE_MANIFEST)
    if not manifests:
        return None
    if len(manifests) > 1:
        raise DiscoveryAmbiguityError(
            folder, f"{len(manifests)} {MODULE_MANIFEST} files found, expected one"
        )

    name = read_module_name(manifests[0], folder)

    poms = _find(folder, POM_MANIFEST)
    if not poms:
        raise MalformedManifestError(folder, f"no {POM_MANIFEST} found")
    instance_url = read_instance_url(poms[0], folder)

    return Module(
        name=name,
        instance_url=instance_url,
        module_info=f"{name} ({folder.name})" if name != folder.name else name,
        workspace_folder_name=folder.name,
        workspace_folder_path=normalize_path(folder.as_posix()),
    )


def discover_modules(folders: list[Path]) -> DiscoveryResult:
    """Discover modules in every workspace folder.

    Args:
        folders: Absolute workspace folder paths.

    Returns:
        DiscoveryResult with modules in folder order.
    """
    result = DiscoveryResult()

    for folder in folders:
        if not folder.is_dir():
            logger.warning("Workspace folder %s does not exist — skipping", folder)
            result.skipped.append(folder)
            continue
        try:
            module = discover_folder(folder)
        except DiscoveryError as e:
            logger.warning("Discovery failed: %s", e)
            result.errors.append(e)
            continue

        if module is None:
            logger.debug("No %s in %s", MODULE_MANIFEST, folder)
            result.skipped.append(folder)
            continue

        logger.info("Found module %s → %s", module.name, module.instance_url)
        result.modules.append(module)

    return result


def scan_module_files(folder: Path, config: WorkspaceConfig) -> list[str]:
    """Supported source files in a module folder, as normalized paths."""
    files: list[str] = []
    for path in sorted(folder.rglob("*")):
        if not path.is_file():
            continue
        # Rules apply below the module folder, not to its location on disk.
        relative = "/" + path.relative_to(folder).as_posix()
        if config.is_supported_file(relative):
            files.append(normalize_path(path.as_posix()))
    return files


def folder_for_path(path: Path, folders: list[Path]) -> Path | None:
    """The deepest workspace folder containing *path*, if any."""
    resolved = path.resolve()
    best: Path | None = None
    for folder in folders:
        if resolved == folder or folder in resolved.parents:
            if best is None or len(folder.parts) > len(best.parts):
                best = folder
    return best
