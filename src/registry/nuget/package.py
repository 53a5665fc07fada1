"""Reading a downloaded package: file listing and per-framework groups.

A package's assemblies live under ``lib/<tfm>/`` (runtime), ``ref/<tfm>/``
(compile-time reference assemblies) or, for the .NET Framework reference
assembly packages, ``build/.NETFramework/<version>/``.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import threading
import zipfile
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from errors import NoPlatformGroupsError

logger = logging.getLogger(__name__)

LIB_FOLDER = "lib"
REF_FOLDER = "ref"
LEGACY_FRAMEWORK_FOLDER = "build/.NETFramework"

# Archive entries that belong to the OPC container, not the package content.
_PACKAGING_ENTRIES = ("[Content_Types].xml", "_rels/", "package/")

# Its presence marks a completely extracted package.
METADATA_MARKER = ".nupkg.metadata"

_SWAP_LOCK = threading.Lock()

_LONG_FRAMEWORK_NAMES = {
    ".netframework": "net",
    ".netstandard": "netstandard",
    ".netcoreapp": "netcoreapp",
    ".netportable": "portable",
    "netframework": "net",
}


class ProvenanceClass(Enum):
    """Which folder tier an assembly was taken from."""
    NORMAL = "lib"
    REFERENCE_ONLY = "ref"
    LEGACY_FRAMEWORK = "build/.NETFramework"


@dataclass(frozen=True)
class PlatformGroup:
    """Package-relative files published for one target framework."""
    platform_tag: str
    items: Tuple[str, ...]

    def assemblies(self, extensions: Sequence[str] = Constants.ASSEMBLY_EXTENSIONS) -> List[str]:
        exts = tuple(e.lower() for e in extensions)
        return [item for item in self.items if item.lower().endswith(exts)]


def package_directory(root: str, package_id: str, version: str) -> str:
    """Directory a package version is extracted to: ``root/<id lower>/<version lower>``."""
    return os.path.join(root, package_id.lower(), version.lower())


def short_folder_name(folder: str, legacy: bool = False) -> str:
    """Normalize a framework folder name to its short form (``.NETStandard2.0`` -> ``netstandard2.0``)."""
    name = folder.strip().lower()
    if legacy:
        # build/.NETFramework/v4.7.2 -> net472
        digits = name.lstrip("v").replace(".", "")
        return f"net{digits}" if digits.isdigit() else name
    for long_name, short_name in _LONG_FRAMEWORK_NAMES.items():
        if name.startswith(long_name):
            rest = name[len(long_name):].lstrip(",").replace("version=v", "")
            if short_name == "net":
                rest = rest.replace(".", "")
            return f"{short_name}{rest}"
    return name


_TAG_RE = re.compile(r"^([a-z]+)([\d\.]*)")


def _framework_sort_key(tag: str) -> Tuple[str, Tuple[int, ...], str]:
    m = _TAG_RE.match(tag)
    if not m:
        return (tag, (), tag)
    family, version_text = m.group(1), m.group(2)
    if "." in version_text:
        version = tuple(int(p) for p in version_text.split(".") if p.isdigit())
    else:
        version = tuple(int(c) for c in version_text)
    if family == "net" and version and version[0] >= 5:
        family = "netcoreapp"
    return (family, version, tag)


class PackageReader:
    """Groups the files of an extracted package by target framework."""

    def __init__(self, files: Iterable[str]):
        self._files = tuple(sorted(f.replace("\\", "/") for f in files))

    @classmethod
    def from_directory(cls, package_dir: str) -> "PackageReader":
        files = []
        for dirpath, _, filenames in os.walk(package_dir):
            for filename in filenames:
                rel = os.path.relpath(os.path.join(dirpath, filename), package_dir)
                files.append(rel.replace(os.sep, "/"))
        return cls(files)

    @property
    def files(self) -> Tuple[str, ...]:
        return self._files

    def get_items(self, folder: str) -> List[PlatformGroup]:
        """Files under ``folder`` grouped by the framework folder that follows it."""
        prefix = folder.rstrip("/").lower() + "/"
        legacy = prefix == LEGACY_FRAMEWORK_FOLDER.lower() + "/"
        groups = {}
        for path in self._files:
            if not path.lower().startswith(prefix):
                continue
            rest = path[len(prefix):]
            if "/" in rest:
                tag = short_folder_name(rest.split("/", 1)[0], legacy=legacy)
            else:
                # Files directly under lib/ target the unversioned .NET Framework.
                tag = "net"
            groups.setdefault(tag, []).append(path)
        ordered = sorted(groups, key=_framework_sort_key)
        return [PlatformGroup(platform_tag=tag, items=tuple(groups[tag])) for tag in ordered]

    def get_lib_items(self) -> List[PlatformGroup]:
        return self.get_items(LIB_FOLDER)

    def get_ref_items(self) -> List[PlatformGroup]:
        return self.get_items(REF_FOLDER)


def is_legacy_framework_package(package_id: str) -> bool:
    """Default policy: the .NET Framework reference assembly package family."""
    return package_id.lower().startswith(Constants.LEGACY_FRAMEWORK_PACKAGE_PREFIX.lower())


def select_platform_groups(
    reader: PackageReader,
    package_id: str,
    legacy_policy: Callable[[str], bool] = is_legacy_framework_package,
) -> Tuple[List[PlatformGroup], ProvenanceClass]:
    """Pick the groups to search: lib, else ref, else the legacy framework layout.

    Raises:
        NoPlatformGroupsError: the package has no assembly groups in any tier.
    """
    groups = reader.get_lib_items()
    provenance = ProvenanceClass.NORMAL
    if not groups:
        groups = reader.get_ref_items()
        provenance = ProvenanceClass.REFERENCE_ONLY
    if not groups and legacy_policy(package_id):
        groups = reader.get_items(LEGACY_FRAMEWORK_FOLDER)
        provenance = ProvenanceClass.LEGACY_FRAMEWORK
    if not groups:
        raise NoPlatformGroupsError(package_id)
    if is_debug_enabled(logger):
        logger.debug(
            "Platform groups selected",
            extra=extra_context(
                event="decision",
                component="package_reader",
                action="select_platform_groups",
                target=package_id,
                outcome=provenance.value,
                count=len(groups),
            ),
        )
    return groups, provenance


def _completed_files(destination: str) -> Optional[List[str]]:
    if not os.path.isfile(os.path.join(destination, METADATA_MARKER)):
        return None
    return [f for f in PackageReader.from_directory(destination).files if f != METADATA_MARKER]


def extract_package(
    nupkg_path: str,
    destination: str,
    archive_name: Optional[str] = None,
    marker_text: Optional[str] = None,
) -> List[str]:
    """Extract a .nupkg into ``destination`` and return the extracted relative paths.

    Extraction happens in a sibling temporary directory which is renamed into
    place, so readers never observe a half-extracted package. When
    ``marker_text`` is given it is written to ``METADATA_MARKER`` inside the
    staging directory, so a package is complete exactly when its marker
    exists. A completed ``destination`` is never replaced: a concurrent
    extraction that loses the race discards its copy and reuses the winner's.
    """
    parent = os.path.dirname(destination)
    os.makedirs(parent, exist_ok=True)
    staging = os.path.abspath(tempfile.mkdtemp(dir=parent, prefix=".extract-"))
    extracted: List[str] = []
    try:
        with zipfile.ZipFile(nupkg_path) as archive:
            for info in archive.infolist():
                name = info.filename
                if info.is_dir() or name.startswith(_PACKAGING_ENTRIES) or name.endswith(".psmdcp"):
                    continue
                target = os.path.normpath(os.path.join(staging, name))
                if not target.startswith(staging + os.sep):
                    logger.warning("Skipping archive entry outside package root: %s", name)
                    continue
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with archive.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                extracted.append(name.replace("\\", "/"))
        shutil.copy2(nupkg_path, os.path.join(staging, archive_name or os.path.basename(nupkg_path)))
        if marker_text is not None:
            with open(os.path.join(staging, METADATA_MARKER), "w", encoding="utf-8") as fh:
                fh.write(marker_text)

        with _SWAP_LOCK:
            existing = _completed_files(destination)
            if existing is not None:
                logger.debug("Reusing package already extracted at %s", destination)
                shutil.rmtree(staging, ignore_errors=True)
                return existing
            if os.path.isdir(destination):
                # Left behind by an interrupted extraction.
                shutil.rmtree(destination)
            try:
                os.replace(staging, destination)
            except OSError:
                # Another process completed the same package first.
                existing = _completed_files(destination)
                if existing is None:
                    raise
                shutil.rmtree(staging, ignore_errors=True)
                return existing
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    return extracted
