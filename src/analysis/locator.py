"""Find the file of one assembly inside a downloaded package."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from errors import NoArtifactFoundError
from registry.nuget.package import (
    PlatformGroup,
    ProvenanceClass,
    is_legacy_framework_package,
    package_directory,
)
from .models import normalize_artifact_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocatedArtifact:
    path: str
    platform_tag: str
    relative_path: str
    provenance: ProvenanceClass

    @property
    def doc_path(self) -> str:
        """XML documentation file shipped next to the assembly (may not exist)."""
        return os.path.splitext(self.path)[0] + ".xml"


def locate(
    package_id: str,
    version: str,
    groups: Sequence[PlatformGroup],
    provenance: ProvenanceClass,
    artifact_name: Optional[str],
    platform_tag: Optional[str] = None,
    packages_root: str = Constants.PACKAGES_ROOT,
    legacy_policy: Callable[[str], bool] = is_legacy_framework_package,
    extensions: Tuple[str, ...] = Constants.ASSEMBLY_EXTENSIONS,
) -> LocatedArtifact:
    """Return the first file in ``groups`` whose name matches ``artifact_name``.

    Groups with a tag other than ``platform_tag`` are skipped, except for
    packages matched by ``legacy_policy``, whose tags come from a different
    folder layout.

    Raises:
        NoArtifactFoundError: nothing matched; the error lists the skipped tags.
    """
    wanted = normalize_artifact_name(package_id, artifact_name, extensions).lower()
    wanted_tag = (platform_tag or "").strip().lower() or None
    bypass_tag = legacy_policy(package_id)
    skipped: List[str] = []

    for group in groups:
        if wanted_tag and not bypass_tag and group.platform_tag.lower() != wanted_tag:
            skipped.append(group.platform_tag)
            continue
        for item in group.items:
            if os.path.basename(item).lower() == wanted:
                path = os.path.join(package_directory(packages_root, package_id, version), *item.split("/"))
                if is_debug_enabled(logger):
                    logger.debug(
                        "Artifact located",
                        extra=extra_context(
                            event="artifact_located",
                            component="locator",
                            target=package_id,
                            outcome=provenance.name,
                            platform_tag=group.platform_tag,
                            path=item,
                        ),
                    )
                return LocatedArtifact(
                    path=path,
                    platform_tag=group.platform_tag,
                    relative_path=item,
                    provenance=provenance,
                )

    raise NoArtifactFoundError(package_id, normalize_artifact_name(package_id, artifact_name, extensions), skipped)
