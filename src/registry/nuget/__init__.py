"""NuGet registry package.

This package provides the NuGet registry collaborator:
- client.py: HTTP interactions with the NuGet V3 API (search, registration, flat container)
- package.py: extracted package layout, framework groups and the lib/ref/legacy tier policy
- models.py: search hits and download results
"""

from .client import NuGetClient  # noqa: F401
from .models import DownloadResult, DownloadStatus, PackageSearchResult  # noqa: F401
from .package import (  # noqa: F401
    PackageReader,
    PlatformGroup,
    ProvenanceClass,
    is_legacy_framework_package,
    package_directory,
    select_platform_groups,
)

__all__ = [
    "NuGetClient",
    "DownloadResult",
    "DownloadStatus",
    "PackageSearchResult",
    "PackageReader",
    "PlatformGroup",
    "ProvenanceClass",
    "is_legacy_framework_package",
    "package_directory",
    "select_platform_groups",
]
