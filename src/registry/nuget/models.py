"""Records returned by the NuGet registry client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from versioning.models import PackageIdentity


class DownloadStatus(Enum):
    AVAILABLE = "Available"
    NOT_FOUND = "NotFound"
    CANCELLED = "Cancelled"
    ERROR = "Error"


@dataclass(frozen=True)
class PackageSearchResult:
    """One hit from the search endpoint."""
    id: str
    version: str
    description: Optional[str] = None
    total_downloads: Optional[int] = None
    tags: Tuple[str, ...] = ()
    authors: Tuple[str, ...] = ()
    verified: bool = False


@dataclass
class DownloadResult:
    """Outcome of materializing a package into the local packages root."""
    status: DownloadStatus
    identity: PackageIdentity
    package_dir: Optional[str] = None
    files: Tuple[str, ...] = field(default_factory=tuple)
