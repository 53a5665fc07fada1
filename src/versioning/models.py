"""Data models for package versions and version selection."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class ResolutionMode(Enum):
    """How a requested version string was interpreted."""
    EXACT = "exact"
    LATEST = "latest"


@dataclass(frozen=True)
class PackageIdentity:
    """Package id plus the concrete version string published by the registry."""
    id: str
    version: str

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass(frozen=True)
class PackageDependency:
    id: str
    version_range: Optional[str] = None


@dataclass(frozen=True)
class DependencyGroup:
    """Dependencies declared for one target framework (None means every framework)."""
    target_framework: Optional[str]
    dependencies: Tuple[PackageDependency, ...] = ()


@dataclass(frozen=True)
class PackageVersionCandidate:
    """One published version of a package as reported by the registry."""
    identity: PackageIdentity
    authors: Optional[str] = None
    description: Optional[str] = None
    download_count: Optional[int] = None
    published: Optional[datetime] = None
    project_url: Optional[str] = None
    license_url: Optional[str] = None
    license_expression: Optional[str] = None
    tags: Tuple[str, ...] = ()
    dependency_groups: Tuple[DependencyGroup, ...] = field(default_factory=tuple)
    listed: bool = True

    @property
    def id(self) -> str:
        return self.identity.id

    @property
    def version(self) -> str:
        return self.identity.version


@dataclass
class SelectionResult:
    """Selection outcome kept for logging and reports."""
    candidate: PackageVersionCandidate
    mode: ResolutionMode
    requested: Optional[str]
    candidate_count: int
