"""Narrow interface the analysis layer uses to talk to a package registry."""

from __future__ import annotations

from typing import List, Protocol

from versioning.models import PackageIdentity, PackageVersionCandidate
from registry.nuget.models import DownloadResult, PackageSearchResult


class RegistryClient(Protocol):
    """What the resolution layer needs from a registry."""

    packages_root: str

    def search(self, text: str, max_results: int = 10, include_prerelease: bool = False) -> List[PackageSearchResult]:
        ...

    def get_metadata(self, package_id: str, include_prerelease: bool = False) -> List[PackageVersionCandidate]:
        ...

    def download(self, identity: PackageIdentity) -> DownloadResult:
        ...
