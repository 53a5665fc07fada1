"""NuGet registry client: search, registration metadata and package download via the V3 API."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import urllib.parse
from datetime import datetime as dt
from typing import Any, Dict, List, Optional, Sequence, Tuple

from constants import Constants
from common.http_client import download_file, get_json
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import UpstreamUnavailableError
from versioning.cache import TTLCache
from versioning.models import (
    DependencyGroup,
    PackageDependency,
    PackageIdentity,
    PackageVersionCandidate,
)
from versioning.selector import try_parse_version
from .models import DownloadResult, DownloadStatus, PackageSearchResult
from .package import METADATA_MARKER, extract_package, package_directory, PackageReader

logger = logging.getLogger(__name__)

# Shared HTTP JSON headers for this module
HEADERS_JSON = {"Accept": "application/json"}

SEARCH_RESOURCE_TYPES = ("SearchQueryService/3.5.0", "SearchQueryService/3.0.0-rc", "SearchQueryService")
REGISTRATION_RESOURCE_TYPES = (
    "RegistrationsBaseUrl/3.6.0",
    "RegistrationsBaseUrl/3.4.0",
    "RegistrationsBaseUrl",
)
PACKAGE_BASE_RESOURCE_TYPES = ("PackageBaseAddress/3.0.0",)

# Unlisted packages carry this sentinel publish date in registration metadata.
_UNLISTED_YEAR = 1900


def _parse_published(value: Optional[str]) -> Optional[dt]:
    if not value:
        return None
    try:
        return dt.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_tuple(value: Any) -> Tuple[str, ...]:
    """Registration fields like tags/authors arrive as either a list or a delimited string."""
    if not value:
        return ()
    if isinstance(value, str):
        parts = value.replace(";", ",").split(",") if ("," in value or ";" in value) else value.split()
        return tuple(p.strip() for p in parts if p.strip())
    return tuple(str(v).strip() for v in value if str(v).strip())


def _parse_dependency_groups(entry: Dict[str, Any]) -> Tuple[DependencyGroup, ...]:
    groups = []
    for group in entry.get("dependencyGroups") or []:
        deps = tuple(
            PackageDependency(id=d.get("id", ""), version_range=d.get("range"))
            for d in (group.get("dependencies") or [])
            if d.get("id")
        )
        framework = group.get("targetFramework")
        groups.append(DependencyGroup(target_framework=framework or None, dependencies=deps))
    return tuple(groups)


def parse_catalog_entry(entry: Dict[str, Any], package_id: str) -> Optional[PackageVersionCandidate]:
    """Build a candidate from a registration ``catalogEntry``; None when it carries no version."""
    version = entry.get("version")
    if not version:
        return None
    published = _parse_published(entry.get("published"))
    listed = entry.get("listed")
    if listed is None:
        listed = not (published is not None and published.year == _UNLISTED_YEAR)
    authors = entry.get("authors")
    if isinstance(authors, list):
        authors = ", ".join(authors)
    return PackageVersionCandidate(
        identity=PackageIdentity(id=entry.get("id") or package_id, version=version),
        authors=authors or None,
        description=entry.get("description") or None,
        download_count=None,
        published=published,
        project_url=entry.get("projectUrl") or None,
        license_url=entry.get("licenseUrl") or None,
        license_expression=entry.get("licenseExpression") or None,
        tags=_as_tuple(entry.get("tags")),
        dependency_groups=_parse_dependency_groups(entry),
        listed=bool(listed),
    )


def parse_search_response(data: Dict[str, Any]) -> List[PackageSearchResult]:
    results = []
    for item in (data or {}).get("data", []) or []:
        pkg_id = item.get("id")
        if not pkg_id:
            continue
        results.append(
            PackageSearchResult(
                id=pkg_id,
                version=item.get("version", ""),
                description=item.get("description") or None,
                total_downloads=item.get("totalDownloads"),
                tags=_as_tuple(item.get("tags")),
                authors=_as_tuple(item.get("authors")),
                verified=bool(item.get("verified", False)),
            )
        )
    return results


class NuGetClient:
    """Registry collaborator backed by a NuGet V3 feed.

    Metadata responses are cached per package for
    ``Constants.METADATA_CACHE_TTL_SEC``; they change rarely and tolerably stale
    data is acceptable.
    """

    def __init__(
        self,
        service_index_url: Optional[str] = None,
        packages_root: Optional[str] = None,
        metadata_cache: Optional[TTLCache] = None,
    ):
        self.service_index_url = service_index_url or Constants.REGISTRY_URL_NUGET_V3
        self.packages_root = packages_root or Constants.PACKAGES_ROOT
        self._metadata_cache = metadata_cache or TTLCache(Constants.METADATA_CACHE_TTL_SEC)
        self._resources: Optional[List[Dict[str, Any]]] = None
        self._resources_lock = threading.Lock()

    # ----------------------------
    # Service index
    # ----------------------------

    def _service_resources(self) -> List[Dict[str, Any]]:
        with self._resources_lock:
            if self._resources is not None:
                return self._resources
            status, _, data = get_json(self.service_index_url, headers=HEADERS_JSON)
            if status != 200 or not isinstance(data, dict):
                raise UpstreamUnavailableError(
                    f"NuGet service index unavailable ({safe_url(self.service_index_url)}, status {status})"
                )
            self._resources = list(data.get("resources", []))
            return self._resources

    def _resource_url(self, types: Sequence[str]) -> str:
        resources = self._service_resources()
        for wanted in types:
            for resource in resources:
                if resource.get("@type") == wanted and resource.get("@id"):
                    return resource["@id"]
        raise UpstreamUnavailableError(f"NuGet feed does not expose a {types[0]} resource")

    # ----------------------------
    # Search
    # ----------------------------

    def search(
        self, text: str, max_results: int = Constants.SEARCH_MAX_RESULTS, include_prerelease: bool = False
    ) -> List[PackageSearchResult]:
        base = self._resource_url(SEARCH_RESOURCE_TYPES)
        query = urllib.parse.urlencode(
            {
                "q": text,
                "skip": 0,
                "take": max_results,
                "prerelease": str(include_prerelease).lower(),
                "semVerLevel": "2.0.0",
            }
        )
        status, _, data = get_json(f"{base}?{query}", headers=HEADERS_JSON)
        if status != 200 or not isinstance(data, dict):
            raise UpstreamUnavailableError(f"NuGet search failed with status {status}")
        results = parse_search_response(data)
        logger.info("NuGet search '%s' returned %d packages", text, len(results))
        return results

    def get_download_count(self, package_id: str) -> Optional[int]:
        """Total downloads of a package, looked up through the search endpoint."""
        for hit in self.search(f"packageid:{package_id}", max_results=1, include_prerelease=True):
            if hit.id.lower() == package_id.lower():
                return hit.total_downloads
        return None

    # ----------------------------
    # Registration metadata
    # ----------------------------

    def _registration_pages(self, package_id: str) -> List[Dict[str, Any]]:
        base = self._resource_url(REGISTRATION_RESOURCE_TYPES)
        encoded_id = urllib.parse.quote(package_id.lower(), safe="")
        url = f"{base}{encoded_id}/index.json"
        status, _, reg_data = get_json(url, headers=HEADERS_JSON)
        if status == 404:
            return []
        if status != 200 or not isinstance(reg_data, dict):
            raise UpstreamUnavailableError(f"NuGet registration lookup failed for {package_id} (status {status})")
        pages = []
        for page in reg_data.get("items", []):
            if "items" not in page and page.get("@id"):
                # Large packages keep their pages out of line.
                page_status, _, page_data = get_json(page["@id"], headers=HEADERS_JSON)
                if page_status != 200 or not isinstance(page_data, dict):
                    raise UpstreamUnavailableError(
                        f"NuGet registration page unavailable for {package_id} (status {page_status})"
                    )
                page = page_data
            pages.append(page)
        return pages

    def get_metadata(self, package_id: str, include_prerelease: bool = False) -> List[PackageVersionCandidate]:
        """All listed versions of ``package_id``; empty when the package does not exist."""
        cache_key = f"nuget:{package_id.lower()}:{include_prerelease}"
        cached = self._metadata_cache.get(cache_key)
        if cached is not None:
            return cached

        with Timer() as t:
            candidates: List[PackageVersionCandidate] = []
            for page in self._registration_pages(package_id):
                for page_item in page.get("items", []):
                    candidate = parse_catalog_entry(page_item.get("catalogEntry", {}), package_id)
                    if candidate is None or not candidate.listed:
                        continue
                    if not include_prerelease:
                        parsed = try_parse_version(candidate.version)
                        if parsed is None or parsed.is_prerelease:
                            continue
                    candidates.append(candidate)

        if is_debug_enabled(logger):
            logger.debug(
                "NuGet package metadata fetched",
                extra=extra_context(
                    event="package_found" if candidates else "package_missing",
                    component="client",
                    action="fetch_metadata",
                    target=package_id,
                    count=len(candidates),
                    duration_ms=t.duration_ms(),
                    package_manager="nuget",
                ),
            )
        self._metadata_cache.set(cache_key, candidates, Constants.METADATA_CACHE_TTL_SEC)
        return candidates

    # ----------------------------
    # Download
    # ----------------------------

    def _nupkg_url(self, identity: PackageIdentity) -> str:
        base = self._resource_url(PACKAGE_BASE_RESOURCE_TYPES)
        lower_id = urllib.parse.quote(identity.id.lower(), safe="")
        lower_version = urllib.parse.quote(identity.version.lower(), safe="")
        return f"{base}{lower_id}/{lower_version}/{lower_id}.{lower_version}.nupkg"

    def download(self, identity: PackageIdentity) -> DownloadResult:
        """Materialize ``identity`` under ``<packages_root>/<id lower>/<version>/``.

        A package that is already extracted (marker file present) is reused
        without touching the network.
        """
        package_dir = package_directory(self.packages_root, identity.id, identity.version)
        marker = os.path.join(package_dir, METADATA_MARKER)
        if os.path.isfile(marker):
            reader = PackageReader.from_directory(package_dir)
            return DownloadResult(
                status=DownloadStatus.AVAILABLE, identity=identity, package_dir=package_dir, files=reader.files
            )

        url = self._nupkg_url(identity)
        parent = os.path.dirname(package_dir)
        os.makedirs(parent, exist_ok=True)
        fd, nupkg_tmp = tempfile.mkstemp(dir=parent, suffix=".nupkg")
        os.close(fd)
        try:
            logger.info("Downloading %s", identity)
            status = download_file(url, nupkg_tmp, context="nuget")
            if status == 404:
                return DownloadResult(status=DownloadStatus.NOT_FOUND, identity=identity)
            if status != 200:
                logger.warning("Download of %s failed with HTTP %s", identity, status)
                return DownloadResult(status=DownloadStatus.ERROR, identity=identity)
            nupkg_name = f"{identity.id.lower()}.{identity.version.lower()}.nupkg"
            files = extract_package(
                nupkg_tmp,
                package_dir,
                archive_name=nupkg_name,
                marker_text=json.dumps({"version": 2, "source": self.service_index_url}),
            )
        finally:
            if os.path.exists(nupkg_tmp):
                os.unlink(nupkg_tmp)
        return DownloadResult(
            status=DownloadStatus.AVAILABLE, identity=identity, package_dir=package_dir, files=tuple(files)
        )
