"""Resolve a package assembly and analyze it at most once per cache key."""

from __future__ import annotations

import contextlib
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from errors import (
    CacheMissError,
    DownloadUnavailableError,
    NoArtifactFoundError,
    NotAnalyzableError,
    PackageNotFoundError,
)
from registry.base import RegistryClient
from registry.nuget.models import DownloadStatus
from registry.nuget.package import (
    PackageReader,
    PlatformGroup,
    ProvenanceClass,
    is_legacy_framework_package,
    select_platform_groups,
)
from versioning.models import PackageIdentity, PackageVersionCandidate
from versioning.selector import select_version
from .cache import AnalysisCache
from .locator import LocatedArtifact, locate
from .models import AnalysisResult, AssemblyAnalyzer, ResolvedArtifactKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageArtifacts:
    """Platform groups of one resolved package version."""
    candidate: PackageVersionCandidate
    groups: List[PlatformGroup]
    provenance: ProvenanceClass


@dataclass
class AnalyzeAllOutcome:
    candidate: PackageVersionCandidate
    provenance: ProvenanceClass
    results: List[AnalysisResult] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (relative path, message)
    skipped_tags: List[str] = field(default_factory=list)


class _Flight:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


def _is_requested(version: Optional[str]) -> bool:
    return bool(version and version.strip())


class AnalysisService:
    """Owns the process-wide analysis cache and the resolve/download/analyze flow."""

    def __init__(
        self,
        registry: RegistryClient,
        analyzer: AssemblyAnalyzer,
        cache: Optional[AnalysisCache] = None,
        packages_root: Optional[str] = None,
        legacy_policy: Callable[[str], bool] = is_legacy_framework_package,
        single_flight: bool = Constants.SINGLE_FLIGHT,
    ):
        self.registry = registry
        self.analyzer = analyzer
        self.cache = cache or AnalysisCache()
        self.packages_root = packages_root or getattr(registry, "packages_root", None) or Constants.PACKAGES_ROOT
        self.legacy_policy = legacy_policy
        self.single_flight = single_flight
        self._flight_locks: Dict[ResolvedArtifactKey, _Flight] = {}
        self._flight_guard = threading.Lock()

    # ----------------------------
    # Resolution
    # ----------------------------

    def resolve_candidate(self, package_id: str, version: Optional[str]) -> PackageVersionCandidate:
        candidates = self.registry.get_metadata(package_id, include_prerelease=True)
        if not candidates:
            raise PackageNotFoundError(package_id)
        return select_version(candidates, version)

    def _download(self, candidate: PackageVersionCandidate) -> PackageReader:
        result = self.registry.download(PackageIdentity(id=candidate.id, version=candidate.version))
        if result.status is not DownloadStatus.AVAILABLE:
            raise DownloadUnavailableError(candidate.id, candidate.version, result.status.name)
        return PackageReader(result.files)

    def list_artifacts(self, package_id: str, version: Optional[str] = None) -> PackageArtifacts:
        """Download the selected version and return its platform groups."""
        candidate = self.resolve_candidate(package_id, version)
        reader = self._download(candidate)
        groups, provenance = select_platform_groups(reader, candidate.id, self.legacy_policy)
        return PackageArtifacts(candidate=candidate, groups=groups, provenance=provenance)

    # ----------------------------
    # Analysis
    # ----------------------------

    @contextlib.contextmanager
    def _single_flight(self, key: ResolvedArtifactKey) -> Iterator[None]:
        """Serialize analyses of one key; the entry is dropped when its last holder leaves."""
        with self._flight_guard:
            flight = self._flight_locks.get(key)
            if flight is None:
                flight = self._flight_locks[key] = _Flight()
            flight.holders += 1
        try:
            with flight.lock:
                yield
        finally:
            with self._flight_guard:
                flight.holders -= 1
                if flight.holders == 0:
                    del self._flight_locks[key]

    def _lookup(
        self,
        package_id: str,
        artifact_name: Optional[str],
        version: Optional[str],
        platform_tag: Optional[str],
        extensions: Tuple[str, ...],
    ) -> Tuple[PackageVersionCandidate, ResolvedArtifactKey, Optional[AnalysisResult]]:
        """Resolve the version and look up the cache.

        The returned key carries the resolved version. Without a requested
        version the "latest" alias is tried first.
        """
        candidate = self.resolve_candidate(package_id, version)
        key = ResolvedArtifactKey.create(package_id, candidate.version, artifact_name, platform_tag, extensions)
        return candidate, key, self._cached(key, version)

    def _cached(self, key: ResolvedArtifactKey, version: Optional[str]) -> Optional[AnalysisResult]:
        if _is_requested(version):
            return self.cache.get(key)
        # The resolved version may have been analyzed explicitly before.
        return self.cache.get(key.as_latest()) or self.cache.get(key)

    def resolve_and_analyze(
        self,
        package_id: str,
        artifact_name: Optional[str] = None,
        version: Optional[str] = None,
        platform_tag: Optional[str] = None,
        extensions: Tuple[str, ...] = Constants.ASSEMBLY_EXTENSIONS,
    ) -> AnalysisResult:
        """Return the analysis of one assembly, analyzing it only on a cache miss.

        Raises:
            PackageNotFoundError, InvalidVersionError, VersionNotFoundError,
            DownloadUnavailableError, NoPlatformGroupsError,
            NoArtifactFoundError, NotAnalyzableError
        """
        candidate, key, cached = self._lookup(package_id, artifact_name, version, platform_tag, extensions)
        if cached is not None:
            logger.debug("Analysis cache hit for %s %s", candidate.id, key.artifact_name)
            return cached

        if not self.single_flight:
            return self._analyze_and_store(candidate, key, artifact_name, version, platform_tag, extensions)
        with self._single_flight(key):
            cached = self._cached(key, version)
            if cached is not None:
                return cached
            return self._analyze_and_store(candidate, key, artifact_name, version, platform_tag, extensions)

    def _analyze_and_store(
        self,
        candidate: PackageVersionCandidate,
        key: ResolvedArtifactKey,
        artifact_name: Optional[str],
        version: Optional[str],
        platform_tag: Optional[str],
        extensions: Tuple[str, ...],
    ) -> AnalysisResult:
        reader = self._download(candidate)
        groups, provenance = select_platform_groups(reader, candidate.id, self.legacy_policy)
        located = locate(
            candidate.id,
            candidate.version,
            groups,
            provenance,
            artifact_name,
            platform_tag,
            packages_root=self.packages_root,
            legacy_policy=self.legacy_policy,
            extensions=extensions,
        )
        result = self._analyze(candidate, located)
        self.cache.put(key, result, is_latest_alias=not _is_requested(version))
        return result

    def _analyze(self, candidate: PackageVersionCandidate, located: LocatedArtifact) -> AnalysisResult:
        doc_path = located.doc_path if os.path.isfile(located.doc_path) else None
        with Timer() as t:
            assembly = self.analyzer.analyze(located.path, doc_path)
        if assembly is None:
            raise NotAnalyzableError(located.path)
        result = AnalysisResult.build(
            package_id=candidate.id,
            package_version=candidate.version,
            platform_tag=located.platform_tag,
            artifact_name=os.path.basename(located.path),
            artifact_path=located.path,
            assembly=assembly,
            provenance=located.provenance.name,
        )
        logger.info(
            "Analyzed %s from %s %s (%s, %d types)",
            result.artifact_name,
            candidate.id,
            candidate.version,
            located.platform_tag,
            result.all_types_count,
            extra=extra_context(
                event="analysis_complete",
                component="analyzer_invoker",
                target=candidate.id,
                duration_ms=t.duration_ms(),
            ),
        )
        return result

    def require_cached(
        self,
        package_id: str,
        artifact_name: Optional[str] = None,
        version: Optional[str] = None,
        platform_tag: Optional[str] = None,
        extensions: Tuple[str, ...] = Constants.ASSEMBLY_EXTENSIONS,
    ) -> AnalysisResult:
        """Like ``resolve_and_analyze`` but never analyzes.

        Raises:
            CacheMissError: nothing is cached under the key; lists what is cached for the package.
        """
        _, key, cached = self._lookup(package_id, artifact_name, version, platform_tag, extensions)
        if cached is None:
            raise CacheMissError(package_id, (r.identity for r in self.cache.list_by_package(package_id)))
        return cached

    def get_analysis(
        self,
        package_id: str,
        artifact_name: Optional[str] = None,
        version: Optional[str] = None,
        platform_tag: Optional[str] = None,
        extensions: Tuple[str, ...] = Constants.QUERY_ASSEMBLY_EXTENSIONS,
    ) -> AnalysisResult:
        """Entry point for the query tools."""
        if Constants.QUERY_REQUIRES_ANALYZE:
            return self.require_cached(package_id, artifact_name, version, platform_tag, extensions)
        return self.resolve_and_analyze(package_id, artifact_name, version, platform_tag, extensions)

    def analyze_all(
        self,
        package_id: str,
        version: Optional[str] = None,
        platform_tag: Optional[str] = None,
    ) -> AnalyzeAllOutcome:
        """Analyze every assembly of every group matching ``platform_tag`` (all groups when absent)."""
        artifacts = self.list_artifacts(package_id, version)
        outcome = AnalyzeAllOutcome(candidate=artifacts.candidate, provenance=artifacts.provenance)
        wanted_tag = (platform_tag or "").strip().lower() or None
        bypass_tag = self.legacy_policy(package_id)
        for group in artifacts.groups:
            if wanted_tag and not bypass_tag and group.platform_tag.lower() != wanted_tag:
                outcome.skipped_tags.append(group.platform_tag)
                continue
            for item in group.assemblies():
                name = os.path.basename(item)
                try:
                    outcome.results.append(
                        self.resolve_and_analyze(package_id, name, version, group.platform_tag)
                    )
                except (NotAnalyzableError, NoArtifactFoundError) as exc:
                    logger.warning("Skipping %s: %s", item, exc)
                    outcome.failures.append((item, str(exc)))
        if is_debug_enabled(logger):
            logger.debug(
                "Analyzed all assemblies",
                extra=extra_context(
                    event="analyze_all",
                    component="analyzer_invoker",
                    target=package_id,
                    count=len(outcome.results),
                    failures=len(outcome.failures),
                ),
            )
        return outcome

