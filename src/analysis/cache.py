"""In-process TTL cache of analysis results.

Three maps share one lock:
- primary entries keyed by ``ResolvedArtifactKey``
- "latest" alias entries, which expire sooner than the primary entry
- a per-package snapshot listing every result cached for that package
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from .models import AnalysisResult, ResolvedArtifactKey

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A single cache entry with an absolute expiry."""

    value: T
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class AnalysisCache:
    """Cache of ``AnalysisResult`` objects shared by all tool calls.

    Reads never wait on an analysis: results are only stored once complete.
    """

    def __init__(
        self,
        primary_ttl: int = Constants.ANALYSIS_CACHE_TTL_SEC,
        latest_ttl: int = Constants.ANALYSIS_LATEST_TTL_SEC,
        package_ttl: int = Constants.ANALYSIS_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._primary_ttl = primary_ttl
        self._latest_ttl = latest_ttl
        self._package_ttl = package_ttl
        self._clock = clock
        self._entries: Dict[ResolvedArtifactKey, CacheEntry[AnalysisResult]] = {}
        self._aliases: Dict[ResolvedArtifactKey, CacheEntry[AnalysisResult]] = {}
        self._packages: Dict[str, CacheEntry[Tuple[AnalysisResult, ...]]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _lookup(table: Dict, key, now: float):
        entry = table.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del table[key]
            return None
        return entry.value

    def get(self, key: ResolvedArtifactKey) -> Optional[AnalysisResult]:
        """Return the cached result for ``key``, or None when absent or expired."""
        table = self._aliases if key.version == Constants.LATEST else self._entries
        with self._lock:
            return self._lookup(table, key, self._clock())

    def put(self, key: ResolvedArtifactKey, result: AnalysisResult, is_latest_alias: bool = False) -> None:
        """Store ``result`` under ``key`` (a resolved version) and, if asked, under its "latest" alias."""
        with self._lock:
            now = self._clock()
            self._entries[key] = CacheEntry(result, now + self._primary_ttl)
            if is_latest_alias:
                self._aliases[key.as_latest()] = CacheEntry(result, now + self._latest_ttl)

            package_key = key.package_id
            previous = self._lookup(self._packages, package_key, now) or ()
            members = [r for r in previous if r.identity != result.identity]
            members.append(result)
            self._packages[package_key] = CacheEntry(tuple(members), now + self._package_ttl)

        if is_debug_enabled(logger):
            logger.debug(
                "Analysis result cached",
                extra=extra_context(
                    event="cache_put",
                    component="analysis_cache",
                    target=f"{result.package_id} {result.package_version} {result.artifact_name}",
                    outcome="latest_alias" if is_latest_alias else "primary",
                ),
            )

    def list_by_package(self, package_id: str) -> List[AnalysisResult]:
        """Results cached for ``package_id`` in insertion order."""
        with self._lock:
            snapshot = self._lookup(self._packages, package_id.strip().lower(), self._clock())
        return list(snapshot or ())

    def stats(self) -> Dict[str, int]:
        with self._lock:
            now = self._clock()
            return {
                "entries": sum(1 for e in self._entries.values() if not e.is_expired(now)),
                "latest_aliases": sum(1 for e in self._aliases.values() if not e.is_expired(now)),
                "packages": sum(1 for e in self._packages.values() if not e.is_expired(now)),
            }
