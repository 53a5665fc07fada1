"""Version selection over the versions a registry published for one package.

NuGet versions are semver 2.0 plus an optional fourth numeric component and
two-part forms (``1.0``). Numeric components are compared first, then the
pre-release label with semantic_version's precedence rules, so a pre-release
always sorts below its release.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Optional, Sequence, Tuple

import semantic_version

from common.logging_utils import extra_context, is_debug_enabled
from errors import InvalidVersionError, PackageNotFoundError, VersionNotFoundError
from .models import PackageVersionCandidate, ResolutionMode, SelectionResult

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:\.(?P<revision>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)


@functools.total_ordering
class NuGetVersion:
    """A parsed NuGet version literal."""

    __slots__ = ("major", "minor", "patch", "revision", "prerelease", "build", "_label")

    def __init__(self, text: str):
        m = _VERSION_RE.match(text or "")
        if not m:
            raise InvalidVersionError(text)
        self.major = int(m.group("major"))
        self.minor = int(m.group("minor") or 0)
        self.patch = int(m.group("patch") or 0)
        self.revision = int(m.group("revision") or 0)
        self.prerelease = (m.group("pre") or "").lower()
        self.build = m.group("build") or ""
        try:
            # Only the label's precedence matters here; the numeric part is compared separately.
            self._label = semantic_version.Version(
                f"0.0.0-{self.prerelease}" if self.prerelease else "0.0.0"
            )
        except ValueError as exc:
            raise InvalidVersionError(text) from exc

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _key(self) -> Tuple[int, int, int, int, semantic_version.Version]:
        return (self.major, self.minor, self.patch, self.revision, self._label)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "NuGetVersion") -> bool:
        if not isinstance(other, NuGetVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def normalized(self) -> str:
        """Normalized string: at least three parts, revision only when non-zero, no build metadata."""
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        return text

    def __str__(self) -> str:
        return self.normalized()

    def __repr__(self) -> str:
        return f"NuGetVersion({self.normalized()!r})"


def parse_version(text: str) -> NuGetVersion:
    """Parse ``text`` or raise InvalidVersionError."""
    return NuGetVersion(text)


def try_parse_version(text: str) -> Optional[NuGetVersion]:
    try:
        return NuGetVersion(text)
    except InvalidVersionError:
        return None


def sort_candidates(candidates: Sequence[PackageVersionCandidate]) -> list:
    """Return candidates with parsable versions, highest version first."""
    parsed = []
    for candidate in candidates:
        ver = try_parse_version(candidate.version)
        if ver is None:
            logger.debug("Skipping unparsable version %s of %s", candidate.version, candidate.id)
            continue
        parsed.append((ver, candidate))
    parsed.sort(key=lambda pair: pair[0], reverse=True)
    return [candidate for _, candidate in parsed]


def select_version(
    candidates: Sequence[PackageVersionCandidate], requested: Optional[str] = None
) -> PackageVersionCandidate:
    """Pick exactly one candidate.

    With no requested version the highest version wins. Otherwise the
    requested literal must parse and match one candidate exactly; there is no
    fallback to latest.

    Raises:
        PackageNotFoundError: no candidates at all.
        InvalidVersionError: ``requested`` is not a version literal.
        VersionNotFoundError: no candidate has the requested version.
    """
    return select_version_detailed(candidates, requested).candidate


def select_version_detailed(
    candidates: Sequence[PackageVersionCandidate], requested: Optional[str] = None
) -> SelectionResult:
    if not candidates:
        raise PackageNotFoundError("<unknown>")
    package_id = candidates[0].id

    if requested is None or not requested.strip():
        ordered = sort_candidates(candidates)
        if not ordered:
            raise VersionNotFoundError(package_id, "latest")
        chosen = ordered[0]
        mode = ResolutionMode.LATEST
    else:
        wanted = parse_version(requested)
        chosen = None
        for candidate in candidates:
            ver = try_parse_version(candidate.version)
            if ver is not None and ver == wanted:
                chosen = candidate
                break
        if chosen is None:
            raise VersionNotFoundError(package_id, requested)
        mode = ResolutionMode.EXACT

    if is_debug_enabled(logger):
        logger.debug(
            "Version selected",
            extra=extra_context(
                event="decision",
                component="version_selector",
                action="select",
                target=package_id,
                outcome=chosen.version,
                mode=mode.value,
                candidates=len(candidates),
            ),
        )
    return SelectionResult(
        candidate=chosen, mode=mode, requested=requested, candidate_count=len(candidates)
    )
