"""Error taxonomy shared by the resolution, caching and query layers.

Every error raised for an expected failure derives from ``NuscopeError`` and
carries a message fit to be returned to a tool caller verbatim.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence


class NuscopeError(Exception):
    """Base class for failures reported back to the caller as text."""


class NotFoundError(NuscopeError):
    """A package, version, artifact or type does not exist."""


class PackageNotFoundError(NotFoundError):
    def __init__(self, package_id: str):
        super().__init__(f"Package not found: {package_id}")
        self.package_id = package_id


class VersionNotFoundError(NotFoundError):
    def __init__(self, package_id: str, version: str):
        super().__init__(f"Version {version} of package {package_id} was not found")
        self.package_id = package_id
        self.version = version


class NoPlatformGroupsError(NotFoundError):
    def __init__(self, package_id: str):
        super().__init__(
            f"Package {package_id} contains no lib, ref or .NET Framework assemblies"
        )
        self.package_id = package_id


class NoArtifactFoundError(NotFoundError):
    def __init__(self, package_id: str, artifact_name: str, other_tags: Sequence[str] = ()):
        message = f"Assembly '{artifact_name}' was not found in package {package_id}"
        if other_tags:
            message += "\nAvailable target frameworks:\n" + "\n".join(f"- {t}" for t in other_tags)
        super().__init__(message)
        self.package_id = package_id
        self.artifact_name = artifact_name
        self.other_tags = list(other_tags)


class TypeNotFoundError(NotFoundError):
    def __init__(self, type_name: str):
        super().__init__(f"Type '{type_name}' was not found")
        self.type_name = type_name


class InvalidInputError(NuscopeError, ValueError):
    """Malformed caller input: version literal, wildcard, filter value."""


class InvalidVersionError(InvalidInputError):
    def __init__(self, version: str):
        super().__init__(f"Invalid version: '{version}'")
        self.version = version


class InvalidPatternError(InvalidInputError):
    pass


class UpstreamUnavailableError(NuscopeError):
    """Registry or download failure, including timeouts and non-success statuses."""


class DownloadUnavailableError(UpstreamUnavailableError):
    def __init__(self, package_id: str, version: str, status: str):
        super().__init__(f"Unable to download {package_id} {version}, status: {status}")
        self.status = status


class NotAnalyzableError(NuscopeError):
    def __init__(self, path: str, reason: Optional[str] = None):
        message = f"Analysis failed for '{path}', it may be a native library"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.path = path


class CacheMissError(NuscopeError):
    """The assembly was never analyzed in this process, or its entry expired.

    ``cached`` holds (version, artifact name, platform tag) triples that are
    cached for the package, to help the caller correct the request.
    """

    def __init__(self, package_id: str, cached: Iterable[tuple] = ()):
        self.package_id = package_id
        self.cached = list(cached)
        message = (
            f"Assembly of package {package_id} has not been analyzed or its cache entry "
            "expired, run Analyze_Assembly first"
        )
        if self.cached:
            lines = []
            for version, artifact, tag in self.cached:
                line = f"- PackageVersion: {version}, AssemblyName: {artifact}"
                if tag:
                    line += f", TargetFramework: {tag}"
                lines.append(line)
            message += "\nOnly these assemblies are cached:\n" + "\n".join(lines)
        super().__init__(message)


class ConfigError(NuscopeError):
    """A configuration file or override could not be read or applied."""
