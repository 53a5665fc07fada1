"""Runtime configuration for the nuscope CLI and MCP server.

Precedence, lowest to highest: ``Constants`` defaults, ``NUSCOPE_*``
environment variables, the ``--config`` file, then CLI flags.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

import yaml

from analysis.cache import AnalysisCache
from analysis.invoker import AnalysisService
from analysis.assembly_reader import DnfileAnalyzer
from constants import Constants
from errors import ConfigError
from registry.nuget import NuGetClient
from registry.nuget.package import is_legacy_framework_package
from tools import NuscopeTools

logger = logging.getLogger(__name__)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# Config key -> (Constants attribute, converter)
TUNABLES: Dict[str, tuple] = {
    "source": ("REGISTRY_URL_NUGET_V3", str),
    "packages_root": ("PACKAGES_ROOT", os.path.expanduser),
    "request_timeout": ("REQUEST_TIMEOUT", float),
    "download_timeout": ("DOWNLOAD_TIMEOUT", float),
    "http_retry_max": ("HTTP_RETRY_MAX", int),
    "metadata_cache_ttl_sec": ("METADATA_CACHE_TTL_SEC", int),
    "analysis_cache_ttl_sec": ("ANALYSIS_CACHE_TTL_SEC", int),
    "analysis_latest_ttl_sec": ("ANALYSIS_LATEST_TTL_SEC", int),
    "tool_timeout_sec": ("TOOL_TIMEOUT_SEC", float),
    "single_flight": ("SINGLE_FLIGHT", _to_bool),
    "query_requires_analyze": ("QUERY_REQUIRES_ANALYZE", _to_bool),
    "legacy_framework_package_prefix": ("LEGACY_FRAMEWORK_PACKAGE_PREFIX", str),
}


def _apply(key: str, value: Any, origin: str) -> None:
    attr, convert = TUNABLES[key]
    try:
        converted = convert(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {key} from {origin}: {exc}") from exc
    setattr(Constants, attr, converted)
    logger.debug("Config %s=%r (%s)", attr, converted, origin)


def apply_env_overrides(environ: Optional[Mapping[str, str]] = None) -> None:
    """Apply ``NUSCOPE_<KEY>`` environment variables; invalid values are logged and skipped."""
    env = os.environ if environ is None else environ
    for key in TUNABLES:
        name = f"{Constants.ENV_PREFIX}{key.upper()}"
        raw = env.get(name)
        if raw is None or not raw.strip():
            continue
        try:
            _apply(key, raw.strip(), name)
        except ConfigError as exc:
            logger.warning("%s", exc)


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML (or .json) config file and return its ``nuscope`` section.

    Raises:
        ConfigError: if the file is missing, unreadable or not a mapping.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.lower().endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping")
    section = data.get("nuscope", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Config {path}: 'nuscope' must be a mapping")
    return section


def apply_config_file(config: Mapping[str, Any], origin: str = "config") -> None:
    for raw_key, value in config.items():
        key = str(raw_key).strip().lower().replace("-", "_")
        if key not in TUNABLES:
            logger.warning("Ignoring unknown config key %s in %s", raw_key, origin)
            continue
        _apply(key, value, origin)


def apply_config_overrides(args) -> None:
    """Apply environment, config file and CLI flags in increasing precedence."""
    apply_env_overrides()
    config_path = getattr(args, "CONFIG", None)
    if config_path:
        apply_config_file(load_config_file(config_path), config_path)
    if getattr(args, "SOURCE", None):
        _apply("source", args.SOURCE, "--source")
    if getattr(args, "PACKAGES_ROOT", None):
        _apply("packages_root", args.PACKAGES_ROOT, "--packages-root")


def build_tools() -> NuscopeTools:
    """Wire the registry client, cache and analysis service from the current ``Constants``."""
    registry = NuGetClient(
        service_index_url=Constants.REGISTRY_URL_NUGET_V3,
        packages_root=Constants.PACKAGES_ROOT,
    )
    cache = AnalysisCache(
        primary_ttl=Constants.ANALYSIS_CACHE_TTL_SEC,
        latest_ttl=Constants.ANALYSIS_LATEST_TTL_SEC,
        package_ttl=Constants.ANALYSIS_CACHE_TTL_SEC,
    )
    service = AnalysisService(
        registry,
        DnfileAnalyzer(),
        cache=cache,
        packages_root=Constants.PACKAGES_ROOT,
        legacy_policy=is_legacy_framework_package,
        single_flight=Constants.SINGLE_FLIGHT,
    )
    return NuscopeTools(registry=registry, service=service)
