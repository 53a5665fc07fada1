"""The seven tool operations shared by the MCP server and the command line.

Every operation returns text. Expected failures (``NuscopeError``) are
returned as their message; anything else is logged and reported generically
so a single bad call never takes the server down.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Optional

import mcp_schemas
from analysis.assembly_reader import DnfileAnalyzer
from analysis.invoker import AnalysisService
from analysis.models import AssemblyAnalyzer
from analysis.query import find_type, list_members, list_types
from common.logging_utils import extra_context, Timer
from constants import Constants, ToolNames
from errors import NuscopeError, PackageNotFoundError
from mcp_validate import validate_input
from registry.nuget import NuGetClient
import reports

logger = logging.getLogger(__name__)


def tool_boundary(tool: ToolNames) -> Callable:
    """Turn every outcome of a tool operation into text."""

    def decorator(func: Callable[..., str]) -> Callable[..., str]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> str:
            with Timer() as t:
                try:
                    text = func(*args, **kwargs)
                    outcome = "ok"
                except NuscopeError as exc:
                    text = str(exc)
                    outcome = type(exc).__name__
                except Exception:  # pylint: disable=broad-exception-caught
                    logger.exception("Unexpected error in %s", tool.value)
                    text = f"Unexpected error while running {tool.value}, see the server log for details"
                    outcome = "unexpected_error"
            logger.info(
                "Tool %s finished: %s",
                tool.value,
                outcome,
                extra=extra_context(event="tool_call", component="tools", action=tool.value,
                                    outcome=outcome, duration_ms=t.duration_ms()),
            )
            return text

        return wrapper

    return decorator


class NuscopeTools:
    """Tool operations bound to one registry client and one analysis service."""

    def __init__(
        self,
        registry: Optional[NuGetClient] = None,
        service: Optional[AnalysisService] = None,
        analyzer: Optional[AssemblyAnalyzer] = None,
    ):
        self.registry = registry or NuGetClient()
        self.service = service or AnalysisService(self.registry, analyzer or DnfileAnalyzer())

    @tool_boundary(ToolNames.SEARCH_PACKAGES)
    def search_packages(self, text: str, max_results: int = Constants.SEARCH_MAX_RESULTS) -> str:
        validate_input(mcp_schemas.SEARCH_PACKAGES_INPUT, {"text": text, "maxResults": max_results})
        return reports.render_search(self.registry.search(text, max_results))

    @tool_boundary(ToolNames.PACKAGE_DETAILS)
    def package_details(self, package_id: str) -> str:
        validate_input(mcp_schemas.PACKAGE_DETAILS_INPUT, {"packageId": package_id})
        candidates = self.registry.get_metadata(package_id, include_prerelease=False)
        if not candidates:
            raise PackageNotFoundError(package_id)
        download_count = self.registry.get_download_count(package_id)
        return reports.render_package_details(package_id, candidates, download_count)

    @tool_boundary(ToolNames.PACKAGE_ASSEMBLIES)
    def package_assemblies(self, package_id: str, version: Optional[str] = None) -> str:
        validate_input(mcp_schemas.PACKAGE_ASSEMBLIES_INPUT, {"packageId": package_id, "version": version})
        return reports.render_package_assemblies(self.service.list_artifacts(package_id, version))

    @tool_boundary(ToolNames.ANALYZE_ASSEMBLY)
    def analyze_assembly(
        self,
        package_id: str,
        assembly_name: Optional[str] = None,
        version: Optional[str] = None,
        target_framework: Optional[str] = None,
    ) -> str:
        validate_input(
            mcp_schemas.ANALYZE_ASSEMBLY_INPUT,
            {"packageId": package_id, "assemblyName": assembly_name, "version": version,
             "targetFramework": target_framework},
        )
        result = self.service.resolve_and_analyze(package_id, assembly_name, version, target_framework)
        return reports.render_analysis(result)

    @tool_boundary(ToolNames.ANALYZE_ALL_ASSEMBLIES)
    def analyze_all_assemblies(
        self,
        package_id: str,
        version: Optional[str] = None,
        target_framework: Optional[str] = None,
    ) -> str:
        validate_input(
            mcp_schemas.ANALYZE_ALL_ASSEMBLIES_INPUT,
            {"packageId": package_id, "version": version, "targetFramework": target_framework},
        )
        return reports.render_analyze_all(self.service.analyze_all(package_id, version, target_framework))

    @tool_boundary(ToolNames.TYPE_MEMBERS)
    def type_members(  # pylint: disable=too-many-arguments
        self,
        package_id: str,
        type_name: str,
        assembly_name: Optional[str] = None,
        version: Optional[str] = None,
        target_framework: Optional[str] = None,
        member_name_filter: Optional[str] = None,
        member_type: str = "*",
        public_only: bool = True,
        comment: bool = True,
        include_base_members: bool = False,
    ) -> str:
        validate_input(
            mcp_schemas.TYPE_MEMBERS_INPUT,
            {
                "packageId": package_id,
                "assemblyName": assembly_name,
                "typeName": type_name,
                "version": version,
                "targetFramework": target_framework,
                "memberNameFilter": member_name_filter,
                "memberType": member_type,
                "publicOnly": public_only,
                "comment": comment,
                "includeBaseMembers": include_base_members,
            },
        )
        result = self.service.get_analysis(package_id, assembly_name, version, target_framework)
        node = find_type(result, type_name)
        listing = list_members(
            node,
            include_inherited=include_base_members,
            public_only=public_only,
            name_pattern=member_name_filter,
            kind=member_type,
        )
        return reports.render_type_members(result, type_name, node, listing, include_base_members, comment)

    @tool_boundary(ToolNames.SEARCH_TYPES)
    def search_types(  # pylint: disable=too-many-arguments
        self,
        package_id: str,
        assembly_name: Optional[str] = None,
        name_pattern: str = "*",
        version: Optional[str] = None,
        target_framework: Optional[str] = None,
        type_filter: str = "*",
        public_only: bool = True,
        max_results: int = Constants.TYPE_SEARCH_MAX_RESULTS,
        comment: bool = True,
    ) -> str:
        validate_input(
            mcp_schemas.SEARCH_TYPES_INPUT,
            {
                "packageId": package_id,
                "assemblyName": assembly_name,
                "namePattern": name_pattern,
                "version": version,
                "targetFramework": target_framework,
                "typeFilter": type_filter,
                "publicOnly": public_only,
                "maxResults": max_results,
                "comment": comment,
            },
        )
        result = self.service.get_analysis(package_id, assembly_name, version, target_framework)
        listing = list_types(result, name_pattern, type_filter, public_only, max_results)
        return reports.render_type_search(result, name_pattern, listing, comment)
