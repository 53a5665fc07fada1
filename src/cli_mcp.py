"""MCP server for nuscope exposing the package and assembly tools via the official MCP Python SDK.

This module registers seven tools:
  - Search_NuGet_Packages
  - Get_NuGet_Package_Details
  - Get_Package_Assemblies
  - Analyze_Assembly
  - Analyze_All_Assemblies
  - Get_Type_Members
  - Search_Types

Transport defaults to stdio JSON-RPC. If --host/--port are provided via CLI,
the server runs with streamable HTTP transport instead.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Optional

from mcp.server.fastmcp import FastMCP

from constants import Constants, ToolNames
from common.logging_utils import configure_logging as _configure_logging
from tools import NuscopeTools

logger = logging.getLogger(__name__)

PACKAGE_ID_HELP = "NuGet package id, for example 'Newtonsoft.Json' or 'Microsoft.EntityFrameworkCore'"
ASSEMBLY_HELP = "Assembly file name such as 'Newtonsoft.Json.dll'; defaults to the package id"


async def run_tool(func: Callable[..., str], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> str:
    """Run a blocking tool operation on a worker thread with a deadline.

    A timed-out call leaves nothing behind in the analysis cache: results
    are only stored after an analysis completes.
    """
    limit = Constants.TOOL_TIMEOUT_SEC if timeout is None else timeout
    call = functools.partial(func, *args, **kwargs)
    try:
        return await asyncio.wait_for(asyncio.to_thread(call), timeout=limit)
    except asyncio.TimeoutError:
        name = getattr(func, "__name__", "tool")
        logger.warning("Tool %s timed out after %ss", name, limit)
        return f"Operation timed out after {limit} seconds"


def build_server(tools: NuscopeTools, server_name: str = Constants.MCP_SERVER_NAME) -> FastMCP:
    """Create the FastMCP server with every tool registered."""
    mcp = FastMCP(server_name)

    @mcp.tool(
        name=ToolNames.SEARCH_PACKAGES.value,
        description=(
            "Search NuGet for packages and return basic package information. For framework assemblies use "
            "Microsoft.NETCore.App.Ref, Microsoft.AspNetCore.App.Ref, Microsoft.WindowsDesktop.App.Ref or, "
            "for .NET Framework, Microsoft.NETFramework.ReferenceAssemblies"
        ),
    )
    async def search_nuget_packages(text: str, maxResults: int = Constants.SEARCH_MAX_RESULTS) -> str:
        return await run_tool(tools.search_packages, text, maxResults)

    @mcp.tool(
        name=ToolNames.PACKAGE_DETAILS.value,
        description="Get package metadata: latest version, authors, project URL, dependencies and version history",
    )
    async def get_nuget_package_details(packageId: str) -> str:
        return await run_tool(tools.package_details, packageId)

    @mcp.tool(
        name=ToolNames.PACKAGE_ASSEMBLIES.value,
        description="List the assembly files of a package grouped by target framework",
    )
    async def get_package_assemblies(packageId: str, version: Optional[str] = None) -> str:
        return await run_tool(tools.package_assemblies, packageId, version)

    @mcp.tool(
        name=ToolNames.ANALYZE_ASSEMBLY.value,
        description=(
            "Analyze one assembly of a package: type counts, namespaces and referenced assemblies. "
            f"packageId: {PACKAGE_ID_HELP}. assemblyName: {ASSEMBLY_HELP}"
        ),
    )
    async def analyze_assembly(
        packageId: str,
        assemblyName: Optional[str] = None,
        version: Optional[str] = None,
        targetFramework: Optional[str] = None,
    ) -> str:
        return await run_tool(tools.analyze_assembly, packageId, assemblyName, version, targetFramework)

    @mcp.tool(
        name=ToolNames.ANALYZE_ALL_ASSEMBLIES.value,
        description="Analyze every assembly of a package for the given (or every) target framework",
    )
    async def analyze_all_assemblies(
        packageId: str,
        version: Optional[str] = None,
        targetFramework: Optional[str] = None,
    ) -> str:
        return await run_tool(tools.analyze_all_assemblies, packageId, version, targetFramework)

    @mcp.tool(
        name=ToolNames.TYPE_MEMBERS.value,
        description=(
            "List the members of a type (methods, properties, fields, events, constructors) with their "
            "documentation comments. memberType: method, property, field, event, constructor or *"
        ),
    )
    async def get_type_members(  # pylint: disable=too-many-arguments
        packageId: str,
        typeName: str,
        assemblyName: Optional[str] = None,
        version: Optional[str] = None,
        targetFramework: Optional[str] = None,
        memberNameFilter: Optional[str] = None,
        memberType: str = "*",
        publicOnly: bool = True,
        comment: bool = True,
        includeBaseMembers: bool = False,
    ) -> str:
        return await run_tool(
            tools.type_members,
            packageId,
            typeName,
            assembly_name=assemblyName,
            version=version,
            target_framework=targetFramework,
            member_name_filter=memberNameFilter,
            member_type=memberType,
            public_only=publicOnly,
            comment=comment,
            include_base_members=includeBaseMembers,
        )

    @mcp.tool(
        name=ToolNames.SEARCH_TYPES.value,
        description=(
            "Search the types of an assembly by name with * wildcards, e.g. 'Newtonsoft.*' or '*Stream*'. "
            "'Stream' is the same as '*Stream*'. typeFilter: class, interface, enum, struct, delegate or *"
        ),
    )
    async def search_types(  # pylint: disable=too-many-arguments
        packageId: str,
        assemblyName: Optional[str] = None,
        namePattern: str = "*",
        version: Optional[str] = None,
        targetFramework: Optional[str] = None,
        typeFilter: str = "*",
        publicOnly: bool = True,
        maxResults: int = Constants.TYPE_SEARCH_MAX_RESULTS,
        comment: bool = True,
    ) -> str:
        return await run_tool(
            tools.search_types,
            packageId,
            assembly_name=assemblyName,
            name_pattern=namePattern,
            version=version,
            target_framework=targetFramework,
            type_filter=typeFilter,
            public_only=publicOnly,
            max_results=maxResults,
            comment=comment,
        )

    return mcp


def run_mcp_server(args, tools: Optional[NuscopeTools] = None) -> None:
    # Configure logging first
    _configure_logging()
    level_name = str(getattr(args, "LOG_LEVEL", None) or "INFO").upper()
    logging.getLogger().setLevel(getattr(logging, level_name, logging.INFO))

    mcp = build_server(tools or NuscopeTools())

    # Start server
    host = getattr(args, "MCP_HOST", None)
    port = getattr(args, "MCP_PORT", None)
    if host and port:
        mcp.settings.host = host
        mcp.settings.port = int(port)
        logger.info("Starting MCP server on http://%s:%s", host, port)
        mcp.run(transport="streamable-http")
    else:
        logger.info("Starting MCP server on stdio")
        mcp.run()  # defaults to stdio
