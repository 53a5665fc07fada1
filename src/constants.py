"""Constants used in the project."""

import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    TOOL_ERROR = 3


class ToolNames(Enum):
    """Names of the tools registered on the MCP server.

    Args:
        Enum (string): Tool names as exposed to MCP clients.
    """

    SEARCH_PACKAGES = "Search_NuGet_Packages"
    PACKAGE_DETAILS = "Get_NuGet_Package_Details"
    PACKAGE_ASSEMBLIES = "Get_Package_Assemblies"
    ANALYZE_ASSEMBLY = "Analyze_Assembly"
    ANALYZE_ALL_ASSEMBLIES = "Analyze_All_Assemblies"
    TYPE_MEMBERS = "Get_Type_Members"
    SEARCH_TYPES = "Search_Types"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NUGET_V3 = "https://api.nuget.org/v3/index.json"
    LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    DOWNLOAD_TIMEOUT = 120
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    USER_AGENT = "nuscope/0.1"

    # Local package layout: <root>/<id lower>/<version>/<relative path>
    PACKAGES_ROOT = os.path.join(os.path.expanduser("~"), ".nuget", "packages")

    # Cache lifetimes (seconds)
    METADATA_CACHE_TTL_SEC = 600
    ANALYSIS_CACHE_TTL_SEC = 1800
    ANALYSIS_LATEST_TTL_SEC = 600

    LATEST = "latest"
    ASSEMBLY_EXTENSIONS = (".dll",)
    QUERY_ASSEMBLY_EXTENSIONS = (".dll", ".exe")
    LEGACY_FRAMEWORK_PACKAGE_PREFIX = "Microsoft.NETFramework.ReferenceAssemblies"
    REFERENCE_ASSEMBLY_ATTRIBUTE = "System.Runtime.CompilerServices.ReferenceAssemblyAttribute"

    # Report limits
    NAMESPACE_LIMIT = 50
    REFERENCE_LIMIT = 50
    VERSION_LIMIT = 20
    SEARCH_MAX_RESULTS = 10
    TYPE_SEARCH_MAX_RESULTS = 50

    TOOL_TIMEOUT_SEC = 300
    SINGLE_FLIGHT = True
    QUERY_REQUIRES_ANALYZE = False

    MCP_SERVER_NAME = "nuscope-mcp"
    ENV_PREFIX = "NUSCOPE_"
