"""Argument parsing functionality for nuscope."""

import argparse
from constants import Constants


def _add_package_options(parser, assembly=True, framework=True):
    parser.add_argument("package_id",
                        help="NuGet package id, e.g. Newtonsoft.Json",
                        type=str)
    if assembly:
        parser.add_argument("-a", "--assembly",
                            dest="ASSEMBLY",
                            help="Assembly file name (defaults to <package id>.dll)",
                            action="store", type=str)
    parser.add_argument("-v", "--version",
                        dest="VERSION",
                        help="Package version (defaults to the latest, prerelease included)",
                        action="store", type=str)
    if framework:
        parser.add_argument("-f", "--framework",
                            dest="FRAMEWORK",
                            help="Target framework moniker, e.g. netstandard2.0",
                            action="store", type=str)


def _add_query_options(parser):
    parser.add_argument("--all-access",
                        dest="PUBLIC_ONLY",
                        help="Include non-public types and members",
                        action="store_false")
    parser.add_argument("--no-comments",
                        dest="COMMENT",
                        help="Omit XML documentation comments",
                        action="store_false")


def build_parser():
    """Build the top-level parser with one subcommand per tool."""
    parser = argparse.ArgumentParser(
        prog="nuscope",
        description="nuscope - inspect the public API of NuGet packages",
        add_help=True,
    )
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--packages-root",
                        dest="PACKAGES_ROOT",
                        help=f"Local package folder (default: {Constants.PACKAGES_ROOT})",
                        action="store",
                        type=str)
    parser.add_argument("--source",
                        dest="SOURCE",
                        help=f"NuGet V3 service index URL (default: {Constants.REGISTRY_URL_NUGET_V3})",
                        action="store",
                        type=str)

    sub = parser.add_subparsers(dest="COMMAND", metavar="command")
    sub.required = True

    mcp = sub.add_parser("mcp", help="Run the MCP server (stdio, or streamable HTTP with --host/--port)")
    mcp.add_argument("--host", dest="MCP_HOST", help="Bind host for streamable HTTP", type=str)
    mcp.add_argument("--port", dest="MCP_PORT", help="Bind port for streamable HTTP", type=int)

    search = sub.add_parser("search", help="Search NuGet packages")
    search.add_argument("text", help="Search text", type=str)
    search.add_argument("-n", "--max-results", dest="MAX_RESULTS",
                        help="Maximum number of results",
                        type=int, default=Constants.SEARCH_MAX_RESULTS)

    details = sub.add_parser("details", help="Show package metadata and versions")
    details.add_argument("package_id", help="NuGet package id", type=str)

    assemblies = sub.add_parser("assemblies", help="List the assemblies of a package per target framework")
    _add_package_options(assemblies, assembly=False, framework=False)

    analyze = sub.add_parser("analyze", help="Analyze one assembly of a package")
    _add_package_options(analyze)

    analyze_all = sub.add_parser("analyze-all", help="Analyze every assembly of a package")
    _add_package_options(analyze_all, assembly=False)

    members = sub.add_parser("members", help="List the members of a type")
    _add_package_options(members)
    members.add_argument("-t", "--type", dest="TYPE_NAME", help="Type name", type=str, required=True)
    members.add_argument("--filter", dest="MEMBER_FILTER", help="Member name wildcard", type=str)
    members.add_argument("-k", "--kind", dest="MEMBER_KIND",
                         help="Member kind",
                         choices=["*", "method", "property", "field", "event", "constructor"],
                         default="*")
    members.add_argument("--inherited", dest="INHERITED",
                         help="Include members inherited from base types",
                         action="store_true")
    _add_query_options(members)

    types = sub.add_parser("types", help="Search the types of an assembly")
    _add_package_options(types)
    types.add_argument("-p", "--pattern", dest="PATTERN", help="Type name wildcard", type=str, default="*")
    types.add_argument("-k", "--kind", dest="TYPE_KIND",
                       help="Type kind",
                       choices=["*", "class", "interface", "enum", "struct", "delegate"],
                       default="*")
    types.add_argument("-n", "--max-results", dest="MAX_RESULTS",
                       help="Maximum number of results",
                       type=int, default=Constants.TYPE_SEARCH_MAX_RESULTS)
    _add_query_options(types)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
