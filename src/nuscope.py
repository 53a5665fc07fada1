"""nuscope: inspect the public API surface of NuGet packages.

Entry point for both the MCP server (``nuscope mcp``) and one-shot CLI
queries that print the same text the MCP tools return.
"""

import logging
import os
import sys

from args import parse_args
from cli_config import apply_config_overrides, build_tools
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from errors import ConfigError, NuscopeError, UpstreamUnavailableError
from tools import NuscopeTools

logger = logging.getLogger(__name__)


def _call(method, tools: NuscopeTools, *args, **kwargs) -> str:
    # Bypass the text boundary so failures map to exit codes.
    return method.__wrapped__(tools, *args, **kwargs)


def run_command(args, tools: NuscopeTools) -> str:
    """Dispatch one CLI subcommand and return its report text."""
    command = args.COMMAND
    if command == "search":
        return _call(NuscopeTools.search_packages, tools, args.text, args.MAX_RESULTS)
    if command == "details":
        return _call(NuscopeTools.package_details, tools, args.package_id)
    if command == "assemblies":
        return _call(NuscopeTools.package_assemblies, tools, args.package_id, args.VERSION)
    if command == "analyze":
        return _call(NuscopeTools.analyze_assembly, tools, args.package_id, args.ASSEMBLY, args.VERSION,
                     args.FRAMEWORK)
    if command == "analyze-all":
        return _call(NuscopeTools.analyze_all_assemblies, tools, args.package_id, args.VERSION, args.FRAMEWORK)
    if command in ("members", "types"):
        # A CLI process starts with an empty cache.
        tools.service.resolve_and_analyze(args.package_id, args.ASSEMBLY, args.VERSION, args.FRAMEWORK,
                                          Constants.QUERY_ASSEMBLY_EXTENSIONS)
    if command == "members":
        return _call(
            NuscopeTools.type_members, tools, args.package_id, args.TYPE_NAME,
            assembly_name=args.ASSEMBLY, version=args.VERSION, target_framework=args.FRAMEWORK,
            member_name_filter=args.MEMBER_FILTER, member_type=args.MEMBER_KIND,
            public_only=args.PUBLIC_ONLY, comment=args.COMMENT, include_base_members=args.INHERITED,
        )
    if command == "types":
        return _call(
            NuscopeTools.search_types, tools, args.package_id,
            assembly_name=args.ASSEMBLY, name_pattern=args.PATTERN, version=args.VERSION,
            target_framework=args.FRAMEWORK, type_filter=args.TYPE_KIND, public_only=args.PUBLIC_ONLY,
            max_results=args.MAX_RESULTS, comment=args.COMMENT,
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    # Honor CLI --loglevel by passing it to centralized logger via env
    if getattr(args, "LOG_LEVEL", None):
        os.environ[f"{Constants.ENV_PREFIX}LOG_LEVEL"] = str(args.LOG_LEVEL).upper()
    configure_logging(getattr(args, "LOG_FILE", None))

    try:
        apply_config_overrides(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main", target=args.COMMAND),
        )

    tools = build_tools()
    if args.COMMAND == "mcp":
        # Imported lazily so one-shot commands do not pay for the MCP SDK import.
        from cli_mcp import run_mcp_server  # pylint: disable=import-outside-toplevel

        run_mcp_server(args, tools)
        sys.exit(ExitCodes.SUCCESS.value)

    try:
        text = run_command(args, tools)
    except UpstreamUnavailableError as exc:
        logger.error("%s", exc)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    except NuscopeError as exc:
        logger.error("%s", exc)
        sys.exit(ExitCodes.TOOL_ERROR.value)

    print(text)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()
