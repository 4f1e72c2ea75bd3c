#!/usr/bin/env python3
"""
Tool provider orchestration CLI.

Starts the configured tool providers, runs one command against them and
shuts them down.

Usage:
    autodev servers
    autodev call SERVER TOOL [--args JSON] [--timeout SECONDS]
    autodev context PATH

Examples:
    # Start the providers and show their tools
    autodev servers

    # Read a file through the filesystem provider
    autodev call filesystem read_file --args '{"path": "README.md"}'

    # Snapshot a project using a custom servers file
    autodev --servers-file servers.json context ./my-app
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from autodev.configuration.config import Settings, configure_logging, get_settings
from autodev.domain.exceptions.mcp import MCPError
from autodev.infrastructure.mcp.orchestrator import MCPOrchestrator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TOOL_ERROR = 1
EXIT_FAILURE = 2


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autodev",
        description="Run commands against local tool provider processes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:")[1] if __doc__ else None,
    )
    parser.add_argument(
        "--servers-file",
        help="JSON file describing the servers to start (default: bundled providers)",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("servers", help="Start the servers and list their tools")

    call = subparsers.add_parser("call", help="Call a tool and print its result")
    call.add_argument("server", help="Server name")
    call.add_argument("tool", help="Tool name")
    call.add_argument("--args", default="{}", help="Tool arguments as a JSON object")
    call.add_argument("--timeout", type=float, help="Call timeout in seconds")

    context = subparsers.add_parser("context", help="Print a project context snapshot")
    context.add_argument("path", help="Project directory")

    return parser


async def _servers(orchestrator: MCPOrchestrator) -> int:
    result = orchestrator.last_initialize_result
    _print_json({**result.to_dict(), "servers": orchestrator.list_servers()})
    return EXIT_OK if result.all_ready else EXIT_TOOL_ERROR


async def _call(orchestrator: MCPOrchestrator, args: argparse.Namespace, arguments: dict) -> int:
    result = await orchestrator.call_tool(args.server, args.tool, arguments, timeout=args.timeout)
    _print_json(result.to_dict())
    return EXIT_TOOL_ERROR if result.is_error else EXIT_OK


async def _context(orchestrator: MCPOrchestrator, args: argparse.Namespace) -> int:
    snapshot = await orchestrator.get_project_context(args.path)
    _print_json(snapshot.to_dict())
    return EXIT_OK


async def run(args: argparse.Namespace, settings: Settings, arguments: dict | None = None) -> int:
    """Run one command inside an orchestrator session."""
    try:
        async with MCPOrchestrator(settings=settings) as orchestrator:
            if args.command == "servers":
                return await _servers(orchestrator)
            if args.command == "call":
                return await _call(orchestrator, args, arguments or {})
            return await _context(orchestrator, args)
    except MCPError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except (OSError, ValueError) as e:
        logger.error(f"Could not load servers: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.servers_file:
        settings = settings.model_copy(update={"mcp_servers_file": args.servers_file})
    configure_logging(args.log_level.upper() if args.log_level else settings.log_level)

    arguments = None
    if args.command == "call":
        try:
            arguments = json.loads(args.args)
        except json.JSONDecodeError as e:
            parser.error(f"--args is not valid JSON: {e}")
        if not isinstance(arguments, dict):
            parser.error("--args must be a JSON object")

    return asyncio.run(run(args, settings, arguments))


if __name__ == "__main__":
    sys.exit(main())
