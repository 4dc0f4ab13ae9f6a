"""inline-issues CLI and MCP server - Main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

# MCP imports are optional - only needed when running the server
try:
    from mcp.server import Server  # pragma: no cover
    from mcp.server.stdio import stdio_server  # pragma: no cover
    from mcp.types import Tool, TextContent  # pragma: no cover
    HAS_MCP = True  # pragma: no cover
except ImportError:
    HAS_MCP = False
    Server = None  # type: ignore
    Tool = None  # type: ignore
    TextContent = None  # type: ignore

from .config import ProjectConfig, load_config
from .engine import IssueEngine
from .errors import IssuesError
from .models import JournalRecord
from .tools import execute_tool, make_tools

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def create_server(config: ProjectConfig) -> "Server":
    """Create and configure the MCP server.

    Args:
        config: Project configuration

    Returns:
        Configured MCP Server instance

    Raises:
        ImportError: If MCP package is not installed
    """
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install inline-issues[mcp]"
        )

    server = Server("inline-issues")
    engine = IssueEngine(config)
    tool_defs = make_tools(engine)

    # Add custom tools from Python config
    for tool_name, tool_func in config.custom_tools.items():
        doc = tool_func.__doc__ or f"Custom tool: {tool_name}"
        tool_defs[tool_name] = {
            "name": tool_name,
            "description": doc.strip().split("\n")[0],  # First line of docstring
            "inputSchema": {
                "type": "object",
                "properties": {
                    "params": {
                        "type": "object",
                        "description": "Parameters for the custom tool",
                    }
                },
            },
        }

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""

        # Check for custom tool first
        if name in config.custom_tools:
            try:
                result = config.custom_tools[name](engine, arguments.get("params", arguments))
                if asyncio.iscoroutine(result):
                    result = await result
                return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]
            except Exception as e:
                logger.exception("Custom tool %s failed", name)
                error_result = {
                    "success": False,
                    "error": str(e),
                    "error_type": "custom_tool_error",
                }
                return [TextContent(type="text", text=json.dumps(error_result, indent=2))]

        result = await execute_tool(engine, name, arguments)
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: ProjectConfig) -> None:
    """Run the MCP server with stdio transport."""
    if not HAS_MCP:
        raise ImportError(
            "MCP package not installed. Install with: pip install inline-issues[mcp]"
        )

    server = create_server(config)  # pragma: no cover

    async with stdio_server() as (read_stream, write_stream):  # pragma: no cover
        await server.run(  # pragma: no cover
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def configure_logging(verbose: bool = False) -> None:
    """Send library logs to stderr; stdout stays free for command output."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("inline_issues")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


def format_record(record: JournalRecord) -> str:
    """One-line text rendering of a journal record."""
    line = f"#{record.id:<5} {record.type:<5} {record.status.value:<9} p{record.priority}  {record.title}"
    if record.description:
        line += f"  ({record.description})"
    return line


def _print_records(records: list[JournalRecord], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return
    print(f"Found {len(records)} record(s)")
    for record in records:
        print(f"  {format_record(record)}")


def _print_stats(stats: dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(stats, indent=2))
        return
    print(f"Active:              {stats['total_active']}")
    print(f"Completed:           {stats['total_completed']}")
    print(f"Cancelled:           {stats['total_cancelled']}")
    print(f"Completed this week: {stats['completed_this_week']}")
    if stats["by_type_status"]:
        print()
        for group in stats["by_type_status"]:
            print(f"  {group['type']:<5} {group['status']:<9} {group['count']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inline-issues",
        description="inline-issues - Track inline TODO/BUG annotations in a durable journal",
    )
    parser.add_argument(
        "--project-root",
        "-p",
        type=Path,
        default=Path.cwd(),
        help="Project root directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to config file (default: auto-detect in project root)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to stderr",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the MCP server on stdio (default)")
    sub.add_parser("init", help="Create the data directory and journal")

    scan = sub.add_parser("scan", help="Scan for annotations and write the snapshot")
    scan.add_argument("--path", help="Directory to scan, relative to the project root")
    scan.add_argument("--tag", "-t", help="Comma-separated tags (default: configured tags)")
    scan.add_argument(
        "--include-resolved",
        "-r",
        action="store_true",
        default=None,
        help="Also match DONE and RESOLVED",
    )
    scan.add_argument("--out", "-o", type=Path, help="Snapshot file (default: configured path)")
    scan.add_argument("--json", action="store_true", help="Print annotations as JSON instead")

    sub.add_parser("sync", help="Scan and update the journal")

    active = sub.add_parser("active", help="List active journal records")
    active.add_argument("--limit", type=int, default=200)
    active.add_argument("--offset", type=int, default=0)
    active.add_argument("--format", choices=["text", "json"], default="text")

    history = sub.add_parser("history", help="List journal records of any status")
    history.add_argument("--limit", type=int, default=200)
    history.add_argument("--offset", type=int, default=0)
    history.add_argument("--status", choices=["active", "completed", "cancelled"])
    history.add_argument("--type", dest="record_type", help="Only records of this tag")
    history.add_argument("--format", choices=["text", "json"], default="text")

    stats = sub.add_parser("stats", help="Summarize the journal")
    stats.add_argument("--format", choices=["text", "json"], default="text")

    cancel = sub.add_parser("cancel", help="Cancel a journal record")
    cancel.add_argument("id", type=int, help="Journal record id")

    return parser


def run_command(args: argparse.Namespace, config: ProjectConfig) -> None:
    """Run one CLI subcommand against the project."""
    engine = IssueEngine(config)
    try:
        if args.command == "init":
            data_path = engine.init()
            print(f"Initialized inline-issues in {config.project_root}")
            print(f"  - {data_path.relative_to(config.project_root)}/")

        elif args.command == "scan":
            if args.include_resolved:
                config.include_resolved = True
            tags = args.tag.split(",") if args.tag else None
            annotations = engine.scan(path=args.path, tags=tags)
            if args.json:
                print(json.dumps([a.to_dict() for a in annotations], indent=2))
            else:
                out = engine.write_snapshot(annotations, args.out)
                print(f"Found {len(annotations)} issues -> {out}", file=sys.stderr)

        elif args.command == "sync":
            result = engine.sync()
            print(
                f"Synced {result.journaled} item(s) to the journal "
                f"({result.completed} completed, {result.skipped} skipped)"
            )

        elif args.command == "active":
            _print_records(engine.list_active(limit=args.limit, offset=args.offset), args.format)

        elif args.command == "history":
            records = engine.list_all(
                limit=args.limit,
                offset=args.offset,
                status=args.status,
                record_type=args.record_type,
            )
            _print_records(records, args.format)

        elif args.command == "stats":
            _print_stats(engine.stats(), args.format)

        elif args.command == "cancel":
            record = engine.cancel(args.id)
            print(f"Cancelled {format_record(record)}")
    finally:
        engine.close()


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    project_root = args.project_root.resolve()
    command = args.command or "serve"

    # Check for MCP before loading config for server mode
    if command == "serve" and not HAS_MCP:
        print("Error: MCP package not installed.", file=sys.stderr)
        print("Install with: pip install inline-issues[mcp]", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(project_root, args.config)
    except IssuesError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if command == "serve":
        asyncio.run(run_server(config))  # pragma: no cover
        return  # pragma: no cover

    args.command = command
    try:
        run_command(args, config)
    except IssuesError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":  # pragma: no cover
    main()
