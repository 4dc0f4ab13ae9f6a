"""MCP tool definitions wrapping the issue engine."""

from __future__ import annotations

from typing import Any

from .engine import IssueEngine
from .errors import (
    ConfigError,
    InvalidTransitionError,
    IssuesError,
    JournalError,
    RecordNotFoundError,
    ScanError,
)


def make_tools(engine: IssueEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the issue engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== issues_scan ==========
    tools["issues_scan"] = {
        "name": "issues_scan",
        "description": "Scan the project for inline TODO/BUG/FIXME annotations and optionally write the snapshot file. Does not touch the journal.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory to scan, relative to the project root (default: whole project)",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tags to look for (default: configured tags)",
                },
                "write_snapshot": {
                    "type": "boolean",
                    "description": "Also write the plain-text snapshot file",
                    "default": False,
                },
            },
        },
    }

    # ========== issues_sync ==========
    tools["issues_sync"] = {
        "name": "issues_sync",
        "description": "Scan the project and update the journal: seen items become active, items no longer present become completed.",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    }

    # ========== issues_active ==========
    tools["issues_active"] = {
        "name": "issues_active",
        "description": "List active journal records, highest priority first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Maximum records to return",
                    "default": 200,
                },
                "offset": {
                    "type": "integer",
                    "description": "Number of records to skip",
                    "default": 0,
                },
            },
        },
    }

    # ========== issues_history ==========
    tools["issues_history"] = {
        "name": "issues_history",
        "description": "List journal records of any status, including completed and cancelled ones.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Maximum records to return",
                    "default": 200,
                },
                "offset": {
                    "type": "integer",
                    "description": "Number of records to skip",
                    "default": 0,
                },
                "status": {
                    "type": "string",
                    "enum": ["active", "completed", "cancelled"],
                    "description": "Only records with this status",
                },
                "type": {
                    "type": "string",
                    "description": "Only records of this tag (e.g., TODO, BUG)",
                },
            },
        },
    }

    # ========== issues_stats ==========
    tools["issues_stats"] = {
        "name": "issues_stats",
        "description": "Summarize the journal: totals by status, completions this week, counts by type and status.",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    }

    # ========== issues_cancel ==========
    tools["issues_cancel"] = {
        "name": "issues_cancel",
        "description": "Cancel a journal record. Cancelled records are never reactivated by later scans.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {
                    "type": "integer",
                    "description": "Journal record id",
                },
            },
            "required": ["id"],
        },
    }

    # ========== issues_snapshot_read ==========
    tools["issues_snapshot_read"] = {
        "name": "issues_snapshot_read",
        "description": "Read the last written snapshot file. A missing snapshot reads as empty.",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    }

    return tools


async def execute_tool(engine: IssueEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute an issue tool and return the result.

    Args:
        engine: IssueEngine instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "issues_scan":
            annotations = engine.scan(path=arguments.get("path"), tags=arguments.get("tags"))
            result = {
                "success": True,
                "count": len(annotations),
                "annotations": [a.to_dict() for a in annotations],
            }
            if arguments.get("write_snapshot"):
                result["snapshot_path"] = str(engine.write_snapshot(annotations))
            return result

        elif name == "issues_sync":
            sync_result = engine.sync()
            return {
                "success": True,
                **sync_result.to_dict(),
                "message": f"Synced {sync_result.journaled} item(s) to the journal",
            }

        elif name == "issues_active":
            records = engine.list_active(
                limit=arguments.get("limit", 200),
                offset=arguments.get("offset", 0),
            )
            return {
                "success": True,
                "count": len(records),
                "records": [r.to_dict() for r in records],
            }

        elif name == "issues_history":
            records = engine.list_all(
                limit=arguments.get("limit", 200),
                offset=arguments.get("offset", 0),
                status=arguments.get("status"),
                record_type=arguments.get("type"),
            )
            return {
                "success": True,
                "count": len(records),
                "records": [r.to_dict() for r in records],
            }

        elif name == "issues_stats":
            return {
                "success": True,
                **engine.stats(),
            }

        elif name == "issues_cancel":
            record = engine.cancel(int(arguments["id"]))
            return {
                "success": True,
                "record": record.to_dict(),
                "message": f"Record {record.id} cancelled",
            }

        elif name == "issues_snapshot_read":
            rows = engine.load_snapshot()
            return {
                "success": True,
                "count": len(rows),
                "rows": [
                    {"timestamp": row.timestamp, **row.to_annotation().to_dict()}
                    for row in rows
                ],
            }

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
                "error_type": "unknown_tool",
            }

    except KeyError as e:
        return {
            "success": False,
            "error": f"Missing required argument: {e}",
            "error_type": "missing_argument",
        }

    except ScanError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "scan_error",
            "suggestion": "Scans need a git work tree and readable files; the journal was not changed",
        }

    except RecordNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "record_not_found",
            "suggestion": "Use issues_history to find record ids",
        }

    except InvalidTransitionError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_transition",
        }

    except JournalError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "journal_error",
        }

    except ConfigError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "config_error",
        }

    except IssuesError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "issues_error",
        }

    except ValueError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_argument",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
