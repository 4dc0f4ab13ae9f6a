"""inline-issues Configuration - Python Example

Copy to your project root as issues_config.py.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named custom_tool_* become MCP tools
"""

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "project": {
        "name": "web-backend",
    },
    "directories": {
        "data": ".inline-issues",
        "snapshot": "issues.txt",
        "database": "journal.db",
    },
    "scan": {
        "tags": ["TODO", "BUG", "FIXME", "HACK", "XXX"],
        "ignore": ["vendor/", "node_modules/", "migrations/", "*.min.js", "*.lock"],
        "include_resolved": False,
    },
    "journal": {
        "tags": ["TODO", "BUG", "FIXME"],
        "lock_timeout": 5,
    },
}


# =============================================================================
# Custom Tools - Exposed as additional MCP tools
# =============================================================================

def custom_tool_owner_report(engine, params) -> dict:
    """Count open annotations per owner.

    Scans the tree and groups annotations by their @owner token.
    """
    counts: dict[str, int] = {}
    for annotation in engine.scan(path=params.get("path")):
        owner = annotation.owner or "(unassigned)"
        counts[owner] = counts.get(owner, 0) + 1
    return {"success": True, "owners": dict(sorted(counts.items()))}


def custom_tool_critical(engine, params) -> dict:
    """List critical annotations (marked with !!)."""
    critical = [
        a.to_dict()
        for a in engine.scan()
        if a.priority.value == "critical"
    ]
    return {"success": True, "count": len(critical), "annotations": critical}
