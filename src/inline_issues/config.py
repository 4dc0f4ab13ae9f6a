"""Configuration loading for inline-issues.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - power users with custom tools
3. The legacy ``.gitodos`` key=value file
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .errors import ConfigError

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None


DEFAULT_TAGS = ["TODO", "BUG", "FIXME", "XXX", "HACK", "NOTE", "QUESTION"]
DEFAULT_IGNORE = ["vendor/", "node_modules/", "dist/", ".git/", "*.min.js"]
DEFAULT_JOURNAL_TAGS = ["TODO", "BUG"]

# Added to the scan tags when include_resolved is set
RESOLVED_TAGS = ["DONE", "RESOLVED"]


@dataclass
class ProjectConfig:
    """Configuration for a project's scans and journal."""

    # Project identification
    project_name: str = "unnamed"
    project_root: Path = field(default_factory=Path.cwd)

    # Storage (relative to project_root, files relative to data_dir)
    data_dir: str = ".inline-issues"
    snapshot_file: str = "issues.txt"
    database_file: str = "journal.db"

    # What to scan
    tags: list[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
    ignore: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    include_resolved: bool = False

    # What to journal
    journal_tags: list[str] = field(default_factory=lambda: list(DEFAULT_JOURNAL_TAGS))
    lock_timeout: float = 10.0

    # Custom tools (populated from Python config)
    custom_tools: dict[str, Callable] = field(default_factory=dict)

    def get_data_path(self) -> Path:
        return self.project_root / self.data_dir

    def get_snapshot_path(self) -> Path:
        return self.get_data_path() / self.snapshot_file

    def get_database_path(self) -> Path:
        return self.get_data_path() / self.database_file

    def effective_tags(self, tags: Optional[Iterable[str]] = None) -> list[str]:
        """Tags to scan for, uppercased and deduplicated.

        Args:
            tags: Override for the configured tags
        """
        result: list[str] = []
        base = list(self.tags if tags is None else tags)
        if self.include_resolved:
            base.extend(RESOLVED_TAGS)
        for tag in base:
            tag = tag.strip().upper()
            if tag and tag not in result:
                result.append(tag)
        return result


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def load_legacy_config(path: Path) -> dict[str, Any]:
    """Load a ``.gitodos`` file into the structured config layout.

    Lines are ``key = value``; blank lines and ``#`` comments are skipped.
    Keys other than tags, ignore and include_resolved are ignored.
    """
    scan: dict[str, Any] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key == "tags":
            scan["tags"] = _split_list(value)
        elif key == "ignore":
            scan["ignore"] = _split_list(value)
        elif key == "include_resolved":
            scan["include_resolved"] = value.lower() == "true"
    return {"scan": scan}


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, custom_tools_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named custom_tool_* become MCP tools
    """
    spec = importlib.util.spec_from_file_location("issues_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["issues_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    custom_tools = {}
    for name in dir(module):
        if name.startswith("custom_tool_"):
            tool_name = name[12:]  # Remove "custom_tool_" prefix
            custom_tools[tool_name] = getattr(module, name)

    return config_dict, custom_tools


def _string_list(section: str, key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return _split_list(value)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"[{section}] {key} must be a list of strings")
    return list(value)


def dict_to_config(data: dict[str, Any], project_root: Path) -> ProjectConfig:
    """Convert dictionary to ProjectConfig.

    Raises:
        ConfigError: If a value has the wrong type
    """
    config = ProjectConfig(project_root=project_root)

    if "project" in data:
        proj = data["project"]
        if "name" in proj:
            config.project_name = str(proj["name"])

    if "directories" in data:
        dirs = data["directories"]
        if "data" in dirs:
            config.data_dir = dirs["data"]
        if "snapshot" in dirs:
            config.snapshot_file = dirs["snapshot"]
        if "database" in dirs:
            config.database_file = dirs["database"]

    if "scan" in data:
        scan = data["scan"]
        if "tags" in scan:
            config.tags = _string_list("scan", "tags", scan["tags"])
        if "ignore" in scan:
            config.ignore = _string_list("scan", "ignore", scan["ignore"])
        if "include_resolved" in scan:
            if not isinstance(scan["include_resolved"], bool):
                raise ConfigError("[scan] include_resolved must be true or false")
            config.include_resolved = scan["include_resolved"]

    if "journal" in data:
        journal = data["journal"]
        if "tags" in journal:
            config.journal_tags = [t.upper() for t in _string_list("journal", "tags", journal["tags"])]
        if "lock_timeout" in journal:
            try:
                config.lock_timeout = float(journal["lock_timeout"])
            except (TypeError, ValueError) as e:
                raise ConfigError(f"[journal] lock_timeout must be a number: {e}") from e

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. issues_config.py (most flexible)
    2. issues_config.toml
    3. issues_config.json
    4. .inline-issues.toml
    5. .inline-issues.json
    6. .gitodos (legacy)
    """
    candidates = [
        "issues_config.py",
        "issues_config.toml",
        "issues_config.json",
        ".inline-issues.toml",
        ".inline-issues.json",
        ".gitodos",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> ProjectConfig:
    """Load project configuration.

    Args:
        project_root: Root directory of the project
        config_path: Optional explicit path to config file

    Returns:
        ProjectConfig instance

    Raises:
        ConfigError: If the config file is unreadable or invalid
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        # No config file - use defaults
        return ProjectConfig(project_root=project_root)

    suffix = config_path.suffix.lower()

    try:
        if suffix == ".py":
            config_dict, custom_tools = load_python_config(config_path)
            config = dict_to_config(config_dict, project_root)
            config.custom_tools = custom_tools
            return config

        elif suffix == ".toml":
            return dict_to_config(load_toml_config(config_path), project_root)

        elif suffix == ".json":
            return dict_to_config(load_json_config(config_path), project_root)

        elif config_path.name == ".gitodos":
            return dict_to_config(load_legacy_config(config_path), project_root)

    except ConfigError as e:
        raise ConfigError(f"{config_path}: {e}") from e
    except Exception as e:
        raise ConfigError(f"Cannot load config {config_path}: {e}") from e

    raise ConfigError(f"Unsupported config file type: {suffix or config_path.name}")
