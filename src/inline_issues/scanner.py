"""Source tree scanning: file selection, reading and per-line parsing."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Sequence

from .errors import ScanError
from .models import Annotation
from .parser import parse_annotation

if TYPE_CHECKING:
    from .config import ProjectConfig

logger = logging.getLogger(__name__)


def should_ignore(path: str, patterns: Iterable[str]) -> bool:
    """Check whether a path is excluded by any ignore pattern.

    Pattern kinds:
        ``dir/``   - path starts with the pattern
        ``*.ext``  - path ends with ``.ext``
        otherwise  - path equals or contains the pattern
    """
    for pattern in patterns:
        if not pattern:
            continue
        if pattern.endswith("/"):
            if path.startswith(pattern):
                return True
        elif pattern.startswith("*."):
            if path.endswith(pattern[1:]):
                return True
        elif path == pattern or pattern in path:
            return True
    return False


def list_tracked_files(root: Path, pathspec: str = ".") -> list[str]:
    """List files git knows about under root, tracked or untracked.

    Paths are relative to root and honor .gitignore. ``pathspec`` limits the
    listing to a directory inside root.

    Raises:
        ScanError: If git is unavailable or the listing fails
    """
    cmd = [
        "git", "-C", str(root), "ls-files", "-z",
        "--cached", "--others", "--exclude-standard", "--", pathspec,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as e:
        raise ScanError(f"Cannot run git ls-files in {root}: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ScanError(f"git ls-files failed with code {result.returncode}: {stderr}")

    # --cached and --others can both report a file; keep first occurrence
    files = dict.fromkeys(p for p in result.stdout.decode("utf-8").split("\0") if p)
    return list(files)


def read_source(root: Path, path: str) -> str:
    """Read a source file as text, replacing undecodable bytes.

    Raises:
        ScanError: If the file cannot be read
    """
    try:
        return (root / path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ScanError(f"Cannot read {path}: {e}") from e


class Scanner:
    """Finds annotations in a set of files."""

    def __init__(self, tags: Iterable[str], ignore: Sequence[str] = ()):
        self.tags = [t.upper() for t in tags]
        self.ignore = list(ignore)

    @classmethod
    def from_config(cls, config: "ProjectConfig", tags: Optional[Iterable[str]] = None) -> "Scanner":
        """Build a scanner from project configuration.

        Args:
            config: Project configuration
            tags: Override for the configured tag set (resolved tags are
                still added when include_resolved is set)
        """
        ignore = list(config.ignore)
        data_dir = config.data_dir.strip("/")
        if data_dir:
            ignore.append(data_dir + "/")
        return cls(config.effective_tags(tags), ignore)

    def scan_text(self, path: str, text: str) -> Iterator[Annotation]:
        """Yield the annotations of one file's text, in line order."""
        for index, line in enumerate(text.split("\n")):
            annotation = parse_annotation(line, path, index + 1, self.tags)
            if annotation is not None:
                yield annotation

    def scan_files(self, files: Iterable[tuple[str, str]]) -> Iterator[Annotation]:
        """Yield annotations from (path, text) pairs, skipping ignored paths.

        The returned generator can only be consumed once.
        """
        for path, text in files:
            if should_ignore(path, self.ignore):
                logger.debug("Ignoring %s", path)
                continue
            yield from self.scan_text(path, text)

    def scan_tree(self, root: Path, pathspec: str = ".") -> Iterator[Annotation]:
        """Yield annotations from every git-visible file under root.

        Paths in the results stay relative to root even when ``pathspec``
        narrows the scan to a subdirectory.

        The file list is taken up front; files are read lazily while
        iterating. Either step raises ScanError on failure.
        """
        paths = [p for p in list_tracked_files(root, pathspec) if not should_ignore(p, self.ignore)]
        logger.debug("Scanning %d files under %s", len(paths), root)
        return self.scan_files((path, read_source(root, path)) for path in paths)
