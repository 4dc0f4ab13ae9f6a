"""Plain-text snapshot of a scan.

Layout::

    # Inline-issue snapshot 2025-09-08 18:56:41
    # Columns:  timestamp  path:line  tag  priority  owner  date  category  id  message

    2025-09-08 18:56:41  src/app.py:12  BUG   critical  alice  -  -  #42  crash on empty input

Columns are padded to their widest value and separated by at least two
spaces. The reader also accepts two older row layouts: ``timestamp
path:line tag message`` and ``path:line tag message``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from .models import Annotation, Priority, utc_now

SNAPSHOT_TITLE = "Inline-issue snapshot"
COLUMNS = ["timestamp", "path:line", "tag", "priority", "owner", "date", "category", "id", "message"]
MISSING = "-"

_HEADER_TS_RE = re.compile(r"#\s*Inline-issue\s+snapshot\s+(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})")
_COLUMN_SPLIT_RE = re.compile(r"\s{2,}")
_PRIORITY_VALUES = {p.value for p in Priority}


@dataclass(frozen=True)
class SnapshotRow:
    """One annotation as read back from a snapshot file."""
    timestamp: str
    file: str
    line: int
    tag: str
    message: str
    priority: Priority = Priority.NORMAL
    owner: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None

    def to_annotation(self) -> Annotation:
        return Annotation(
            file=self.file,
            line=self.line,
            tag=self.tag,
            message=self.message,
            priority=self.priority,
            owner=self.owner,
            date=self.date,
            category=self.category,
            id=self.id,
        )


def snapshot_time(dt: datetime) -> str:
    """Format a datetime the way snapshot rows show it (UTC, seconds)."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def sort_annotations(annotations: Iterable[Annotation]) -> list[Annotation]:
    """Order annotations most severe first, then by file and line."""
    return sorted(annotations, key=lambda a: (a.priority.rank, a.file, a.line))


def format_snapshot(annotations: Iterable[Annotation], generated_at: datetime) -> str:
    """Render annotations in the snapshot text layout."""
    ts = snapshot_time(generated_at)
    rows = sort_annotations(annotations)

    cells = [
        [
            a.location,
            a.tag,
            a.priority.value,
            a.owner or MISSING,
            a.date or MISSING,
            a.category or MISSING,
            a.id or MISSING,
        ]
        for a in rows
    ]
    labels = COLUMNS[1:-1]
    widths = [max([len(label)] + [len(c[i]) for c in cells]) for i, label in enumerate(labels)]

    header = [
        f"# {SNAPSHOT_TITLE} {ts}",
        "# Columns:  " + "  ".join(COLUMNS),
    ]
    lines = [
        "  ".join([ts] + [value.ljust(width) for value, width in zip(row_cells, widths)] + [a.message])
        for a, row_cells in zip(rows, cells)
    ]
    text = "\n".join(header) + "\n\n"
    if lines:
        text += "\n".join(lines) + "\n"
    return text


def parse_header_time(text: str) -> Optional[str]:
    """Return the timestamp from the snapshot title line, if present."""
    match = _HEADER_TS_RE.search(text)
    return match.group(1) if match else None


def _optional(value: str) -> Optional[str]:
    return None if value == MISSING else value


def parse_snapshot(text: str) -> list[SnapshotRow]:
    """Read snapshot rows, skipping comments and malformed lines."""
    default_ts = parse_header_time(text) or snapshot_time(utc_now())
    rows = []

    for raw in text.split("\n"):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = [p for p in _COLUMN_SPLIT_RE.split(line) if p]
        if len(parts) < 3:
            continue

        priority = Priority.NORMAL
        owner = date = category = issue_id = None
        if len(parts) >= 8 and parts[3].lower() in _PRIORITY_VALUES:
            ts, path_line, tag = parts[0], parts[1], parts[2]
            priority = Priority(parts[3].lower())
            owner, date, category, issue_id = (_optional(p) for p in parts[4:8])
            message = "  ".join(parts[8:])
        elif len(parts) >= 4:
            ts, path_line, tag = parts[0], parts[1], parts[2]
            message = "  ".join(parts[3:])
        else:
            ts = default_ts
            path_line, tag = parts[0], parts[1]
            message = "  ".join(parts[2:])

        file, sep, line_number = path_line.rpartition(":")
        if not sep or not file or not line_number.isdigit():
            continue

        rows.append(SnapshotRow(
            timestamp=ts,
            file=file,
            line=int(line_number),
            tag=tag.upper(),
            message=message,
            priority=priority,
            owner=owner,
            date=date,
            category=category,
            id=issue_id,
        ))

    return rows


def load_snapshot(path: Path) -> list[SnapshotRow]:
    """Read a snapshot file. A missing file is an empty snapshot."""
    if not path.exists():
        return []
    return parse_snapshot(path.read_text(encoding="utf-8"))
