"""Data models for scanned annotations and journal records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Priority(Enum):
    """Severity of an annotation, set by the marker after its tag."""
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


class RecordStatus(Enum):
    """Lifecycle status of a journal record."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Journal priorities live on a 1..5 scale; only two levels are written by scans.
JOURNAL_PRIORITY_HIGH = 4
JOURNAL_PRIORITY_NORMAL = 3


def journal_priority(priority: Priority) -> int:
    """Map a scan priority onto the journal's two-level integer scale."""
    if priority in (Priority.CRITICAL, Priority.HIGH):
        return JOURNAL_PRIORITY_HIGH
    return JOURNAL_PRIORITY_NORMAL


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 with timezone."""
    return dt.isoformat(timespec='milliseconds')


def parse_timestamp(s: str) -> datetime:
    """Parse ISO 8601 timestamp string."""
    return datetime.fromisoformat(s)


def make_fingerprint(tag: str, file: str, message: str) -> str:
    """Build the identity key of a journaled annotation.

    The line number is left out so that moving an annotation within its
    file keeps the same identity.
    """
    return f"{tag}|{file}|{message}"


@dataclass(frozen=True)
class Annotation:
    """One tagged comment found during a single scan."""
    file: str
    line: int
    tag: str
    message: str
    priority: Priority = Priority.NORMAL
    owner: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        return make_fingerprint(self.tag, self.file, self.message)

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"

    def to_dict(self) -> dict[str, Any]:
        """Convert annotation to dictionary for JSON serialization."""
        return {
            "file": self.file,
            "line": self.line,
            "tag": self.tag,
            "priority": self.priority.value,
            "message": self.message,
            "owner": self.owner,
            "date": self.date,
            "category": self.category,
            "id": self.id,
        }


@dataclass
class JournalRecord:
    """The durable history of one annotation across scans."""
    id: int
    type: str
    title: str
    status: RecordStatus
    created_at: datetime
    source_key: str
    priority: int = JOURNAL_PRIORITY_NORMAL
    description: Optional[str] = None
    completed_at: Optional[datetime] = None
    tags: Optional[str] = None

    @classmethod
    def from_row(cls, row: Any) -> "JournalRecord":
        """Build a record from a sqlite3.Row of the issues table."""
        completed_at = row["completed_at"]
        return cls(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            description=row["description"],
            status=RecordStatus(row["status"]),
            created_at=parse_timestamp(row["created_at"]),
            completed_at=parse_timestamp(completed_at) if completed_at else None,
            priority=row["priority"],
            tags=row["tags"],
            source_key=row["source_key"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert record to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "created_at": format_timestamp(self.created_at),
            "completed_at": format_timestamp(self.completed_at) if self.completed_at else None,
            "priority": self.priority,
            "tags": self.tags,
            "source_key": self.source_key,
        }
