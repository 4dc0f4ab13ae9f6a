"""Core engine - one scan cycle from source tree to journal."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .config import ProjectConfig
from .journal import IssueJournal, SyncResult
from .locking import locked_atomic_write, writer_lock
from .models import Annotation, JournalRecord, RecordStatus, utc_now
from .scanner import Scanner
from .snapshot import SnapshotRow, format_snapshot, load_snapshot

logger = logging.getLogger(__name__)


class IssueEngine:
    """Runs scans, keeps snapshots, and owns the project's journal."""

    def __init__(self, config: ProjectConfig, clock: Callable[[], datetime] = utc_now):
        self.config = config
        self._clock = clock
        self._journal: Optional[IssueJournal] = None

    @property
    def journal(self) -> IssueJournal:
        """Lazily open and return the journal."""
        if self._journal is None:
            self._journal = IssueJournal(
                self.config.get_database_path(),
                journal_tags=self.config.journal_tags,
                clock=self._clock,
            )
        return self._journal

    def close(self) -> None:
        if self._journal is not None:
            self._journal.close()
            self._journal = None

    def init(self) -> Path:
        """Create the data directory and the journal database."""
        self.config.get_data_path().mkdir(parents=True, exist_ok=True)
        _ = self.journal  # creates the database
        return self.config.get_data_path()

    # ========== Scanning ==========

    def scan(self, path: Optional[str] = None, tags: Optional[Iterable[str]] = None) -> list[Annotation]:
        """Scan the project (or a directory inside it) for annotations.

        Args:
            path: Directory to scan, relative to the project root
            tags: Override for the configured tags

        Returns:
            Every annotation found, in file and line order

        Raises:
            ScanError: If any file cannot be listed or read
        """
        root = self.config.project_root
        scanner = Scanner.from_config(self.config, tags)
        annotations = list(scanner.scan_tree(root, path or "."))
        logger.info("Found %d annotation(s) under %s", len(annotations), root / (path or ""))
        return annotations

    def write_snapshot(self, annotations: Iterable[Annotation], out: Optional[Path] = None) -> Path:
        """Write annotations to the snapshot file.

        Args:
            annotations: Annotations to record
            out: Target file (default: configured snapshot path)

        Returns:
            Path of the written snapshot
        """
        target = out or self.config.get_snapshot_path()
        text = format_snapshot(annotations, self._clock())
        with locked_atomic_write(target, timeout=self.config.lock_timeout) as f:
            f.write(text)
        return target

    def load_snapshot(self, path: Optional[Path] = None) -> list[SnapshotRow]:
        """Read a snapshot; a missing file yields an empty list."""
        return load_snapshot(path or self.config.get_snapshot_path())

    # ========== Journal ==========

    def sync(self, annotations: Optional[Iterable[Annotation]] = None) -> SyncResult:
        """Bring the journal in line with the current source tree.

        Scans first unless annotations are given. The scan must finish
        before the journal is touched; a failed scan leaves the journal as
        it was.
        """
        items = self.scan() if annotations is None else list(annotations)
        with writer_lock(self.config.get_database_path(), timeout=self.config.lock_timeout):
            result = self.journal.sync(items)
        logger.info(
            "Synced %d annotation(s): %d journaled, %d skipped, %d completed",
            result.scanned, result.journaled, result.skipped, result.completed,
        )
        return result

    def cancel(self, record_id: int) -> JournalRecord:
        """Cancel a journal record. Cancelled records never come back."""
        with writer_lock(self.config.get_database_path(), timeout=self.config.lock_timeout):
            return self.journal.cancel(record_id)

    def list_active(self, limit: int = 200, offset: int = 0) -> list[JournalRecord]:
        return self.journal.list_active(limit=limit, offset=offset)

    def list_all(
        self,
        limit: int = 200,
        offset: int = 0,
        status: Optional[str] = None,
        record_type: Optional[str] = None,
    ) -> list[JournalRecord]:
        return self.journal.list_all(
            limit=limit,
            offset=offset,
            status=RecordStatus(status) if status else None,
            record_type=record_type,
        )

    def stats(self) -> dict[str, Any]:
        return self.journal.stats()
