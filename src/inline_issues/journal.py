"""SQLite journal tracking annotation lifecycles across scans.

Each annotation is keyed by its fingerprint (``tag|file|message``). A scan
upserts everything it saw as active, then completes every active record it
did not see. Records are never deleted.

Journal location: <data_dir>/journal.db
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Generator, Iterable, Optional

from .errors import InvalidTransitionError, JournalError, RecordNotFoundError
from .models import (
    Annotation,
    JournalRecord,
    RecordStatus,
    format_timestamp,
    journal_priority,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one scan cycle applied to the journal."""
    scanned: int = 0
    journaled: int = 0
    skipped: int = 0
    completed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "journaled": self.journaled,
            "skipped": self.skipped,
            "completed": self.completed,
        }


class IssueJournal:
    """Durable store of journal records, keyed by fingerprint."""

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: Path,
        journal_tags: Iterable[str] = ("TODO", "BUG"),
        clock: Callable[[], datetime] = utc_now,
    ):
        """Open (and create if needed) the journal database.

        Args:
            db_path: Path to the SQLite file
            journal_tags: Tags whose annotations are journaled
            clock: Source of the current time
        """
        self.db_path = db_path
        self.journal_tags = frozenset(t.upper() for t in journal_tags)
        self._clock = clock
        self._connection: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transactions are opened explicitly
            self._connection = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA journal_mode = WAL")
        return self._connection

    def _ensure_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        conn = self._get_connection()

        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            self._init_schema(conn)
            return

        row = conn.execute("SELECT version FROM schema_version").fetchone()
        version = row[0] if row else 0
        if version > self.SCHEMA_VERSION:
            raise JournalError(
                f"Journal schema version {version} is newer than supported version {self.SCHEMA_VERSION}"
            )
        if version < self.SCHEMA_VERSION:
            self._init_schema(conn)

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            BEGIN;

            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            DELETE FROM schema_version;
            INSERT INTO schema_version (version) VALUES (1);

            CREATE TABLE IF NOT EXISTS issues (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,                 -- TODO, BUG
                title TEXT NOT NULL,                -- latest message text
                description TEXT,                   -- latest file:line
                status TEXT NOT NULL DEFAULT 'active'
                    CHECK(status IN ('active', 'completed', 'cancelled')),
                created_at TEXT NOT NULL,           -- ISO 8601, set once
                completed_at TEXT,                  -- ISO 8601
                priority INTEGER NOT NULL DEFAULT 3 CHECK(priority BETWEEN 1 AND 5),
                tags TEXT,
                source_key TEXT UNIQUE NOT NULL     -- tag|file|message
            );

            CREATE INDEX IF NOT EXISTS idx_status ON issues(status);
            CREATE INDEX IF NOT EXISTS idx_type_status ON issues(type, status);
            CREATE INDEX IF NOT EXISTS idx_completed_at ON issues(completed_at);

            COMMIT;
        """)

    def close(self) -> None:
        """Close the database connection.

        Checkpoints the WAL and switches back to DELETE journal mode first so
        that no -wal/-shm files or handles are left behind.
        """
        if self._connection is not None:
            try:
                self._connection.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                self._connection.execute("PRAGMA journal_mode = DELETE")
            except sqlite3.Error:
                logger.debug("Could not checkpoint %s on close", self.db_path, exc_info=True)
            self._connection.close()
            self._connection = None

    def _now(self) -> str:
        return format_timestamp(self._clock().astimezone(timezone.utc))

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run a block in one write transaction.

        Nested use joins the outer transaction. On error everything since the
        outermost BEGIN is rolled back.
        """
        conn = self._get_connection()
        if conn.in_transaction:
            yield conn
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    # ========== Scan Operations ==========

    def upsert_from_scan(self, annotation: Annotation) -> Optional[JournalRecord]:
        """Record a freshly observed annotation as active.

        A new fingerprint inserts a record. A known one gets its title,
        description and priority refreshed and is reactivated if it had been
        completed, which also clears completed_at. Cancelled records keep
        their status.

        Returns:
            The stored record, or None if the tag is not journaled
        """
        tag = annotation.tag.upper()
        if tag not in self.journal_tags:
            logger.warning(
                "Skipping %s annotation at %s: tag is not journaled",
                annotation.tag, annotation.location,
            )
            return None

        source_key = annotation.fingerprint
        title = annotation.message
        description = annotation.location
        priority = journal_priority(annotation.priority)

        with self.transaction() as conn:
            row = conn.execute(
                "SELECT id, status FROM issues WHERE source_key = ?", (source_key,)
            ).fetchone()

            if row is None:
                cursor = conn.execute(
                    """
                    INSERT INTO issues (type, title, description, status, created_at, priority, source_key)
                    VALUES (?, ?, ?, 'active', ?, ?, ?)
                    """,
                    (tag, title, description, self._now(), priority, source_key),
                )
                record_id = cursor.lastrowid
                logger.debug("Journaled new %s #%s: %s", tag, record_id, description)
            else:
                record_id = row["id"]
                status = RecordStatus(row["status"])
                if status is RecordStatus.COMPLETED:
                    conn.execute(
                        """
                        UPDATE issues
                        SET title = ?, description = ?, priority = ?, status = 'active', completed_at = NULL
                        WHERE id = ?
                        """,
                        (title, description, priority, record_id),
                    )
                    logger.debug("Reactivated %s #%s: %s", tag, record_id, description)
                else:
                    conn.execute(
                        "UPDATE issues SET title = ?, description = ?, priority = ? WHERE id = ?",
                        (title, description, priority, record_id),
                    )

            stored = conn.execute("SELECT * FROM issues WHERE id = ?", (record_id,)).fetchone()

        return JournalRecord.from_row(stored)

    def reconcile_missing(self, current_fingerprints: Iterable[str]) -> int:
        """Complete every active record not seen in the latest scan.

        Completed and cancelled records are left alone even when missing.

        Args:
            current_fingerprints: Fingerprints of everything the scan saw

        Returns:
            Number of records marked completed
        """
        keys = set(current_fingerprints)
        with self.transaction() as conn:
            conn.execute(
                "CREATE TEMP TABLE IF NOT EXISTS current_keys (source_key TEXT PRIMARY KEY)"
            )
            conn.execute("DELETE FROM current_keys")
            conn.executemany(
                "INSERT INTO current_keys (source_key) VALUES (?)",
                ((key,) for key in keys),
            )
            cursor = conn.execute(
                """
                UPDATE issues
                SET status = 'completed', completed_at = ?
                WHERE status = 'active'
                  AND source_key NOT IN (SELECT source_key FROM current_keys)
                """,
                (self._now(),),
            )
            completed = cursor.rowcount
            conn.execute("DELETE FROM current_keys")

        logger.info("Reconciled journal: %d record(s) completed", completed)
        return completed

    def sync(self, annotations: Iterable[Annotation]) -> SyncResult:
        """Apply one full scan to the journal in a single transaction.

        Upserts every journaled annotation, then reconciles against the
        fingerprints of the same list. Annotations with other tags are
        counted as skipped. If anything fails nothing is committed.
        """
        items = list(annotations)
        result = SyncResult(scanned=len(items))
        with self.transaction():
            for annotation in items:
                if annotation.tag.upper() not in self.journal_tags:
                    result.skipped += 1
                    continue
                self.upsert_from_scan(annotation)
                result.journaled += 1
            if result.skipped:
                logger.debug("Skipped %d annotation(s) with unjournaled tags", result.skipped)
            result.completed = self.reconcile_missing(a.fingerprint for a in items)
        return result

    # ========== External Transitions ==========

    def cancel(self, record_id: int) -> JournalRecord:
        """Mark a record cancelled. Cancelled is terminal.

        Raises:
            RecordNotFoundError: If no record has this id
            InvalidTransitionError: If the record is already cancelled
        """
        with self.transaction() as conn:
            row = conn.execute("SELECT status FROM issues WHERE id = ?", (record_id,)).fetchone()
            if row is None:
                raise RecordNotFoundError(f"No journal record with id {record_id}")
            if row["status"] == RecordStatus.CANCELLED.value:
                raise InvalidTransitionError(f"Record {record_id} is already cancelled")
            conn.execute("UPDATE issues SET status = 'cancelled' WHERE id = ?", (record_id,))
            stored = conn.execute("SELECT * FROM issues WHERE id = ?", (record_id,)).fetchone()
        return JournalRecord.from_row(stored)

    # ========== Read Operations ==========

    def get_record(self, record_id: int) -> Optional[JournalRecord]:
        """Get a single record by id."""
        row = self._get_connection().execute(
            "SELECT * FROM issues WHERE id = ?", (record_id,)
        ).fetchone()
        return JournalRecord.from_row(row) if row else None

    def get_by_fingerprint(self, source_key: str) -> Optional[JournalRecord]:
        """Get a single record by fingerprint."""
        row = self._get_connection().execute(
            "SELECT * FROM issues WHERE source_key = ?", (source_key,)
        ).fetchone()
        return JournalRecord.from_row(row) if row else None

    def list_active(self, limit: int = 200, offset: int = 0) -> list[JournalRecord]:
        """List active records, highest priority and newest first."""
        return self.list_all(limit=limit, offset=offset, status=RecordStatus.ACTIVE)

    def list_all(
        self,
        limit: int = 200,
        offset: int = 0,
        status: Optional[RecordStatus] = None,
        record_type: Optional[str] = None,
    ) -> list[JournalRecord]:
        """List records, highest priority and newest first.

        Args:
            limit: Maximum records to return
            offset: Number of records to skip
            status: Only records with this status
            record_type: Only records of this tag
        """
        conditions = []
        params: list[Any] = []
        if record_type is not None:
            conditions.append("type = ?")
            params.append(record_type.upper())
        if status is not None:
            conditions.append("status = ?")
            params.append(RecordStatus(status).value)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        query = f"""
            SELECT * FROM issues
            {where_clause}
            ORDER BY priority DESC, created_at DESC, id DESC
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])
        cursor = self._get_connection().execute(query, params)
        return [JournalRecord.from_row(row) for row in cursor.fetchall()]

    def stats(self) -> dict[str, Any]:
        """Summarize the journal.

        Returns:
            Dictionary with status totals, completions in the last seven
            days, and counts grouped by type and status
        """
        conn = self._get_connection()

        totals = {status.value: 0 for status in RecordStatus}
        for row in conn.execute("SELECT status, COUNT(*) FROM issues GROUP BY status"):
            totals[row[0]] = row[1]

        cutoff = format_timestamp(self._clock().astimezone(timezone.utc) - timedelta(days=7))
        completed_this_week = conn.execute(
            "SELECT COUNT(*) FROM issues WHERE status = 'completed' AND completed_at >= ?",
            (cutoff,),
        ).fetchone()[0]

        by_type_status = [
            {"type": row[0], "status": row[1], "count": row[2]}
            for row in conn.execute(
                "SELECT type, status, COUNT(*) FROM issues GROUP BY type, status ORDER BY type, status"
            )
        ]

        return {
            "total_active": totals[RecordStatus.ACTIVE.value],
            "total_completed": totals[RecordStatus.COMPLETED.value],
            "total_cancelled": totals[RecordStatus.CANCELLED.value],
            "completed_this_week": completed_this_week,
            "by_type_status": by_type_status,
        }
