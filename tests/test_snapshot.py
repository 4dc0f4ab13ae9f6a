"""Tests for the plain-text snapshot format."""

from datetime import datetime, timedelta, timezone

from inline_issues.models import Annotation, Priority
from inline_issues.snapshot import (
    format_snapshot,
    load_snapshot,
    parse_header_time,
    parse_snapshot,
    sort_annotations,
)

GENERATED = datetime(2025, 9, 8, 18, 56, 41, tzinfo=timezone.utc)


def sample_annotations():
    return [
        Annotation(file="src/b.py", line=3, tag="TODO", message="tidy up"),
        Annotation(
            file="src/a.py",
            line=12,
            tag="BUG",
            message="crash on empty input",
            priority=Priority.CRITICAL,
            owner="alice",
            id="#42",
        ),
        Annotation(file="src/a.py", line=1, tag="NOTE", message="maybe", priority=Priority.LOW),
    ]


class TestFormatSnapshot:
    """Tests for writing snapshots."""

    def test_header_lines(self):
        text = format_snapshot([], GENERATED)
        lines = text.split("\n")
        assert lines[0] == "# Inline-issue snapshot 2025-09-08 18:56:41"
        assert lines[1].startswith("# Columns:")
        assert "path:line" in lines[1]

    def test_rows_sorted_by_severity(self):
        text = format_snapshot(sample_annotations(), GENERATED)
        rows = [line for line in text.split("\n") if line and not line.startswith("#")]
        assert "src/a.py:12" in rows[0]
        assert "src/b.py:3" in rows[1]
        assert "src/a.py:1" in rows[2]

    def test_every_row_carries_timestamp(self):
        text = format_snapshot(sample_annotations(), GENERATED)
        rows = [line for line in text.split("\n") if line and not line.startswith("#")]
        assert all(row.startswith("2025-09-08 18:56:41  ") for row in rows)

    def test_missing_fields_rendered_as_dash(self):
        text = format_snapshot([Annotation(file="a.py", line=1, tag="TODO", message="x")], GENERATED)
        row = text.split("\n")[3]
        assert row.split()[-2:] == ["-", "x"]

    def test_non_utc_time_converted(self):
        local = GENERATED.astimezone(timezone(timedelta(hours=2)))
        assert parse_header_time(format_snapshot([], local)) == "2025-09-08 18:56:41"

    def test_sort_annotations_is_stable_by_file_and_line(self):
        ordered = sort_annotations(sample_annotations())
        assert [a.priority for a in ordered] == [Priority.CRITICAL, Priority.NORMAL, Priority.LOW]


class TestParseSnapshot:
    """Tests for reading snapshots back."""

    def test_reads_back_written_rows(self):
        rows = parse_snapshot(format_snapshot(sample_annotations(), GENERATED))
        assert len(rows) == 3

        bug = rows[0]
        assert bug.timestamp == "2025-09-08 18:56:41"
        assert bug.file == "src/a.py"
        assert bug.line == 12
        assert bug.tag == "BUG"
        assert bug.priority == Priority.CRITICAL
        assert bug.owner == "alice"
        assert bug.date is None
        assert bug.category is None
        assert bug.id == "#42"
        assert bug.message == "crash on empty input"

    def test_to_annotation_preserves_fingerprint(self):
        original = sample_annotations()[1]
        row = parse_snapshot(format_snapshot([original], GENERATED))[0]
        assert row.to_annotation().fingerprint == original.fingerprint

    def test_message_with_wide_gaps_preserved(self):
        annotation = Annotation(file="a.py", line=2, tag="TODO", message="align  these  columns")
        row = parse_snapshot(format_snapshot([annotation], GENERATED))[0]
        assert row.message == "align  these  columns"

    def test_legacy_row_with_timestamp(self):
        rows = parse_snapshot("2025-01-01 10:00:00  src/a.py:3  todo  fix it\n")
        assert len(rows) == 1
        assert rows[0].timestamp == "2025-01-01 10:00:00"
        assert rows[0].tag == "TODO"
        assert rows[0].message == "fix it"
        assert rows[0].priority == Priority.NORMAL

    def test_legacy_row_without_timestamp_uses_header(self):
        text = "# Inline-issue snapshot 2024-12-31 23:59:59\nsrc/a.py:3  BUG  crash\n"
        rows = parse_snapshot(text)
        assert rows[0].timestamp == "2024-12-31 23:59:59"
        assert rows[0].file == "src/a.py"
        assert rows[0].line == 3

    def test_path_with_colon(self):
        rows = parse_snapshot("C:/work/a.py:7  TODO  windows path\n")
        assert rows[0].file == "C:/work/a.py"
        assert rows[0].line == 7

    def test_malformed_lines_skipped(self):
        text = "\n".join([
            "# comment",
            "garbage",
            "nocolon  TODO  message",
            "src/a.py:abc  TODO  message",
            "src/a.py:4  TODO  kept",
            "",
        ])
        rows = parse_snapshot(text)
        assert [(r.line, r.message) for r in rows] == [(4, "kept")]

    def test_empty_text(self):
        assert parse_snapshot("") == []


class TestLoadSnapshot:
    """Tests for load_snapshot."""

    def test_missing_file_is_empty(self, temp_project):
        assert load_snapshot(temp_project / "nope.txt") == []

    def test_reads_file(self, temp_project):
        path = temp_project / "issues.txt"
        path.write_text(format_snapshot(sample_annotations(), GENERATED), encoding="utf-8")
        assert len(load_snapshot(path)) == 3
