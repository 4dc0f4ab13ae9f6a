"""Property-based tests for the tokenizer, snapshot format and journal.

Uses hypothesis to verify algorithmic properties hold for many inputs.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

from hypothesis import given, settings, strategies as st

from inline_issues.journal import IssueJournal
from inline_issues.models import Annotation, Priority, RecordStatus
from inline_issues.parser import extract_metadata, parse_annotation, parse_line
from inline_issues.scanner import should_ignore
from inline_issues.snapshot import format_snapshot, parse_snapshot

TAGS = ["TODO", "BUG", "FIXME"]

# No tag can be spelled from these letters and none of them starts metadata
words = st.text(alphabet="abcdefghijk.,;", min_size=1, max_size=8)
messages = st.lists(words, min_size=1, max_size=6).map(" ".join)
owners = st.from_regex(r"[a-z][a-z0-9_-]{0,10}", fullmatch=True)
priorities = st.sampled_from(list(Priority))
markers = {
    Priority.CRITICAL: "!!",
    Priority.HIGH: "!",
    Priority.NORMAL: "",
    Priority.LOW: "?",
}


def make_temp_journal():
    """Create a fresh journal in its own temp directory for each example."""
    tmpdir = tempfile.mkdtemp()
    return IssueJournal(Path(tmpdir) / "journal.db")


class TestParserProperties:
    """Property-based tests for parse_line and extract_metadata."""

    @given(
        message=messages,
        tag=st.sampled_from(TAGS),
        priority=priorities,
        indent=st.text(alphabet=" \t", max_size=4),
        comment=st.sampled_from(["#", "//", "--", ";", "/*", ""]),
    )
    def test_message_recovered(self, message, tag, priority, indent, comment):
        """The text after the separator comes back unchanged."""
        line = f"{indent}{comment} {tag}{markers[priority]}: {message}"
        raw = parse_line(line, TAGS)
        assert raw is not None
        assert raw.tag == tag
        assert raw.priority == priority
        assert raw.message == message

    @given(
        message=messages,
        tag=st.sampled_from(TAGS),
        prefix=st.text(alphabet="abcxyz0123456789_", min_size=1, max_size=5),
    )
    def test_tag_glued_to_word_is_ignored(self, message, tag, prefix):
        assert parse_line(f"{prefix}{tag}: {message}", TAGS) is None

    @given(
        message=messages,
        first=st.integers(min_value=1, max_value=100000),
        second=st.integers(min_value=1, max_value=100000),
    )
    def test_fingerprint_ignores_line_number(self, message, first, second):
        line = f"# TODO: {message}"
        a = parse_annotation(line, "src/app.py", first, TAGS)
        b = parse_annotation(line, "src/app.py", second, TAGS)
        assert a.fingerprint == b.fingerprint

    @given(text=st.text(max_size=80))
    def test_extract_metadata_never_raises(self, text):
        meta = extract_metadata(text)
        assert meta.message == meta.message.strip()

    @given(owner=owners, message=messages)
    def test_owner_recovered(self, owner, message):
        meta = extract_metadata(f"@{owner} {message}")
        assert meta.owner == owner
        assert meta.message == message


class TestIgnoreProperties:
    """Property-based tests for should_ignore."""

    @given(
        directory=st.from_regex(r"[a-z]{1,8}", fullmatch=True),
        rest=st.from_regex(r"[a-z]{1,8}(/[a-z]{1,8}){0,3}\.py", fullmatch=True),
    )
    def test_directory_pattern_covers_subtree(self, directory, rest):
        assert should_ignore(f"{directory}/{rest}", [f"{directory}/"])


class TestSnapshotProperties:
    """Property-based tests for the snapshot text layout."""

    @given(
        items=st.lists(
            st.tuples(st.integers(min_value=1, max_value=9999), st.sampled_from(TAGS), priorities, messages),
            max_size=10,
        ),
    )
    @settings(max_examples=50)
    def test_written_rows_read_back(self, items):
        annotations = [
            Annotation(file="src/mod.py", line=line, tag=tag, message=message, priority=priority)
            for line, tag, priority, message in items
        ]
        generated = datetime(2026, 1, 17, 12, 0, 0, tzinfo=timezone.utc)
        rows = parse_snapshot(format_snapshot(annotations, generated))

        assert len(rows) == len(annotations)
        expected = sorted((a.fingerprint, a.line, a.priority.value) for a in annotations)
        actual = sorted((r.to_annotation().fingerprint, r.line, r.priority.value) for r in rows)
        assert actual == expected


class TestJournalProperties:
    """Property-based tests for journal reconciliation."""

    @given(
        found=st.lists(messages, min_size=1, max_size=8, unique=True),
        keep=st.integers(min_value=0, max_value=8),
    )
    @settings(max_examples=20, deadline=None)
    def test_reconcile_completes_exactly_the_missing(self, found, keep):
        journal = make_temp_journal()
        try:
            first = [Annotation(file="f.py", line=i + 1, tag="TODO", message=m) for i, m in enumerate(found)]
            journal.sync(first)
            ids = {r.source_key: r.id for r in journal.list_all()}

            second = first[:keep]
            result = journal.sync(second)

            assert result.completed == len(first) - len(second)
            active = {r.source_key for r in journal.list_active()}
            assert active == {a.fingerprint for a in second}
            assert {r.source_key: r.id for r in journal.list_all()} == ids
        finally:
            journal.close()

    @given(found=st.lists(messages, max_size=8, unique=True))
    @settings(max_examples=20, deadline=None)
    def test_sync_is_idempotent(self, found):
        journal = make_temp_journal()
        try:
            annotations = [Annotation(file="f.py", line=1, tag="BUG", message=m) for m in found]
            journal.sync(annotations)
            before = [r.to_dict() for r in journal.list_all()]

            result = journal.sync(annotations)

            assert result.completed == 0
            assert [r.to_dict() for r in journal.list_all()] == before
            assert all(r.status == RecordStatus.ACTIVE for r in journal.list_all())
        finally:
            journal.close()
