"""Tokenizer for inline annotation comments.

A line such as ``# TODO!: @alice [2024-01-05] (#42) fix the thing`` yields
tag ``TODO``, priority ``high`` and the raw message
``@alice [2024-01-05] (#42) fix the thing``. :func:`extract_metadata` then
peels the owner, date and ticket id off the front of that message.

Both functions work on raw text lines and know nothing about the comment
syntax of any particular language.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import Annotation, Priority

# Longest marker first so that "!!" is never read as "!".
PRIORITY_MARKERS: tuple[tuple[str, Priority], ...] = (
    ("!!", Priority.CRITICAL),
    ("!", Priority.HIGH),
    ("?", Priority.LOW),
)

SEPARATOR = ":"

_HSPACE = " \t"
_OWNER_RE = re.compile(r"[\w-]+")
_ID_RE = re.compile(r"#[0-9]+|[A-Z]+-[0-9]+")
_ID_CLOSERS = {"(": ")", "[": "]"}


@dataclass(frozen=True)
class RawAnnotation:
    """Tag, priority and untouched message text of a matched line."""
    tag: str
    priority: Priority
    message: str


@dataclass(frozen=True)
class ExtractedMetadata:
    """Metadata fields peeled off the front of a raw message."""
    message: str
    owner: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _normalize_tags(tags: Iterable[str]) -> list[str]:
    """Uppercase and dedupe tags, longest first."""
    seen: dict[str, None] = {}
    for tag in tags:
        tag = tag.strip().upper()
        if tag:
            seen.setdefault(tag, None)
    return sorted(seen, key=len, reverse=True)


def _match_tag(line: str, pos: int, tags: list[str]) -> Optional[str]:
    for tag in tags:
        candidate = line[pos:pos + len(tag)]
        if len(candidate) == len(tag) and candidate.upper() == tag:
            return tag
    return None


def parse_line(
    line: str,
    tags: Iterable[str],
    markers: tuple[tuple[str, Priority], ...] = PRIORITY_MARKERS,
) -> Optional[RawAnnotation]:
    """Find the first tagged annotation in a line.

    Scans left to right. A tag only starts where the previous character is
    not a letter, digit or underscore. After the tag an optional priority
    marker may follow, and then the ``:`` separator is required. When the
    separator is missing the candidate is dropped and scanning resumes at the
    next position; another tag is never retried at the failed position.

    Args:
        line: One line of text, without its newline
        tags: Recognized tag keywords, matched case-insensitively
        markers: Ordered (marker, priority) pairs, longest marker first

    Returns:
        RawAnnotation with the uppercased tag, or None if the line has no
        annotation
    """
    ordered = _normalize_tags(tags)
    if not ordered:
        return None
    first_chars = {tag[0] for tag in ordered}

    for pos, ch in enumerate(line):
        if ch.upper() not in first_chars:
            continue
        if pos > 0 and _is_word_char(line[pos - 1]):
            continue

        tag = _match_tag(line, pos, ordered)
        if tag is None:
            continue

        cursor = pos + len(tag)
        priority = Priority.NORMAL
        for marker, marker_priority in markers:
            if line.startswith(marker, cursor):
                priority = marker_priority
                cursor += len(marker)
                break

        if not line.startswith(SEPARATOR, cursor):
            continue

        message = line[cursor + len(SEPARATOR):].strip()
        if not message:
            continue
        return RawAnnotation(tag=tag, priority=priority, message=message)

    return None


def _skip_hspace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _HSPACE:
        pos += 1
    return pos


def _skip_separator(text: str, pos: int) -> int:
    """Swallow whitespace, one optional ':' and the whitespace after it."""
    pos = _skip_hspace(text, pos)
    if text.startswith(SEPARATOR, pos):
        pos = _skip_hspace(text, pos + len(SEPARATOR))
    return pos


def _take_delimited(text: str, pos: int, closer: str) -> Optional[tuple[str, int]]:
    """Return the content between text[pos] and the next closer, and the end.

    Returns None when the closer never appears.
    """
    end = text.find(closer, pos + 1)
    if end == -1:
        return None
    return text[pos + 1:end], end + 1


def _take_owner(text: str, pos: int) -> tuple[Optional[str], int]:
    if not text.startswith("@", pos):
        return None, pos
    match = _OWNER_RE.match(text, pos + 1)
    if match is None:
        return None, pos
    return match.group(), _skip_separator(text, match.end())


def _take_date_or_category(text: str, pos: int) -> tuple[Optional[str], Optional[str], int]:
    if not text.startswith("[", pos):
        return None, None, pos
    taken = _take_delimited(text, pos, "]")
    if taken is None or not taken[0]:
        return None, None, pos
    content, end = taken
    end = _skip_separator(text, end)
    if any(ch.isdigit() or ch == "-" for ch in content):
        return content, None, end
    return None, content, end


def _take_id(text: str, pos: int) -> tuple[Optional[str], int]:
    closer = _ID_CLOSERS.get(text[pos:pos + 1])
    if closer is None:
        return None, pos
    taken = _take_delimited(text, pos, closer)
    if taken is None or not _ID_RE.fullmatch(taken[0]):
        return None, pos
    content, end = taken
    return content, _skip_separator(text, end)


def extract_metadata(message: str) -> ExtractedMetadata:
    """Peel owner, date-or-category and id off the front of a message.

    Consumers run in a fixed order and each one only looks at the text the
    previous one left:

    1. ``@owner``
    2. ``[...]`` - a date when the content holds a digit or ``-``,
       otherwise a category
    3. ``(#42)``, ``(ABC-12)``, ``[#42]`` or ``[ABC-12]`` - a ticket id

    A malformed token is left in the message untouched. This never raises.
    """
    text = message.strip()
    owner, pos = _take_owner(text, 0)
    date, category, pos = _take_date_or_category(text, pos)
    issue_id, pos = _take_id(text, pos)
    return ExtractedMetadata(
        message=text[pos:].strip(),
        owner=owner,
        date=date,
        category=category,
        id=issue_id,
    )


def parse_annotation(line: str, file: str, line_number: int, tags: Iterable[str]) -> Optional[Annotation]:
    """Parse one source line into a full Annotation, or None."""
    raw = parse_line(line, tags)
    if raw is None:
        return None
    meta = extract_metadata(raw.message)
    return Annotation(
        file=file,
        line=line_number,
        tag=raw.tag,
        message=meta.message,
        priority=raw.priority,
        owner=meta.owner,
        date=meta.date,
        category=meta.category,
        id=meta.id,
    )
