"""Exception hierarchy for inline-issues."""

from __future__ import annotations


class IssuesError(Exception):
    """Base exception for inline-issues operations."""
    pass


class ConfigError(IssuesError):
    """Raised when a configuration file cannot be loaded."""
    pass


class ScanError(IssuesError):
    """Raised when files cannot be enumerated or read during a scan."""
    pass


class JournalError(IssuesError):
    """Base exception for journal operations."""
    pass


class RecordNotFoundError(JournalError):
    """Raised when a journal record id does not exist."""
    pass


class InvalidTransitionError(JournalError):
    """Raised when a status change is not allowed for a record."""
    pass


class LockTimeoutError(IssuesError):
    """Raised when another writer holds a data file's lock for too long."""
    pass
