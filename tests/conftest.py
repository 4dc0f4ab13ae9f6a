"""Shared pytest fixtures for inline-issues tests."""

import logging
import shutil
import subprocess
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from inline_issues.config import ProjectConfig
from inline_issues.engine import IssueEngine
from inline_issues.journal import IssueJournal

HAS_GIT = shutil.which("git") is not None

requires_git = pytest.mark.skipif(not HAS_GIT, reason="git is not installed")


class FakeClock:
    """Controllable clock for journal timestamps."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 17, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


def git_init(root: Path) -> None:
    """Turn a directory into a git work tree with no commits."""
    subprocess.run(["git", "init", "-q", str(root)], check=True)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo CLI logging setup so caplog sees package records."""
    yield
    pkg_logger = logging.getLogger("inline_issues")
    pkg_logger.handlers.clear()
    pkg_logger.setLevel(logging.NOTSET)
    pkg_logger.propagate = True


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def git_project(temp_project):
    """A temporary project that is also a git work tree."""
    if not HAS_GIT:
        pytest.skip("git is not installed")
    git_init(temp_project)
    return temp_project


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return ProjectConfig(
        project_name="test-project",
        project_root=temp_project,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def journal(temp_project, clock):
    """Create a standalone journal with a controllable clock."""
    jrnl = IssueJournal(temp_project / "journal.db", clock=clock)
    yield jrnl
    jrnl.close()


@pytest.fixture
def engine(config, clock):
    """Create a test engine with proper cleanup."""
    eng = IssueEngine(config, clock=clock)
    yield eng
    eng.close()
