"""Single-writer locking and atomic file replacement."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, TextIO

import portalocker

from .errors import LockTimeoutError


def lock_path_for(path: Path) -> Path:
    """Return the lock file guarding a data file."""
    return path.with_suffix(path.suffix + ".lock")


@contextmanager
def writer_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold the exclusive writer lock for a data file.

    Only one process may mutate the journal (or rewrite a snapshot) at a
    time; a second writer waits up to ``timeout`` seconds.

    Raises:
        LockTimeoutError: If the lock cannot be acquired in time
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    lock = portalocker.Lock(lock_path, timeout=timeout)
    try:
        lock.acquire()
    except portalocker.LockException as e:
        raise LockTimeoutError(f"{path} is locked by another writer") from e
    try:
        yield
    finally:
        lock.release()


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator[TextIO, None, None]:
    """Write a text file by renaming a finished temp file over it.

    Readers see either the old content or the new content, never a mix.
    """
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding=encoding, newline="\n") as f:
            yield f
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


@contextmanager
def locked_atomic_write(path: Path, encoding: str = "utf-8", timeout: float = 10.0) -> Generator[TextIO, None, None]:
    """Atomic write while holding the writer lock for path."""
    with writer_lock(path, timeout=timeout):
        with atomic_write(path, encoding=encoding) as f:
            yield f
