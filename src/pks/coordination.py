"""Cross-process coordination for initialization runs.

Two ``pks-init`` runs against the same target directory would race on the
same file tree. Each run holds a file lock keyed by the resolved target
path. Lock files live under the system temp directory so they never make
the target directory non-empty, and they auto-release on process crash
since they are backed by filelock.FileLock.
"""

from __future__ import annotations

import hashlib
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from filelock import FileLock, Timeout


def _lock_dir() -> Path:
    """Return (and lazily create) the lock directory."""
    d = Path(tempfile.gettempdir()) / "pks-locks"
    d.mkdir(parents=True, exist_ok=True)
    return d


def _lock_path(target_directory: Union[str, Path]) -> Path:
    """Return the lock file path for a target directory."""
    resolved = str(Path(target_directory).expanduser().resolve())
    digest = hashlib.sha1(resolved.encode("utf-8")).hexdigest()[:16]
    return _lock_dir() / f"init-{digest}.lock"


def try_lock(target_directory: Union[str, Path]) -> Optional[FileLock]:
    """Non-blocking lock attempt for a target directory.

    Returns:
        The acquired :class:`filelock.FileLock` if successful, or ``None``
        if another run already holds it. The caller is responsible for
        calling ``lock.release()`` when done.
    """
    lock = FileLock(_lock_path(target_directory))
    try:
        lock.acquire(timeout=0)
        return lock
    except Timeout:
        return None


@contextmanager
def run_lock(target_directory: Union[str, Path]) -> Generator[Optional[FileLock], None, None]:
    """Context manager around :func:`try_lock`.

    Yields:
        The held lock, or ``None`` when another run holds it.
    """
    lock = try_lock(target_directory)
    try:
        yield lock
    finally:
        if lock is not None:
            lock.release()
