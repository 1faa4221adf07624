"""
File I/O utilities with locking and graceful error handling.

Includes:
- File locking (file_lock)
- Atomic text writes (atomic_write_text)
- Safe file operations (safe_stat, is_executable)
- Path utilities (expand_path)
"""
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

PathLike = str | Path


@contextmanager
def file_lock(path: PathLike, timeout: float = 10.0):
    """
    Context manager for exclusive path-based locking.

    Uses the filelock library (cross-platform). The lock file sits next to
    the target as "<name>.lock".

    Usage:
        with file_lock("/path/to/report.txt", timeout=10.0):
            # perform atomic operation
    """
    lock = FileLock(f"{Path(path)}.lock", timeout=timeout)
    lock.acquire()
    try:
        yield
    finally:
        try:
            lock.release()
        except Exception:
            pass


def atomic_write_text(path: PathLike, text: str, lock_timeout: float = 10.0) -> bool:
    """
    Write text atomically using temp file + rename, under a file lock.

    Returns False (never raises) if the write or the lock fails.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with file_lock(path, timeout=lock_timeout):
            fd, temp_path = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(temp_path, path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        return True
    except (OSError, Timeout):
        return False


# =============================================================================
# Safe File Operations
# =============================================================================

def safe_stat(path: PathLike) -> os.stat_result | None:
    """Get file stats safely, return None on error."""
    try:
        return os.stat(path)
    except (FileNotFoundError, PermissionError, OSError):
        return None


def is_executable(st: os.stat_result | None) -> bool:
    """True if any execute bit is set on a regular file."""
    if st is None or not stat.S_ISREG(st.st_mode):
        return False
    return bool(st.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


# =============================================================================
# Path Utilities
# =============================================================================

def expand_path(path: str) -> str:
    """Expand ~, environment variables, and normalize path."""
    expanded = os.path.expandvars(os.path.expanduser(path))
    return os.path.normpath(expanded)
