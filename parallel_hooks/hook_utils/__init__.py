"""
Hook utilities package - shared utilities for the hook engine.

Usage:
    from parallel_hooks.hook_utils import log_event, graceful_main, verbose
    # or
    from parallel_hooks.hook_utils.logging import log_event
    from parallel_hooks.hook_utils.io import atomic_write_text
"""

from .logging import (
    LogOnce,
    log_once,
    log_event,
    verbose,
    graceful_main,
    read_stdin_context,
)

from .io import (
    file_lock,
    atomic_write_text,
    safe_stat,
    is_executable,
    expand_path,
)

from .cache import (
    create_lru_cache,
    cached_call,
)

__all__ = [
    # Logging
    "LogOnce",
    "log_once",
    "log_event",
    "verbose",
    "graceful_main",
    "read_stdin_context",
    # I/O
    "file_lock",
    "atomic_write_text",
    "safe_stat",
    "is_executable",
    "expand_path",
    # Cache
    "create_lru_cache",
    "cached_call",
]
