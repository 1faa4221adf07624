"""
Logging and graceful degradation utilities.

Uses loguru for structured JSON logging with automatic rotation.
LogOnce keeps repeated registry warnings out of the log between events.
"""
import sys
import time
from functools import wraps
from typing import Callable

from loguru import logger

from parallel_hooks.config import DATA_DIR, LOG_FILE, ExitCodes, JSONDecodeError, fast_json_loads, is_verbose


# =============================================================================
# Duplicate suppression for repeated config warnings
# =============================================================================

class LogOnce:
    """Emit each (component, event, message) at most once per window.

    Registry warnings repeat for every file the host touches. The first
    occurrence is logged, repeats inside the window are counted, and the first
    occurrence after the window reports how many were dropped as `suppressed`.
    """

    def __init__(self, period_sec: int = 300):
        self.period_sec = period_sec
        self._seen: dict[tuple, list] = {}  # key -> [window_start, repeats]

    def _admit(self, key: tuple) -> int | None:
        """Suppressed count to report if the message may be logged, else None."""
        now = time.monotonic()
        entry = self._seen.get(key)
        if entry is not None and now - entry[0] < self.period_sec:
            entry[1] += 1
            return None
        self._seen[key] = [now, 0]
        return entry[1] if entry is not None else 0

    def error(self, component: str, event_type: str, message: str, **extra):
        self._emit(component, event_type, message, "error", extra)

    def warning(self, component: str, event_type: str, message: str, **extra):
        self._emit(component, event_type, message, "warning", extra)

    def _emit(self, component: str, event_type: str, message: str, level: str, extra: dict):
        suppressed = self._admit((component, event_type, message))
        if suppressed is None:
            return
        data = {"msg": message, **extra}
        if suppressed:
            data["suppressed"] = suppressed
        log_event(component, event_type, data, level)


# Used by the registry loader (5 minute window)
log_once = LogOnce(period_sec=300)

# Configure loguru: JSON format, 10MB rotation, keep 3 files
# Remove default stderr handler, add file handler
logger.remove()
try:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        LOG_FILE,
        format="{message}",
        serialize=True,  # JSON output
        rotation="10 MB",
        retention=3,
        compression="gz",
        enqueue=True,  # Thread-safe
        catch=True,  # Never raise
    )
except OSError:
    # Read-only home: run without the event log
    pass


def log_event(component: str, event_type: str, data: dict = None, level: str = "info"):
    """
    Log structured event using loguru.

    Args:
        component: Engine component (e.g., "parallel_executor", "registry")
        event_type: Event type (e.g., "blocked", "hook_timeout")
        data: Additional context data
        level: Log level (debug, info, warning, error)
    """
    try:
        log_func = getattr(logger, level, logger.info)
        log_func(event_type, component=component, **(data or {}))
    except Exception:
        pass  # Never raise


def verbose(message: str):
    """Write a human-readable line to stderr when HOOK_VERBOSE=true."""
    if is_verbose():
        try:
            sys.stderr.write(message.rstrip("\n") + "\n")
        except (OSError, ValueError):
            pass


def graceful_main(component: str):
    """
    Decorator for entry point functions.
    Ensures graceful degradation - logs errors but never blocks the host.

    Usage:
        @graceful_main("pre_tool_dispatcher")
        def main():
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SystemExit:
                raise
            except JSONDecodeError as e:
                log_event(component, "error", {"type": "json_decode", "msg": str(e)}, "error")
                sys.exit(ExitCodes.ALLOW)
            except Exception as e:
                log_event(component, "error", {"type": type(e).__name__, "msg": str(e)}, "error")
                verbose(f"[{component}] fatal error: {e}")
                sys.exit(ExitCodes.ALLOW)
        return wrapper
    return decorator


def read_stdin_context() -> dict:
    """Read and parse the host event from stdin using msgspec.

    Text that is not a JSON object is wrapped as {"raw": text}.
    """
    try:
        data = sys.stdin.buffer.read()
    except (OSError, ValueError, AttributeError):
        return {}
    data = data.strip()
    if not data:
        return {}
    try:
        parsed = fast_json_loads(data)
    except JSONDecodeError:
        return {"raw": data.decode("utf-8", errors="replace")}
    return parsed if isinstance(parsed, dict) else {"raw": parsed}
