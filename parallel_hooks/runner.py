"""
Hook runner - executes one hook as an isolated child process.

Each hook gets the host event as JSON on stdin and answers with its exit code:
0 allowed, 2 blocked (stderr is the reason), anything else errored. A hook
that outlives its timeout has its whole process group killed and is recorded
as timed_out. Errored and timed_out hooks never block.

Two entry points share one contract:
    run_hook()       async, used by the parallel executor
    run_hook_sync()  blocking, used by the fallback executor and diagnostics

Failures of a single hook never escape as exceptions. The exception is
SpawnUnavailable: the OS refused to create any process at all (descriptor or
memory exhaustion), which is an orchestration failure, not a hook failure.
"""
import asyncio
import errno
import os
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from enum import Enum

from parallel_hooks.config import ExitCodes, Paths, Timeouts, fast_json_dumps
from parallel_hooks.hook_sdk import HookEvent
from parallel_hooks.registry import HookDescriptor

# errno values meaning "no process can be spawned right now"
_RESOURCE_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE, errno.EAGAIN, errno.ENOMEM})


class OrchestrationError(Exception):
    """The engine's own control flow failed; triggers the fallback path."""


class SpawnUnavailable(OrchestrationError):
    """The OS cannot spawn processes (EMFILE, ENFILE, EAGAIN, ENOMEM)."""


class Outcome(str, Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    ERRORED = "errored"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ExecutionResult:
    hook_command: str
    outcome: Outcome
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    group: str = ""
    error: str | None = None

    @property
    def blocks(self) -> bool:
        return self.outcome is Outcome.BLOCKED

    @property
    def message(self) -> str:
        """Block reason, verbatim: stderr, else stdout. Whitespace-only output counts as none."""
        if self.stderr.strip():
            return self.stderr
        if self.stdout.strip():
            return self.stdout
        return ""


def classify_exit(exit_code: int | None) -> Outcome:
    if exit_code == ExitCodes.ALLOW:
        return Outcome.ALLOWED
    if exit_code == ExitCodes.BLOCK:
        return Outcome.BLOCKED
    return Outcome.ERRORED


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def build_result(
    descriptor: HookDescriptor,
    outcome: Outcome,
    started: float,
    exit_code: int | None = None,
    stdout: bytes | None = None,
    stderr: bytes | None = None,
    error: str | None = None,
) -> ExecutionResult:
    return ExecutionResult(
        hook_command=descriptor.command,
        outcome=outcome,
        exit_code=exit_code,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
        duration_ms=int((time.monotonic() - started) * 1000),
        group=descriptor.group,
        error=error,
    )


def _payload(event) -> bytes:
    raw = event.raw if isinstance(event, HookEvent) else event
    return fast_json_dumps(raw or {})


def _argv(descriptor: HookDescriptor) -> list[str]:
    """Split the command; ValueError for empty or unparsable commands."""
    argv = shlex.split(descriptor.command)
    if not argv:
        raise ValueError("empty command")
    return argv


def _spawn_error(descriptor: HookDescriptor, e: OSError, started: float) -> ExecutionResult:
    if e.errno in _RESOURCE_ERRNOS:
        raise SpawnUnavailable(f"cannot spawn {descriptor.command!r}: {e}") from e
    return build_result(descriptor, Outcome.ERRORED, started, error=f"spawn failed: {e}")


def _kill_group(pid: int):
    try:
        os.killpg(pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def _timeout_text(descriptor: HookDescriptor) -> str:
    return f"timed out after {descriptor.timeout_ms}ms"


# =============================================================================
# Async path
# =============================================================================

async def run_hook(descriptor: HookDescriptor, event) -> ExecutionResult:
    """Run one hook without blocking the event loop."""
    started = time.monotonic()
    try:
        argv = _argv(descriptor)
    except ValueError as e:
        return build_result(descriptor, Outcome.ERRORED, started, error=f"bad command: {e}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(Paths.project_dir()),
            start_new_session=True,
        )
    except OSError as e:
        return _spawn_error(descriptor, e, started)

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(input=_payload(event)),
            timeout=descriptor.timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        _kill_group(process.pid)
        try:
            await asyncio.wait_for(process.wait(), timeout=Timeouts.KILL_GRACE_MS / 1000)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
        return build_result(descriptor, Outcome.TIMED_OUT, started, error=_timeout_text(descriptor))

    return build_result(
        descriptor, classify_exit(process.returncode), started,
        exit_code=process.returncode, stdout=stdout, stderr=stderr,
    )


# =============================================================================
# Sync path
# =============================================================================

def run_hook_sync(descriptor: HookDescriptor, event) -> ExecutionResult:
    """Run one hook, blocking until it exits or times out."""
    started = time.monotonic()
    try:
        argv = _argv(descriptor)
    except ValueError as e:
        return build_result(descriptor, Outcome.ERRORED, started, error=f"bad command: {e}")

    try:
        process = subprocess.Popen(
            argv,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(Paths.project_dir()),
            start_new_session=True,
        )
    except OSError as e:
        return _spawn_error(descriptor, e, started)

    try:
        stdout, stderr = process.communicate(
            input=_payload(event), timeout=descriptor.timeout_ms / 1000
        )
    except subprocess.TimeoutExpired:
        _kill_group(process.pid)
        try:
            process.communicate(timeout=Timeouts.KILL_GRACE_MS / 1000)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        return build_result(descriptor, Outcome.TIMED_OUT, started, error=_timeout_text(descriptor))

    return build_result(
        descriptor, classify_exit(process.returncode), started,
        exit_code=process.returncode, stdout=stdout, stderr=stderr,
    )
