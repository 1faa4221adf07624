"""
Hook SDK - Typed event model shared by the engine and by hooks written in Python.

Provides:
- Typed event dataclasses (HookEvent, ToolInput)
- Exit helpers that honor the hook exit-code contract (exit_allow, exit_block)
- BlockingHook base class for validators

Exit-code contract every hook honors:
    0  allowed
    2  blocked, stderr text is the reason shown to the host
    *  anything else is treated as an error and allows the operation

Usage:
    from parallel_hooks.hook_sdk import BlockingHook, HookEvent

    class NoSecrets(BlockingHook):
        def check(self, event: HookEvent) -> str | None:
            if ".env" in event.tool_input.file_path:
                return "Refusing to touch .env files"
            return None

    if __name__ == "__main__":
        NoSecrets("no_secrets").main()
"""
import sys
from dataclasses import dataclass, field
from typing import Any, Literal

from parallel_hooks.config import ExitCodes
from parallel_hooks.hook_utils import log_event, read_stdin_context

EventType = Literal["PreToolUse", "PostToolUse"]

FILE_TOOLS = frozenset({"Write", "Edit", "MultiEdit"})


# =============================================================================
# Event Dataclasses
# =============================================================================

@dataclass
class ToolInput:
    """Parsed tool input with typed accessors.

    Explicit properties provide IDE autocomplete; __getattr__ covers the rest.
    """
    raw: dict = field(default_factory=dict)

    @property
    def file_path(self) -> str:
        return self.raw.get("file_path", "") or ""

    @property
    def content(self) -> str:
        return self.raw.get("content", "") or ""

    @property
    def old_string(self) -> str:
        return self.raw.get("old_string", "") or ""

    @property
    def new_string(self) -> str:
        return self.raw.get("new_string", "") or ""

    @property
    def edits(self) -> list[dict]:
        edits = self.raw.get("edits")
        return edits if isinstance(edits, list) else []

    def __getattr__(self, name: str) -> Any:
        """Fallback for any attribute not explicitly defined."""
        if name.startswith('_'):
            raise AttributeError(name)
        return self.raw.get(name)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


@dataclass
class HookEvent:
    """One file-operation event from the host. Read-only to hooks."""
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_stdin(cls) -> "HookEvent":
        return cls(read_stdin_context())

    @property
    def tool_name(self) -> str:
        value = self.raw.get("tool_name", "")
        return value if isinstance(value, str) else ""

    @property
    def tool_input(self) -> ToolInput:
        value = self.raw.get("tool_input")
        return ToolInput(value if isinstance(value, dict) else {})

    @property
    def prompt(self) -> str | None:
        return self.raw.get("prompt")

    @property
    def is_file_op(self) -> bool:
        return self.tool_name in FILE_TOOLS

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


# =============================================================================
# Exit Helpers
# =============================================================================

def exit_allow():
    """Allow the operation."""
    sys.exit(ExitCodes.ALLOW)


def exit_block(reason: str):
    """Block the operation; reason is surfaced verbatim to the host."""
    sys.stderr.write(reason if reason.endswith("\n") else reason + "\n")
    sys.exit(ExitCodes.BLOCK)


class BlockingHook:
    """Base class for validator hooks.

    Subclasses implement check() and return a reason string to block, or
    None to allow. main() reads the event from stdin and exits with the
    contract's codes. Exceptions in check() exit 1, which the engine treats
    as an errored (allowing) hook.
    """

    def __init__(self, name: str):
        self.name = name

    def check(self, event: HookEvent) -> str | None:
        raise NotImplementedError

    def __call__(self, event: HookEvent) -> str | None:
        reason = self.check(event)
        if reason:
            log_event(self.name, "blocked", {
                "tool": event.tool_name,
                "file": event.tool_input.file_path,
            })
        return reason

    def main(self):
        event = HookEvent.from_stdin()
        try:
            reason = self(event)
        except Exception as e:
            log_event(self.name, "error", {"type": type(e).__name__, "msg": str(e)}, "error")
            sys.exit(1)
        if reason:
            exit_block(reason)
        exit_allow()
