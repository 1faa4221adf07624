"""Hook dispatchers - one per event type, plus the `parallel-hooks` entry point.

Usage (as the host's hook command):
    parallel-hooks [PreToolUse|PostToolUse] [TOOL_MATCHER]

Defaults: PreToolUse, "Write|Edit|MultiEdit". Other event types are served
by a plain BaseDispatcher reading that section of the registry.
"""
import sys

from parallel_hooks.config import DEFAULT_TOOL_MATCHER
from parallel_hooks.dispatchers.base import BaseDispatcher
from parallel_hooks.dispatchers.post_tool import PostToolDispatcher
from parallel_hooks.dispatchers.pre_tool import PreToolDispatcher
from parallel_hooks.hook_utils import graceful_main

DISPATCHERS: dict[str, type[BaseDispatcher]] = {
    "PreToolUse": PreToolDispatcher,
    "PostToolUse": PostToolDispatcher,
}


def create_dispatcher(event_type: str = "PreToolUse", tool_matcher: str = DEFAULT_TOOL_MATCHER) -> BaseDispatcher:
    cls = DISPATCHERS.get(event_type)
    if cls is None:
        return BaseDispatcher(tool_matcher, event_type=event_type)
    return cls(tool_matcher)


@graceful_main("parallel_hooks")
def main(argv: list[str] | None = None):
    args = sys.argv[1:] if argv is None else argv
    event_type = args[0] if args else "PreToolUse"
    tool_matcher = args[1] if len(args) > 1 else DEFAULT_TOOL_MATCHER
    create_dispatcher(event_type, tool_matcher).run()


__all__ = [
    "BaseDispatcher",
    "PreToolDispatcher",
    "PostToolDispatcher",
    "DISPATCHERS",
    "create_dispatcher",
    "main",
]
