"""
PreToolUse Dispatcher - runs validation hooks before a file tool executes.

A block here stops the host's Write/Edit/MultiEdit from happening.

Environment variables:
- HOOK_PROFILE=1: Total dispatch timing on stderr
- HOOK_VERBOSE=true: Per-hook outcome lines on stderr
"""
from parallel_hooks.dispatchers.base import BaseDispatcher
from parallel_hooks.hook_utils import graceful_main


class PreToolDispatcher(BaseDispatcher):
    """Dispatcher for PreToolUse hooks."""

    DISPATCHER_NAME = "pre_tool_dispatcher"
    HOOK_EVENT_NAME = "PreToolUse"


@graceful_main("pre_tool_dispatcher")
def main():
    PreToolDispatcher().run()


if __name__ == "__main__":
    main()
