"""
PostToolUse Dispatcher - runs hooks after a file tool has executed.

The operation already happened; a block surfaces the hook's message to the
host as feedback instead of preventing anything.
"""
from parallel_hooks.dispatchers.base import BaseDispatcher
from parallel_hooks.hook_utils import graceful_main


class PostToolDispatcher(BaseDispatcher):
    """Dispatcher for PostToolUse hooks."""

    DISPATCHER_NAME = "post_tool_dispatcher"
    HOOK_EVENT_NAME = "PostToolUse"


@graceful_main("post_tool_dispatcher")
def main():
    PostToolDispatcher().run()


if __name__ == "__main__":
    main()
