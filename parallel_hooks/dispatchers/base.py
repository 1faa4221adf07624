"""
Base class for hook dispatchers.

A dispatcher is the host-facing entry point for one event type. Per
invocation it:
1. Derives bypass state from the environment (global bypass allows at once)
2. Loads the primary registry (unusable registry: empty hook set, allow)
3. Selects hooks for the event and drops bypassed ones
4. Runs them through the parallel executor
5. On any orchestration failure, reruns through the fallback executor;
   if that fails too, allows

Only a hook that ran to completion and exited 2 can make run() exit 2.

Subclasses override:
- DISPATCHER_NAME: Name for logging
- HOOK_EVENT_NAME: Registry section to read ("PreToolUse", "PostToolUse")
"""
import sys
import time
from pathlib import Path

from parallel_hooks.bypass import BypassState
from parallel_hooks.config import DEFAULT_TOOL_MATCHER, Paths, is_profile
from parallel_hooks.executor import AggregateVerdict, ParallelExecutor
from parallel_hooks.fallback import FallbackExecutor
from parallel_hooks.hook_sdk import HookEvent, exit_allow, exit_block
from parallel_hooks.hook_utils import log_event, verbose
from parallel_hooks.registry import load_hooks_or_empty


class BaseDispatcher:
    """Runs the registry's hooks for one host event type."""

    DISPATCHER_NAME: str = "dispatcher"
    HOOK_EVENT_NAME: str = "PreToolUse"

    def __init__(
        self,
        tool_matcher: str = DEFAULT_TOOL_MATCHER,
        event_type: str | None = None,
        registry_path: Path | None = None,
        fallback_sources: list[Path] | None = None,
        executor: ParallelExecutor | None = None,
    ):
        self.tool_matcher = tool_matcher
        self.event_type = event_type or self.HOOK_EVENT_NAME
        self._registry_path = registry_path
        self._fallback_sources = fallback_sources
        self.executor = executor or ParallelExecutor()

    @property
    def registry_path(self) -> Path:
        return self._registry_path or Paths.primary_registry()

    def _run_primary(self, event: HookEvent, state: BypassState) -> AggregateVerdict:
        groups, degraded = load_hooks_or_empty(
            self.registry_path, self.event_type, event.tool_name, self.tool_matcher
        )
        if degraded:
            verbose(f"[{self.DISPATCHER_NAME}] registry unusable, allowing")
            return AggregateVerdict.allow("degraded")

        groups, skipped = state.filter_groups(groups)
        for descriptor, reason in skipped:
            log_event(self.DISPATCHER_NAME, "hook_bypassed", {
                "hook": descriptor.command, "reason": reason,
            }, "debug")
            verbose(f"  [{descriptor.group}] skipped   {descriptor.command}  ({reason})")

        return self.executor.run(groups, event)

    def _run_fallback(self, event: HookEvent) -> AggregateVerdict:
        fallback = FallbackExecutor(
            self.event_type, self.tool_matcher, sources=self._fallback_sources
        )
        try:
            return fallback.run(event)
        except Exception as e:
            log_event(self.DISPATCHER_NAME, "fallback_failed", {
                "type": type(e).__name__, "msg": str(e),
            }, "error")
            return AggregateVerdict.allow("degraded")

    def dispatch(self, event) -> AggregateVerdict:
        """Decide one event. Never raises."""
        if not isinstance(event, HookEvent):
            event = HookEvent(event if isinstance(event, dict) else {})

        state = BypassState.from_env()
        if state.global_reason:
            log_event(self.DISPATCHER_NAME, "bypassed", {"reason": state.global_reason})
            verbose(f"[{self.DISPATCHER_NAME}] all hooks bypassed ({state.global_reason})")
            return AggregateVerdict.allow("bypassed", state.global_reason)

        try:
            verdict = self._run_primary(event, state)
        except Exception as e:
            log_event(self.DISPATCHER_NAME, "orchestration_error", {
                "type": type(e).__name__, "msg": str(e),
            }, "error")
            verbose(f"[{self.DISPATCHER_NAME}] parallel execution failed ({e}), using fallback")
            verdict = self._run_fallback(event)

        if verdict.blocked:
            log_event(self.DISPATCHER_NAME, "blocked", {
                "hook": verdict.blocking_hook,
                "tool": event.tool_name,
                "file": event.tool_input.file_path,
                "mode": verdict.mode,
            })
        return verdict

    def run(self) -> None:
        """Main entry point - read stdin, dispatch, exit with the host contract."""
        start_time = time.perf_counter()
        event = HookEvent.from_stdin()
        verdict = self.dispatch(event)

        if is_profile():
            total_ms = (time.perf_counter() - start_time) * 1000
            print(f"[{self.DISPATCHER_NAME}] TOTAL for {event.tool_name or 'unknown'}: "
                  f"{total_ms:.1f}ms ({len(verdict.results)} hooks, {verdict.mode})",
                  file=sys.stderr)

        if verdict.blocked:
            exit_block(verdict.blocking_message)
        exit_allow()
