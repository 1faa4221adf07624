"""
Fallback executor - sequential path used when parallel orchestration fails.

Shares nothing with the parallel run: it reloads the registry from its own
sources (backup first, then primary), recomputes bypass flags, and runs one
hook at a time through the blocking runner, stopping at the first block.
Per-hook semantics are the runner's, so the host sees the same contract.
"""
import time
from pathlib import Path

from parallel_hooks.bypass import BypassState
from parallel_hooks.config import DEFAULT_TOOL_MATCHER, Paths
from parallel_hooks.executor import AggregateVerdict, describe_result
from parallel_hooks.hook_sdk import HookEvent
from parallel_hooks.hook_utils import log_event, verbose
from parallel_hooks.registry import HookGroup, RegistryCorrupt, RegistryMissing, load_registry
from parallel_hooks.runner import ExecutionResult, run_hook_sync


def default_sources(project_dir: Path | None = None) -> list[Path]:
    backup = Paths.backup_registry(project_dir)
    primary = Paths.primary_registry(project_dir)
    return [backup] if backup == primary else [backup, primary]


class FallbackExecutor:
    mode = "sequential"

    def __init__(
        self,
        event_type: str = "PreToolUse",
        tool_matcher: str = DEFAULT_TOOL_MATCHER,
        sources: list[Path] | None = None,
        runner=run_hook_sync,
    ):
        self.event_type = event_type
        self.tool_matcher = tool_matcher
        self.sources = sources
        self._runner = runner

    def load_groups(self, event) -> list[HookGroup] | None:
        """Hook groups from the first usable source, or None if none parse."""
        tool_name = event.tool_name if isinstance(event, HookEvent) else ""
        for source in self.sources or default_sources():
            try:
                registry = load_registry(source)
            except RegistryMissing:
                continue
            except RegistryCorrupt as e:
                log_event("fallback_executor", "source_unusable", {
                    "source": str(source), "reason": e.reason,
                }, "warning")
                continue
            log_event("fallback_executor", "source_loaded", {"source": str(source)})
            return registry.select(self.event_type, tool_name, self.tool_matcher)
        return None

    def run(self, event) -> AggregateVerdict:
        state = BypassState.from_env()
        if state.global_reason:
            return AggregateVerdict.allow("bypassed", state.global_reason)

        groups = self.load_groups(event)
        if groups is None:
            log_event("fallback_executor", "no_hooks_executed", {"reason": "no usable registry"}, "warning")
            verbose("[parallel-hooks] fallback: no usable registry, allowing")
            return AggregateVerdict.allow("empty")

        groups, _skipped = state.filter_groups(groups)
        started = time.monotonic()
        results: list[ExecutionResult] = []
        for group in groups:
            for d in group.hooks:
                result = self._runner(d, event)
                results.append(result)
                verbose(describe_result(result))
                if result.blocks:
                    return self._finish(results, started)
        return self._finish(results, started)

    def _finish(self, results, started: float) -> AggregateVerdict:
        verdict = AggregateVerdict.from_results(
            results, self.mode, int((time.monotonic() - started) * 1000)
        )
        log_event("fallback_executor", "completed", {
            "decision": verdict.decision,
            "blocking_hook": verdict.blocking_hook,
            "hooks": len(results),
            "duration_ms": verdict.total_duration_ms,
        })
        return verdict
