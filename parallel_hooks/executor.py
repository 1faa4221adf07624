"""
Parallel executor - runs selected hook groups and aggregates one verdict.

Groups run in order. Hooks inside a group run concurrently as separate OS
processes; the next group starts only once every hook in the current group
has a result. A group that produces a block stops the run: later groups are
never started, but siblings already in flight are always awaited.

The verdict's blocking hook is the first blocked result in group order, then
declaration order, independent of which hook finished first.
"""
import asyncio
import time
from dataclasses import dataclass

from parallel_hooks.config import DEFAULT_BLOCK_MESSAGE, Thresholds
from parallel_hooks.hook_utils import log_event, verbose
from parallel_hooks.registry import HookGroup
from parallel_hooks.runner import ExecutionResult, OrchestrationError, Outcome, run_hook

ALLOW = "allow"
BLOCK = "block"


@dataclass(frozen=True)
class AggregateVerdict:
    decision: str
    blocking_hook: str | None = None
    blocking_message: str | None = None
    results: tuple[ExecutionResult, ...] = ()
    total_duration_ms: int = 0
    mode: str = "parallel"  # parallel | sequential | bypassed | degraded | empty
    bypass_reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.decision == BLOCK

    @classmethod
    def allow(cls, mode: str, bypass_reason: str | None = None) -> "AggregateVerdict":
        return cls(decision=ALLOW, mode=mode, bypass_reason=bypass_reason)

    @classmethod
    def from_results(cls, results, mode: str, total_duration_ms: int) -> "AggregateVerdict":
        results = tuple(results)
        for r in results:
            if r.blocks:
                return cls(
                    decision=BLOCK,
                    blocking_hook=r.hook_command,
                    blocking_message=r.message or DEFAULT_BLOCK_MESSAGE,
                    results=results,
                    total_duration_ms=total_duration_ms,
                    mode=mode,
                )
        return cls(decision=ALLOW, results=results, total_duration_ms=total_duration_ms, mode=mode)

    def stats(self) -> dict:
        """Per-outcome counts, per-group timings and parallel efficiency."""
        durations = [r.duration_ms for r in self.results]
        summed = sum(durations)
        longest = max(durations, default=0)
        by_outcome = {o.value: 0 for o in Outcome}
        by_group: dict[str, dict] = {}
        for r in self.results:
            by_outcome[r.outcome.value] += 1
            g = by_group.setdefault(r.group, {"count": 0, "duration_ms": 0, "success": True})
            g["count"] += 1
            g["duration_ms"] += r.duration_ms
            if r.outcome is not Outcome.ALLOWED:
                g["success"] = False
        return {
            "total_hooks": len(self.results),
            "total_duration_ms": self.total_duration_ms,
            "summed_hook_ms": summed,
            "max_hook_ms": longest,
            "parallel_efficiency": round(summed / longest, 2) if longest else 0,
            "outcomes": by_outcome,
            "by_group": by_group,
        }


def describe_result(r: ExecutionResult) -> str:
    """One human line per hook for verbose output."""
    line = f"  [{r.group}] {r.outcome.value:<9} {r.duration_ms:>5}ms  {r.hook_command}"
    if r.error:
        line += f"  ({r.error})"
    return line


class ParallelExecutor:
    """Runs groups concurrently-within, sequentially-across."""

    mode = "parallel"

    def __init__(self, runner=run_hook, latency_target_ms: int | None = None):
        self._runner = runner
        self._latency_target_ms = latency_target_ms

    async def _run_group(self, group: HookGroup, event) -> list[ExecutionResult]:
        outcomes = await asyncio.gather(
            *(self._runner(d, event) for d in group.hooks),
            return_exceptions=True,
        )
        # Every sibling has settled by now; surface orchestration failures only after that
        for item in outcomes:
            if isinstance(item, BaseException):
                if isinstance(item, OrchestrationError):
                    raise item
                raise OrchestrationError(f"group {group.name!r}: {item!r}") from item
        return list(outcomes)

    async def run_async(self, groups: list[HookGroup], event) -> AggregateVerdict:
        started = time.monotonic()
        results: list[ExecutionResult] = []

        for i, group in enumerate(groups):
            group_results = await self._run_group(group, event)
            results.extend(group_results)
            for r in group_results:
                verbose(describe_result(r))
            if any(r.blocks for r in group_results):
                log_event("parallel_executor", "short_circuit", {
                    "group": group.name,
                    "skipped_groups": [g.name for g in groups[i + 1:]],
                })
                break

        total_ms = int((time.monotonic() - started) * 1000)
        verdict = AggregateVerdict.from_results(results, self.mode, total_ms)
        self._check_latency(verdict)
        return verdict

    def run(self, groups: list[HookGroup], event) -> AggregateVerdict:
        """Blocking entry point. Raises OrchestrationError on engine failure."""
        if not groups:
            return AggregateVerdict.allow("empty")
        try:
            return asyncio.run(self.run_async(groups, event))
        except OrchestrationError:
            raise
        except Exception as e:
            raise OrchestrationError(f"parallel execution failed: {e!r}") from e

    def _check_latency(self, verdict: AggregateVerdict):
        target = self._latency_target_ms or Thresholds.latency_target_ms()
        stats = verdict.stats()
        log_event("parallel_executor", "completed", {
            "decision": verdict.decision,
            "blocking_hook": verdict.blocking_hook,
            "duration_ms": verdict.total_duration_ms,
            "hooks": stats["total_hooks"],
            "parallel_efficiency": stats["parallel_efficiency"],
        })
        if verdict.total_duration_ms > target:
            log_event("parallel_executor", "latency_target_exceeded", {
                "duration_ms": verdict.total_duration_ms,
                "target_ms": target,
            }, "warning")
            verbose(f"[parallel-hooks] {verdict.total_duration_ms}ms exceeds {target}ms target")
