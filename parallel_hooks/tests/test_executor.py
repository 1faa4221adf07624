"""Tests for the parallel executor and AggregateVerdict."""
import asyncio
import time

import pytest

from parallel_hooks.config import DEFAULT_BLOCK_MESSAGE
from parallel_hooks.executor import AggregateVerdict, ParallelExecutor
from parallel_hooks.registry import HookDescriptor, HookGroup
from parallel_hooks.runner import ExecutionResult, OrchestrationError, Outcome, SpawnUnavailable


def _group(name: str, *commands: str, timeout_ms: int = 5000) -> HookGroup:
    return HookGroup(name, tuple(HookDescriptor(c, frozenset(), timeout_ms, name) for c in commands))


def _result(command: str, outcome: Outcome, duration_ms: int = 10, group: str = "high", **kw) -> ExecutionResult:
    return ExecutionResult(command, outcome, kw.get("exit_code"), kw.get("stdout", ""),
                           kw.get("stderr", ""), duration_ms, group)


def _comparable(verdict: AggregateVerdict):
    return (
        verdict.decision,
        verdict.blocking_hook,
        verdict.blocking_message,
        [(r.hook_command, r.outcome, r.exit_code, r.stdout, r.stderr) for r in verdict.results],
    )


class TestVerdicts:
    def test_all_pass_allows(self, hooks, write_event):
        verdict = ParallelExecutor().run([
            _group("critical", hooks.allow()),
            _group("high", hooks.allow(), hooks.allow()),
        ], write_event)
        assert verdict.decision == "allow"
        assert not verdict.blocked
        assert verdict.mode == "parallel"
        assert len(verdict.results) == 3

    def test_block_uses_stderr(self, hooks, write_event):
        blocker = hooks.block("Root file rule: app.js")
        verdict = ParallelExecutor().run([_group("critical", hooks.allow(), blocker)], write_event)
        assert verdict.decision == "block"
        assert verdict.blocking_hook == blocker
        assert verdict.blocking_message == "Root file rule: app.js"

    def test_block_message_is_verbatim_stderr(self, hooks, write_event):
        reason = "  Rule violated:\n    - app.js at root\n\n"
        verdict = ParallelExecutor().run([_group("critical", hooks.block(reason))], write_event)
        assert verdict.blocking_message == reason

    def test_whitespace_only_output_uses_default_message(self, hooks, write_event):
        verdict = ParallelExecutor().run([_group("high", hooks.block(" \n", stdout="\n"))], write_event)
        assert verdict.blocking_message == DEFAULT_BLOCK_MESSAGE

    def test_block_without_output_uses_default_message(self, hooks, write_event):
        verdict = ParallelExecutor().run([_group("high", hooks.block())], write_event)
        assert verdict.blocking_message == DEFAULT_BLOCK_MESSAGE

    def test_first_declared_blocker_wins_over_first_finished(self, hooks, write_event):
        slow = hooks.block("slow blocker", delay=0.5)
        fast = hooks.block("fast blocker")
        verdict = ParallelExecutor().run([_group("high", slow, fast)], write_event)
        assert verdict.blocking_hook == slow
        assert verdict.blocking_message == "slow blocker"

    def test_errored_and_timed_out_never_block(self, hooks, write_event):
        verdict = ParallelExecutor().run([
            _group("high", hooks.exit(1), "/nonexistent/hook-binary"),
            HookGroup("low", (HookDescriptor(hooks.sleep(10, code=2), frozenset(), 500, "low"),)),
        ], write_event)
        assert verdict.decision == "allow"
        assert [r.outcome for r in verdict.results] == [Outcome.ERRORED, Outcome.ERRORED, Outcome.TIMED_OUT]

    def test_empty_groups(self, write_event):
        verdict = ParallelExecutor().run([], write_event)
        assert verdict.decision == "allow"
        assert verdict.mode == "empty"
        assert verdict.results == ()


class TestGroupOrdering:
    def test_block_stops_later_groups(self, hooks, write_event, tmp_path):
        marker = tmp_path / "later-group-ran"
        verdict = ParallelExecutor().run([
            _group("critical", hooks.block("stop")),
            _group("high", hooks.touch(marker)),
        ], write_event)
        assert verdict.blocked
        assert not marker.exists()
        assert len(verdict.results) == 1

    def test_in_flight_siblings_are_awaited(self, hooks, write_event, tmp_path):
        marker = tmp_path / "sibling-finished"
        verdict = ParallelExecutor().run([
            _group("critical", hooks.block("stop"), hooks.touch(marker, delay=0.5)),
        ], write_event)
        assert verdict.blocked
        assert marker.exists()
        assert [r.outcome for r in verdict.results] == [Outcome.BLOCKED, Outcome.ALLOWED]

    def test_later_group_blocks_when_earlier_allows(self, hooks, write_event):
        blocker = hooks.block("high says no")
        verdict = ParallelExecutor().run([
            _group("critical", hooks.allow()),
            _group("high", blocker),
        ], write_event)
        assert verdict.blocking_hook == blocker

    def test_next_group_starts_after_previous_finishes(self, write_event):
        timeline = []

        async def fake_runner(descriptor, event):
            timeline.append(("start", descriptor.command))
            await asyncio.sleep(0.05 if descriptor.command == "slow" else 0)
            timeline.append(("end", descriptor.command))
            return _result(descriptor.command, Outcome.ALLOWED, group=descriptor.group)

        ParallelExecutor(runner=fake_runner).run([
            _group("critical", "slow", "fast"),
            _group("high", "next"),
        ], write_event)
        assert timeline.index(("start", "next")) > timeline.index(("end", "slow"))

    def test_hooks_in_group_run_concurrently(self, hooks, write_event):
        sleepers = [hooks.script("import time; time.sleep(0.6)") for _ in range(3)]
        started = time.monotonic()
        verdict = ParallelExecutor().run([_group("medium", *sleepers)], write_event)
        assert time.monotonic() - started < 1.6
        assert all(r.outcome is Outcome.ALLOWED for r in verdict.results)


class TestOrchestrationErrors:
    def test_runner_exception_becomes_orchestration_error(self, write_event):
        async def broken(descriptor, event):
            raise RuntimeError("event loop exploded")

        with pytest.raises(OrchestrationError):
            ParallelExecutor(runner=broken).run([_group("high", "x")], write_event)

    def test_spawn_unavailable_propagates(self, write_event):
        async def exhausted(descriptor, event):
            raise SpawnUnavailable("EMFILE")

        with pytest.raises(SpawnUnavailable):
            ParallelExecutor(runner=exhausted).run([_group("high", "x")], write_event)

    def test_siblings_settle_before_error_surfaces(self, write_event):
        finished = []

        async def runner(descriptor, event):
            if descriptor.command == "bad":
                raise RuntimeError("boom")
            await asyncio.sleep(0.05)
            finished.append(descriptor.command)
            return _result(descriptor.command, Outcome.ALLOWED)

        with pytest.raises(OrchestrationError):
            ParallelExecutor(runner=runner).run([_group("high", "bad", "good")], write_event)
        assert finished == ["good"]


class TestDeterminism:
    def test_idempotent(self, hooks, write_event):
        groups = [
            _group("critical", hooks.allow()),
            _group("high", hooks.exit(3), hooks.block("first"), hooks.block("second")),
        ]
        first = ParallelExecutor().run(groups, write_event)
        second = ParallelExecutor().run(groups, write_event)
        assert _comparable(first) == _comparable(second)

    def test_latency_target_does_not_change_verdict(self, hooks, write_event):
        groups = [_group("high", hooks.block("still blocked"))]
        relaxed = ParallelExecutor(latency_target_ms=60000).run(groups, write_event)
        strict = ParallelExecutor(latency_target_ms=1).run(groups, write_event)
        assert _comparable(relaxed) == _comparable(strict)


class TestStats:
    def test_stats(self):
        verdict = AggregateVerdict.from_results([
            _result("a", Outcome.ALLOWED, 100, "critical"),
            _result("b", Outcome.ALLOWED, 300, "high"),
            _result("c", Outcome.TIMED_OUT, 200, "high"),
        ], "parallel", 350)
        stats = verdict.stats()
        assert stats["total_hooks"] == 3
        assert stats["summed_hook_ms"] == 600
        assert stats["max_hook_ms"] == 300
        assert stats["parallel_efficiency"] == 2.0
        assert stats["outcomes"] == {"allowed": 2, "blocked": 0, "errored": 0, "timed_out": 1}
        assert stats["by_group"]["critical"] == {"count": 1, "duration_ms": 100, "success": True}
        assert stats["by_group"]["high"]["success"] is False

    def test_stats_empty(self):
        stats = AggregateVerdict.allow("empty").stats()
        assert stats["total_hooks"] == 0
        assert stats["parallel_efficiency"] == 0

    def test_from_results_picks_first_block(self):
        verdict = AggregateVerdict.from_results([
            _result("a", Outcome.ALLOWED),
            _result("b", Outcome.BLOCKED, stderr="b says no"),
            _result("c", Outcome.BLOCKED, stderr="c says no"),
        ], "sequential", 10)
        assert verdict.blocking_hook == "b"
        assert verdict.blocking_message == "b says no"
        assert verdict.mode == "sequential"
