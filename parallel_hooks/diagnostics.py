"""
Hook engine diagnostics.

Offline health check for a project's hook setup. Never writes a registry;
the only file it may write is its own report (--save).

Usage:
    parallel-hooks-doctor [diagnose]      full report, exit 1 on any problem
    parallel-hooks-doctor test            end-to-end latency only, exit 1 over target
    parallel-hooks-doctor --project-dir DIR --save [PATH] --target-ms N
"""
import argparse
import os
import shlex
import shutil
import sys
import time
from dataclasses import dataclass, field, replace
from pathlib import Path

from parallel_hooks.bypass import BypassState, bypass_reason_for_command, env_status
from parallel_hooks.config import DATA_DIR, DEFAULT_TOOL_MATCHER, EnvVars, Paths, Thresholds, Timeouts
from parallel_hooks.dispatchers.pre_tool import PreToolDispatcher
from parallel_hooks.executor import AggregateVerdict
from parallel_hooks.fallback import FallbackExecutor
from parallel_hooks.hook_sdk import HookEvent
from parallel_hooks.hook_utils import atomic_write_text, expand_path, is_executable, log_event, safe_stat
from parallel_hooks.priority import statistics
from parallel_hooks.registry import HookDescriptor, Registry, RegistryCorrupt, RegistryMissing, load_registry
from parallel_hooks.runner import ExecutionResult, Outcome, run_hook_sync

SYNTHETIC_EVENT = {
    "tool_name": "Write",
    "tool_input": {
        "file_path": "/test/debug.js",
        "content": "console.log('debug test');",
    },
}

OK, WARN, FAIL = "OK", "WARN", "FAIL"

# Interpreters whose first non-option argument is the hook script
_INTERPRETERS = frozenset({
    "python", "python3", "node", "bash", "sh", "zsh", "ruby", "perl", "deno", "bun", "uv",
})


@dataclass
class Check:
    name: str
    status: str
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.status == FAIL


@dataclass
class HookReport:
    descriptor: HookDescriptor
    reachable: bool
    reachability: str
    bypass_reason: str | None = None
    result: ExecutionResult | None = None

    @property
    def healthy(self) -> bool:
        if not self.reachable or self.result is None:
            return False
        return self.result.outcome in (Outcome.ALLOWED, Outcome.BLOCKED)


@dataclass
class DiagnosticReport:
    registry_checks: list[Check] = field(default_factory=list)
    hooks: list[HookReport] = field(default_factory=list)
    bypass_checks: list[Check] = field(default_factory=list)
    end_to_end: Check | None = None
    end_to_end_ms: int = 0
    fallback: Check | None = None
    stats: dict = field(default_factory=dict)

    @property
    def checks(self) -> list[Check]:
        extra = [c for c in (self.end_to_end, self.fallback) if c is not None]
        return self.registry_checks + self.bypass_checks + extra

    @property
    def healthy(self) -> bool:
        return not any(c.failed for c in self.checks) and all(h.healthy for h in self.hooks)


def check_reachability(command: str, project_dir: Path) -> tuple[bool, str]:
    """Whether the hook's program (and script, for interpreters) exists."""
    try:
        argv = shlex.split(command)
    except ValueError as e:
        return False, f"unparsable command: {e}"
    if not argv:
        return False, "empty command"

    def resolve(arg: str) -> Path:
        p = Path(expand_path(arg))
        return p if p.is_absolute() else project_dir / p

    program = argv[0]
    if "/" in program:
        st = safe_stat(resolve(program))
        if st is None:
            return False, f"not found: {program}"
        if not is_executable(st):
            return False, f"not executable: {program}"
    elif shutil.which(program) is None:
        return False, f"not on PATH: {program}"

    inline = len(argv) > 1 and argv[1] in ("-c", "-e")
    if Path(program).name.rstrip("0123456789.") in _INTERPRETERS and not inline:
        script = next((a for a in argv[1:] if not a.startswith("-")), None)
        if script and ("/" in script or "." in script):
            if safe_stat(resolve(script)) is None:
                return False, f"script not found: {script}"
            return True, f"script {script}"
    return True, f"program {program}"


class Diagnostics:
    """Runs every check against one project directory."""

    def __init__(self, project_dir: Path | None = None, target_ms: int | None = None):
        self.project_dir = Path(project_dir) if project_dir else Paths.project_dir()
        self.target_ms = target_ms or Thresholds.latency_target_ms()
        self.primary = Paths.primary_registry(self.project_dir)
        self.backup = Paths.backup_registry(self.project_dir)
        self.registry: Registry | None = None
        self.end_to_end_ms = 0

    # -- registries -------------------------------------------------------

    def _check_source(self, label: str, path: Path, required: bool) -> tuple[Check, Registry | None]:
        try:
            registry = load_registry(path)
        except RegistryMissing:
            return Check(f"{label} registry", FAIL if required else WARN, f"missing: {path}"), None
        except RegistryCorrupt as e:
            return Check(f"{label} registry", FAIL, f"{path}: {e.reason}"), None
        count = len(registry.descriptors())
        return Check(f"{label} registry", OK, f"{path} ({count} hooks)"), registry

    def check_registries(self) -> list[Check]:
        primary_check, self.registry = self._check_source("primary", self.primary, True)
        backup_check, _ = self._check_source("backup", self.backup, True)
        checks = [primary_check, backup_check]
        if self.registry:
            checks.extend(Check("registry warning", WARN, w) for w in self.registry.warnings)
        return checks

    # -- hooks ------------------------------------------------------------

    def check_hook(self, descriptor: HookDescriptor) -> HookReport:
        reachable, detail = check_reachability(descriptor.command, self.project_dir)
        report = HookReport(
            descriptor, reachable, detail,
            bypass_reason=bypass_reason_for_command(descriptor.command, group=descriptor.group),
        )
        if reachable:
            probe = replace(
                descriptor,
                timeout_ms=min(descriptor.timeout_ms, Timeouts.DIAGNOSTIC_HOOK_TIMEOUT_MS),
            )
            report.result = run_hook_sync(probe, HookEvent(SYNTHETIC_EVENT))
        return report

    def check_hooks(self) -> list[HookReport]:
        if not self.registry:
            return []
        return [self.check_hook(d) for d in self.registry.descriptors()]

    # -- bypass -----------------------------------------------------------

    def check_bypass(self) -> list[Check]:
        descriptors = self.registry.descriptors() if self.registry else []
        labels = {d.group for d in descriptors} | {d.category for d in descriptors if d.category}
        state = BypassState.from_env()
        status = env_status(sorted({d.group for d in descriptors}))
        checks = []

        if state.development and state.testing:
            checks.append(Check("bypass", WARN, f"both {EnvVars.DEVELOPMENT} and {EnvVars.TESTING} are set"))
        if state.global_reason:
            checks.append(Check("bypass", WARN, f"all hooks bypassed ({state.global_reason})"))
            forced = [var for var, value in state.flags.items() if value]
            if forced:
                checks.append(Check("bypass", WARN, f"ineffective under global bypass: {', '.join(sorted(forced))}"))

        known_vars = {EnvVars.for_group(label) for label in labels}
        for var in sorted(state.flags):
            if var not in known_vars:
                checks.append(Check("bypass", WARN, f"{var} names no configured group or category"))

        skipped = [g for g, info in status["groups"].items() if info["skipped"]]
        if skipped and not state.global_reason:
            checks.append(Check("bypass", OK, f"bypassed groups: {', '.join(skipped)}"))
        if not checks:
            checks.append(Check("bypass", OK, "no bypass flags set"))
        return checks

    # -- end to end -------------------------------------------------------

    def check_end_to_end(self) -> Check:
        dispatcher = PreToolDispatcher(
            DEFAULT_TOOL_MATCHER,
            registry_path=self.primary,
            fallback_sources=[self.backup, self.primary],
        )
        started = time.perf_counter()
        verdict = dispatcher.dispatch(HookEvent(SYNTHETIC_EVENT))
        self.end_to_end_ms = int((time.perf_counter() - started) * 1000)
        detail = f"{self.end_to_end_ms}ms (target {self.target_ms}ms), {describe_verdict(verdict)}"
        if self.end_to_end_ms > self.target_ms:
            return Check("end-to-end", FAIL, detail)
        return Check("end-to-end", OK, detail)

    def check_fallback(self) -> Check:
        fallback = FallbackExecutor("PreToolUse", DEFAULT_TOOL_MATCHER, sources=[self.backup, self.primary])
        try:
            verdict = fallback.run(HookEvent(SYNTHETIC_EVENT))
        except Exception as e:
            return Check("fallback", FAIL, f"{type(e).__name__}: {e}")
        if verdict.mode == "empty":
            return Check("fallback", WARN, "no usable registry, would allow everything")
        return Check("fallback", OK, describe_verdict(verdict))

    # -- run --------------------------------------------------------------

    def diagnose(self) -> DiagnosticReport:
        report = DiagnosticReport()
        report.registry_checks = self.check_registries()
        report.hooks = self.check_hooks()
        report.bypass_checks = self.check_bypass()
        report.end_to_end = self.check_end_to_end()
        report.end_to_end_ms = self.end_to_end_ms
        report.fallback = self.check_fallback()
        if self.registry:
            report.stats = statistics(self.registry.descriptors())
        log_event("diagnostics", "diagnose", {
            "project": str(self.project_dir),
            "healthy": report.healthy,
            "hooks": len(report.hooks),
            "end_to_end_ms": report.end_to_end_ms,
        })
        return report


def describe_verdict(verdict: AggregateVerdict) -> str:
    text = f"{verdict.decision} via {verdict.mode}, {len(verdict.results)} hooks"
    if verdict.blocked:
        text += f", blocked by {verdict.blocking_hook}"
    return text


def render(report: DiagnosticReport, project_dir: Path) -> str:
    lines = [f"Hook diagnostics for {project_dir}", ""]

    lines.append("Configuration")
    for c in report.registry_checks:
        lines.append(f"  [{c.status}] {c.name}: {c.detail}")
    if report.stats:
        s = report.stats
        groups = ", ".join(f"{g}={n}" for g, n in s["by_group"].items())
        lines.append(f"  {s['total']} hooks ({groups}), average timeout {s['average_timeout_ms']}ms")
        behaviors = ", ".join(f"{b}={n}" for b, n in sorted(s["by_behavior"].items()))
        lines.append(f"  blocking behaviour: {behaviors}")

    lines += ["", "Hooks"]
    if not report.hooks:
        lines.append("  (none)")
    for h in report.hooks:
        status = OK if h.healthy else FAIL
        if h.result is not None:
            outcome = f"{h.result.outcome.value} in {h.result.duration_ms}ms"
            if h.result.error:
                outcome += f" ({h.result.error})"
        else:
            outcome = "not run"
        lines.append(f"  [{status}] [{h.descriptor.event_type}/{h.descriptor.group}] {h.descriptor.command}")
        lines.append(f"         reachability: {h.reachability}; smoke test: {outcome}")
        lines.append(f"         bypass: {h.bypass_reason or 'none, runs'}")

    lines += ["", "Bypass"]
    lines += [f"  [{c.status}] {c.detail}" for c in report.bypass_checks]

    lines += ["", "Engine"]
    for c in (report.end_to_end, report.fallback):
        if c is not None:
            lines.append(f"  [{c.status}] {c.name}: {c.detail}")

    lines += ["", "HEALTHY" if report.healthy else "PROBLEMS FOUND", ""]
    return "\n".join(lines)


def _save(text: str, path: Path) -> None:
    if atomic_write_text(path, text):
        print(f"Report saved to {path}")
    else:
        print(f"Could not write report to {path}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="parallel-hooks-doctor", description="Diagnose hook engine health")
    parser.add_argument("command", nargs="?", choices=["diagnose", "test"], default="diagnose")
    parser.add_argument("--project-dir", type=Path, help="Project root (default: $CLAUDE_PROJECT_DIR or cwd)")
    parser.add_argument("--save", nargs="?", const=DATA_DIR / Paths.REPORT_FILE, type=Path, metavar="PATH",
                        help="Also write the report to PATH")
    parser.add_argument("--target-ms", type=int, help="Latency target for one invocation")
    args = parser.parse_args(argv)

    if args.project_dir:
        # Hooks run with the project as their working directory
        os.environ["CLAUDE_PROJECT_DIR"] = str(args.project_dir.resolve())
    doctor = Diagnostics(args.project_dir, args.target_ms)

    if args.command == "test":
        check = doctor.check_end_to_end()
        text = f"[{check.status}] {check.name}: {check.detail}\n"
        print(text, end="")
        if args.save:
            _save(text, args.save)
        return 1 if check.failed else 0

    report = doctor.diagnose()
    text = render(report, doctor.project_dir)
    print(text, end="")
    if args.save:
        _save(text, args.save)
    return 0 if report.healthy else 1


if __name__ == "__main__":
    sys.exit(main())
