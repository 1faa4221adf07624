"""
Bypass policy - decides which hooks are skipped for one invocation.

Precedence:
    1. HOOK_DEVELOPMENT=true     skip everything
    2. HOOKS_TESTING_MODE=true   skip everything
    3. HOOK_<GROUP>=false        skip that group
    4. HOOK_<GROUP>=true         force that group to run (never beats 1 or 2)
    5. no flag                   run

A hook carries two labels: its category (folder under hooks/ in its command
path) and its priority group. A true flag on either label forces the hook to
run, so HOOK_HIGH=true runs hooks/security/* even when HOOK_SECURITY=false,
and HOOK_SECURITY=true runs them even when HOOK_HIGH=false. Otherwise a
false flag on either label skips it, the category flag named first.

State is read from the environment on every invocation and never cached.
"""
import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from parallel_hooks.config import EnvVars
from parallel_hooks.registry import HookDescriptor, HookGroup, command_category


def _parse_flag(value: str | None) -> bool | None:
    if value is None:
        return None
    value = value.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return None


@dataclass(frozen=True)
class BypassState:
    development: bool = False
    testing: bool = False
    flags: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BypassState":
        env = os.environ if environ is None else environ
        flags = {}
        for name, value in env.items():
            if not name.startswith(EnvVars.GROUP_PREFIX) or name in EnvVars.CONTROL:
                continue
            parsed = _parse_flag(value)
            if parsed is not None:
                flags[name] = parsed
        return cls(
            development=_parse_flag(env.get(EnvVars.DEVELOPMENT)) is True,
            testing=_parse_flag(env.get(EnvVars.TESTING)) is True,
            flags=flags,
        )

    @property
    def global_reason(self) -> str | None:
        if self.development:
            return f"{EnvVars.DEVELOPMENT}=true"
        if self.testing:
            return f"{EnvVars.TESTING}=true"
        return None

    def flag_for(self, label: str | None) -> tuple[str, bool] | None:
        """(VAR, value) when the label's flag is explicitly set."""
        if not label:
            return None
        var = EnvVars.for_group(label)
        if var in EnvVars.CONTROL or var not in self.flags:
            return None
        return var, self.flags[var]

    def _decide(self, labels: Iterable[str | None]) -> str | None:
        reason = self.global_reason
        if reason:
            return reason
        hits = [hit for hit in map(self.flag_for, labels) if hit is not None]
        if any(enabled for _, enabled in hits):
            return None
        if hits:
            return f"{hits[0][0]}=false"
        return None

    def should_skip(self, group: str) -> bool:
        return self._decide([group]) is not None

    def skip_reason(self, descriptor: HookDescriptor) -> str | None:
        """Flag responsible for skipping this hook, or None if it runs."""
        return self._decide([descriptor.category, descriptor.group])

    def filter_groups(self, groups: list[HookGroup]) -> tuple[list[HookGroup], list[tuple[HookDescriptor, str]]]:
        """Drop bypassed hooks. Returns (kept groups, [(skipped hook, reason)])."""
        kept: list[HookGroup] = []
        skipped: list[tuple[HookDescriptor, str]] = []
        for group in groups:
            hooks = []
            for d in group.hooks:
                reason = self.skip_reason(d)
                if reason:
                    skipped.append((d, reason))
                else:
                    hooks.append(d)
            if hooks:
                kept.append(HookGroup(group.name, tuple(hooks)))
        return kept, skipped


def bypass_reason_for_command(
    command: str,
    environ: Mapping[str, str] | None = None,
    group: str | None = None,
) -> str | None:
    """Which flag bypasses a hook command, or None if it would run.

    The category comes from the command path; pass the hook's group to weigh
    its group flag as well.
    """
    return BypassState.from_env(environ)._decide([command_category(command), group])


def env_status(groups: Iterable[str] = (), environ: Mapping[str, str] | None = None) -> dict:
    """Flag values and per-group results, for diagnostics."""
    state = BypassState.from_env(environ)
    return {
        "development": state.development,
        "testing": state.testing,
        "global_reason": state.global_reason,
        "flags": dict(state.flags),
        "groups": {
            g: {"var": EnvVars.for_group(g), "skipped": state.should_skip(g)}
            for g in groups
        },
    }
