"""
Hook registry loader.

Reads the static hook registry (Claude Code settings shape) and turns it into
immutable HookDescriptor values, grouped and ordered by priority group for a
given event.

Registry document:
{
  "groups": ["critical", "high", "medium", "low", "background"],   # optional
  "hooks": {
    "PreToolUse": [
      {"matcher": "Write|Edit|MultiEdit",
       "hooks": [{"type": "command", "command": "node tools/hooks/x.js",
                  "timeout": 2, "group": "critical", "family": "file_hygiene"}]}
    ]
  }
}

`timeout` is seconds (host convention), `timeout_ms` wins when both appear.
`priority` is accepted as an alias of `group`.
"""
import re
from dataclasses import dataclass, field
from pathlib import Path

from parallel_hooks.config import DEFAULT_TOOL_MATCHER, Groups, JSONDecodeError, fast_json_loads
from parallel_hooks.hook_utils import cached_call, create_lru_cache, log_event, log_once
from parallel_hooks.priority import default_timeout_ms, group_for_family, order_groups, validate_entry


class RegistryCorrupt(Exception):
    """The registry source could not be read or parsed."""

    def __init__(self, source, reason: str):
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class RegistryMissing(RegistryCorrupt):
    """The registry source does not exist."""


# Folder directly below a hooks/ directory: tools/hooks/security/scan.js -> security
_CATEGORY_RE = re.compile(r"(?:^|[\s/\"'])hooks/([^/\s\"']+)/")
_category_cache = create_lru_cache(maxsize=512)


def command_category(command: str) -> str | None:
    """Derive a hook's category (its folder) from its command path."""
    def derive():
        match = _CATEGORY_RE.search(command)
        return match.group(1) if match else None
    return cached_call(_category_cache, command, derive)


def parse_matcher(matcher: str | None) -> frozenset[str]:
    """'Write|Edit' -> {'Write', 'Edit'}. Empty means all tools."""
    if not matcher:
        return frozenset()
    return frozenset(t.strip() for t in matcher.split("|") if t.strip())


@dataclass(frozen=True)
class HookDescriptor:
    """One configured hook. Identified by its command string."""
    command: str
    matcher: frozenset[str]
    timeout_ms: int
    group: str
    family: str | None = None
    event_type: str = "PreToolUse"

    @property
    def category(self) -> str | None:
        return command_category(self.command)

    def matches_tool(self, tool_name: str) -> bool:
        return not self.matcher or "*" in self.matcher or tool_name in self.matcher

    def matches_any(self, tools: frozenset[str]) -> bool:
        if not self.matcher or "*" in self.matcher or not tools or "*" in tools:
            return True
        return bool(self.matcher & tools)


@dataclass(frozen=True)
class HookGroup:
    name: str
    hooks: tuple[HookDescriptor, ...]


@dataclass
class Registry:
    source: Path | None = None
    declared_groups: list[str] | None = None
    entries: dict[str, list[HookDescriptor]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def event_types(self) -> list[str]:
        return list(self.entries)

    def descriptors(self, event_type: str | None = None) -> list[HookDescriptor]:
        if event_type is not None:
            return list(self.entries.get(event_type, []))
        return [d for hooks in self.entries.values() for d in hooks]

    def select(
        self,
        event_type: str,
        tool_name: str = "",
        tool_matcher: str = DEFAULT_TOOL_MATCHER,
    ) -> list[HookGroup]:
        """Ordered, non-empty hook groups that apply to one event.

        A duplicated command keeps its last declaration (and that position).
        """
        tools = parse_matcher(tool_matcher)
        selected: dict[str, HookDescriptor] = {}
        for d in self.entries.get(event_type, []):
            applies = d.matches_tool(tool_name) if tool_name else d.matches_any(tools)
            if not applies:
                continue
            if d.command in selected:
                log_once.warning("registry", "duplicate_command", d.command, event=event_type)
                del selected[d.command]
            selected[d.command] = d

        by_group: dict[str, list[HookDescriptor]] = {}
        for d in selected.values():
            by_group.setdefault(d.group, []).append(d)

        return [
            HookGroup(name, tuple(by_group[name]))
            for name in order_groups(self.declared_groups, by_group)
            if by_group.get(name)
        ]


def _descriptor(entry: dict, matcher: frozenset[str], event_type: str) -> HookDescriptor:
    family = entry.get("family")
    group = entry.get("group") or entry.get("priority") or group_for_family(family) or Groups.DEFAULT
    if "timeout_ms" in entry:
        timeout_ms = int(entry["timeout_ms"])
    elif "timeout" in entry:
        timeout_ms = int(round(float(entry["timeout"]) * 1000))
    else:
        timeout_ms = default_timeout_ms(group)
    return HookDescriptor(
        command=entry["command"].strip(),
        matcher=matcher,
        timeout_ms=max(timeout_ms, 1),
        group=str(group),
        family=family if isinstance(family, str) else None,
        event_type=event_type,
    )


def parse_registry(data, source: Path | None = None) -> Registry:
    """Build a Registry from a decoded document. Raises RegistryCorrupt."""
    if not isinstance(data, dict):
        raise RegistryCorrupt(source, "registry root must be an object")

    declared = data.get("groups")
    if declared is not None and (
        not isinstance(declared, list) or not all(isinstance(g, str) for g in declared)
    ):
        raise RegistryCorrupt(source, "'groups' must be a list of strings")

    hooks_section = data.get("hooks", {})
    if not isinstance(hooks_section, dict):
        raise RegistryCorrupt(source, "'hooks' must be an object")

    registry = Registry(source=source, declared_groups=declared)
    for event_type, matchers in hooks_section.items():
        if not isinstance(matchers, list):
            raise RegistryCorrupt(source, f"hooks.{event_type} must be a list")
        descriptors: list[HookDescriptor] = []
        seen: set[str] = set()
        for i, matcher_entry in enumerate(matchers):
            if not isinstance(matcher_entry, dict) or not isinstance(matcher_entry.get("hooks"), list):
                raise RegistryCorrupt(source, f"hooks.{event_type}[{i}] must have a 'hooks' list")
            raw_matcher = matcher_entry.get("matcher")
            matcher = parse_matcher(raw_matcher if isinstance(raw_matcher, str) else None)

            for entry in matcher_entry["hooks"]:
                if not isinstance(entry, dict):
                    registry.warnings.append(f"{event_type}: skipped non-object hook entry")
                    continue
                if entry.get("type", "command") != "command":
                    registry.warnings.append(
                        f"{event_type}: skipped hook of type {entry.get('type')!r}"
                    )
                    continue
                check = validate_entry(entry, declared or ())
                label = entry.get("command") or "<no command>"
                registry.warnings.extend(f"{label}: {w}" for w in check.warnings)
                if not check.valid:
                    registry.warnings.extend(f"{label}: {e} (skipped)" for e in check.errors)
                    continue

                d = _descriptor(entry, matcher, event_type)
                if d.command in seen:
                    registry.warnings.append(
                        f"{d.command}: duplicate command in {event_type}, last declaration wins"
                    )
                seen.add(d.command)
                descriptors.append(d)
        registry.entries[event_type] = descriptors

    return registry


def load_registry(path: Path) -> Registry:
    """Load and parse a registry file. Raises RegistryMissing or RegistryCorrupt."""
    path = Path(path)
    try:
        content = path.read_bytes()
    except FileNotFoundError:
        raise RegistryMissing(path, "file not found") from None
    except OSError as e:
        raise RegistryCorrupt(path, f"unreadable: {e}") from e
    try:
        data = fast_json_loads(content) if content.strip() else {}
    except JSONDecodeError as e:
        raise RegistryCorrupt(path, f"invalid JSON: {e}") from e
    registry = parse_registry(data, path)
    for warning in registry.warnings:
        log_once.warning("registry", "config_warning", warning, source=str(path))
    return registry


def load_hooks_or_empty(
    path: Path,
    event_type: str,
    tool_name: str = "",
    tool_matcher: str = DEFAULT_TOOL_MATCHER,
) -> tuple[list[HookGroup], bool]:
    """Select hooks from a registry, degrading to an empty set on failure.

    Returns (groups, degraded). A missing registry is empty, not degraded.
    """
    try:
        registry = load_registry(path)
    except RegistryMissing:
        log_event("registry", "missing", {"source": str(path)})
        return [], False
    except RegistryCorrupt as e:
        log_event("registry", "corrupt", {"source": str(path), "reason": e.reason}, "error")
        return [], True
    return registry.select(event_type, tool_name, tool_matcher), False
