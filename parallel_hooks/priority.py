"""
Hook priority classification.

Describes the known priority groups (execution order, default timeout,
per-group duration target) and hook families (which group a family belongs
to and how hard it blocks). The registry loader uses this to fill in
defaults and to validate entries; diagnostics use it for statistics.

Groups outside the canonical set are allowed. They get no default timeout
and run after the canonical groups unless the registry declares an order.
"""
from dataclasses import dataclass, field
from typing import Iterable

from parallel_hooks.config import Groups, Thresholds, Timeouts


@dataclass(frozen=True)
class PriorityLevel:
    level: int
    timeout_ms: int
    max_duration_ms: int
    description: str


PRIORITIES: dict[str, PriorityLevel] = {
    "critical": PriorityLevel(1, 2000, 2000, "Must complete; a block stops all later groups"),
    "high": PriorityLevel(2, 4000, 4000, "Important validations, parallel within group"),
    "medium": PriorityLevel(3, 3000, 3000, "Standard validations, parallel within group"),
    "low": PriorityLevel(4, 2000, 2000, "Nice-to-have validations"),
    "background": PriorityLevel(5, 5000, 5000, "Non-blocking work such as metrics collection"),
}


@dataclass(frozen=True)
class Family:
    group: str
    description: str
    blocking_behavior: str  # hard-block | soft-block | warning | none


FAMILIES: dict[str, Family] = {
    "file_hygiene": Family("critical", "Prevents file system pollution", "hard-block"),
    "infrastructure_protection": Family("critical", "Protects project infrastructure", "hard-block"),
    "security": Family("high", "Security and vulnerability scanning", "soft-block"),
    "validation": Family("high", "Data and context validation", "soft-block"),
    "architecture": Family("high", "Architectural pattern enforcement", "soft-block"),
    "pattern_enforcement": Family("medium", "Development pattern enforcement", "warning"),
    "performance": Family("medium", "Performance monitoring", "warning"),
    "testing": Family("medium", "Test-related validations", "warning"),
    "data_hygiene": Family("medium", "Database and data structure validation", "warning"),
    "code_cleanup": Family("low", "Code cleanup and formatting", "none"),
    "documentation": Family("low", "Documentation enforcement", "none"),
}


def default_timeout_ms(group: str) -> int:
    level = PRIORITIES.get(group)
    return level.timeout_ms if level else Timeouts.DEFAULT_HOOK_TIMEOUT_MS


def group_for_family(family: str | None) -> str | None:
    info = FAMILIES.get(family or "")
    return info.group if info else None


def blocking_behavior(family: str | None) -> str:
    info = FAMILIES.get(family or "")
    return info.blocking_behavior if info else "warning"


def order_groups(declared: Iterable[str] | None, seen: Iterable[str]) -> list[str]:
    """Execution order of groups.

    The registry's declared order wins; otherwise the canonical order. Groups
    named by neither follow in first-seen order.
    """
    base = list(dict.fromkeys(declared)) if declared else list(Groups.ORDER)
    order = list(base)
    for group in seen:
        if group not in order:
            order.append(group)
    return order


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_entry(entry: dict, declared_groups: Iterable[str] = ()) -> ValidationResult:
    """Validate one raw registry hook entry."""
    result = ValidationResult()
    declared = set(declared_groups)

    command = entry.get("command")
    if not isinstance(command, str) or not command.strip():
        result.errors.append("Hook command is required")

    group = entry.get("group", entry.get("priority"))
    if group is None:
        if group_for_family(entry.get("family")) is None:
            result.warnings.append(f"Hook group not specified, defaulting to {Groups.DEFAULT}")
    elif not isinstance(group, str) or not group.strip():
        result.errors.append(f"Invalid group: {group!r}")
    elif group not in PRIORITIES and group not in declared:
        result.warnings.append(f"Group '{group}' is not a known priority; it runs after known groups")

    family = entry.get("family")
    if family is not None and family not in FAMILIES:
        result.warnings.append(f"Unknown family: {family}")

    for key, scale in (("timeout_ms", 1), ("timeout", 1000)):
        if key not in entry:
            continue
        value = entry[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            result.errors.append(f"Invalid {key}: {value!r}")
        elif value * scale < Thresholds.MIN_SANE_TIMEOUT_MS:
            result.warnings.append("Hook timeout is very low, may cause premature failures")
        break

    return result


def statistics(descriptors) -> dict:
    """Counts per group, family and blocking behaviour plus timeout totals."""
    stats = {
        "total": 0,
        "by_group": {},
        "by_family": {},
        "by_behavior": {},
        "total_timeout_ms": 0,
        "average_timeout_ms": 0,
    }
    for d in descriptors:
        stats["total"] += 1
        stats["by_group"][d.group] = stats["by_group"].get(d.group, 0) + 1
        family = d.family or "unknown"
        stats["by_family"][family] = stats["by_family"].get(family, 0) + 1
        behavior = blocking_behavior(d.family)
        stats["by_behavior"][behavior] = stats["by_behavior"].get(behavior, 0) + 1
        stats["total_timeout_ms"] += d.timeout_ms
    if stats["total"]:
        stats["average_timeout_ms"] = round(stats["total_timeout_ms"] / stats["total"])
    return stats
