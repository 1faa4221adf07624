"""
Centralized configuration for the parallel hook engine.

All configurable constants in one place for easy tuning.
Individual modules import from here for consistency.

Categories:
- Paths: Data directory, registry and backup registry locations
- Environment: Names of the control and bypass variables
- Timeouts: Per-hook defaults and kill grace period
- Thresholds: Latency target for one invocation
- Groups: Canonical priority group order
- JSON: msgspec-backed encode/decode helpers
"""
import os
import re
from pathlib import Path

import msgspec

# =============================================================================
# JSON
# =============================================================================

_decoder = msgspec.json.Decoder()
_encoder = msgspec.json.Encoder()

JSONDecodeError = msgspec.DecodeError


def fast_json_loads(data: str | bytes):
    """Decode JSON text or bytes (msgspec, ~10x faster than json)."""
    if isinstance(data, str):
        data = data.encode()
    return _decoder.decode(data)


def fast_json_dumps(obj) -> bytes:
    """Encode an object to compact JSON bytes."""
    return _encoder.encode(obj)


# =============================================================================
# Paths
# =============================================================================

DATA_DIR = Path(os.environ.get("CLAUDE_DATA_DIR", Path.home() / ".claude/data"))
LOG_FILE = DATA_DIR / "hook-events.jsonl"


class Paths:
    """Registry locations, resolved against the project directory."""
    SETTINGS_DIR = ".claude"
    PRIMARY_REGISTRY = "settings.json"
    BACKUP_REGISTRY = "settings.json.backup"
    REPORT_FILE = "hook-diagnostics.txt"

    @staticmethod
    def project_dir() -> Path:
        return Path(os.environ.get("CLAUDE_PROJECT_DIR") or Path.cwd())

    @classmethod
    def primary_registry(cls, project_dir: Path | None = None) -> Path:
        override = os.environ.get(EnvVars.REGISTRY)
        if override:
            return Path(override).expanduser()
        root = project_dir or cls.project_dir()
        return root / cls.SETTINGS_DIR / cls.PRIMARY_REGISTRY

    @classmethod
    def backup_registry(cls, project_dir: Path | None = None) -> Path:
        override = os.environ.get(EnvVars.REGISTRY_BACKUP)
        if override:
            return Path(override).expanduser()
        root = project_dir or cls.project_dir()
        return root / cls.SETTINGS_DIR / cls.BACKUP_REGISTRY


# =============================================================================
# Environment Variables
# =============================================================================

class EnvVars:
    """Environment variable names read by the engine."""
    DEVELOPMENT = "HOOK_DEVELOPMENT"
    TESTING = "HOOKS_TESTING_MODE"
    VERBOSE = "HOOK_VERBOSE"
    PROFILE = "HOOK_PROFILE"
    REGISTRY = "HOOK_REGISTRY"
    REGISTRY_BACKUP = "HOOK_REGISTRY_BACKUP"
    LATENCY_TARGET = "HOOK_LATENCY_TARGET_MS"

    GROUP_PREFIX = "HOOK_"

    # HOOK_* names that are never per-group bypass flags
    CONTROL = frozenset({
        "HOOK_DEVELOPMENT",
        "HOOK_VERBOSE",
        "HOOK_PROFILE",
        "HOOK_REGISTRY",
        "HOOK_REGISTRY_BACKUP",
        "HOOK_LATENCY_TARGET_MS",
    })

    _non_alnum = re.compile(r"[^A-Za-z0-9]+")

    @classmethod
    def for_group(cls, group: str) -> str:
        """Bypass variable for a group: 'ai-patterns' -> 'HOOK_AI_PATTERNS'."""
        return cls.GROUP_PREFIX + cls._non_alnum.sub("_", group).strip("_").upper()


def is_verbose() -> bool:
    return os.environ.get(EnvVars.VERBOSE, "").lower() == "true"


def is_profile() -> bool:
    return os.environ.get(EnvVars.PROFILE, "0") == "1"


# =============================================================================
# Timeouts (milliseconds)
# =============================================================================

class Timeouts:
    """Timeout settings."""
    DEFAULT_HOOK_TIMEOUT_MS = 5000
    # Time a killed hook gets to be reaped before we stop waiting on it
    KILL_GRACE_MS = 1000
    # Smoke tests in diagnostics never wait longer than this per hook
    DIAGNOSTIC_HOOK_TIMEOUT_MS = 10000


# =============================================================================
# Thresholds
# =============================================================================

def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class Thresholds:
    """Performance targets."""
    LATENCY_TARGET_MS = _env_int(EnvVars.LATENCY_TARGET, 5000)
    # Hook timeouts below this are flagged by validation
    MIN_SANE_TIMEOUT_MS = 1000

    @staticmethod
    def latency_target_ms() -> int:
        """Read the target fresh (tests and diagnostics override via env)."""
        return _env_int(EnvVars.LATENCY_TARGET, Thresholds.LATENCY_TARGET_MS)


# =============================================================================
# Groups
# =============================================================================

class Groups:
    """Priority groups in execution order."""
    ORDER = ("critical", "high", "medium", "low", "background")
    DEFAULT = "medium"


# =============================================================================
# Host Protocol
# =============================================================================

class ExitCodes:
    ALLOW = 0
    BLOCK = 2


DEFAULT_TOOL_MATCHER = "Write|Edit|MultiEdit"
DEFAULT_BLOCK_MESSAGE = "Operation blocked by hook validation"
