"""
Parallel hook engine for Claude Code file operations.

Runs the hooks declared in .claude/settings.json for each host event:
concurrently within a priority group, groups in order, failing open on any
engine or hook malfunction.

Subpackages:
- dispatchers: Host entry points (PreToolUse, PostToolUse)
- hook_utils: Shared utilities (logging, file I/O, caching)
- tests: Unit tests
"""

__version__ = "1.0.0"
