#!/usr/bin/env python3
"""Example PreToolUse hook - keep the repository root clean.

Blocks Write/Edit/MultiEdit on files that sit directly in the project root
(`app.js`), allowing anything inside a directory (`src/app.js`) and the
usual root files (README, manifests, dotfiles for tooling).

Usage in .claude/settings.json:
{
  "hooks": {
    "PreToolUse": [{
      "matcher": "Write|Edit|MultiEdit",
      "hooks": [{"type": "command",
                 "command": "python3 examples/hooks/block_root_files.py",
                 "timeout": 2, "group": "critical", "family": "file_hygiene"}]
    }]
  }
}
"""
import os
from pathlib import Path

from parallel_hooks.hook_sdk import BlockingHook, HookEvent

ALLOWED_ROOT_FILES = frozenset({
    "README.md", "LICENSE", "CHANGELOG.md", "CONTRIBUTING.md", "CLAUDE.md",
    "package.json", "package-lock.json", "pyproject.toml", "setup.cfg",
    "Makefile", "Dockerfile", "tsconfig.json",
    ".gitignore", ".gitattributes", ".editorconfig", ".env.example",
})


def project_root() -> Path:
    return Path(os.environ.get("CLAUDE_PROJECT_DIR") or Path.cwd()).resolve()


def is_root_file(file_path: str, root: Path) -> bool:
    path = Path(file_path)
    if not path.is_absolute():
        path = root / path
    return path.resolve().parent == root


class BlockRootFiles(BlockingHook):
    def check(self, event: HookEvent) -> str | None:
        if not event.is_file_op:
            return None
        file_path = event.tool_input.file_path
        if not file_path:
            return None
        name = Path(file_path).name
        if name in ALLOWED_ROOT_FILES or not is_root_file(file_path, project_root()):
            return None
        return (
            f"Root file rule: '{name}' would be created in the repository root. "
            f"Put it in a directory such as src/ or docs/ instead."
        )


if __name__ == "__main__":
    BlockRootFiles("block_root_files").main()
