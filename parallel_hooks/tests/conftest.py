"""
Pytest configuration for parallel_hooks tests.

Adds the repository root to sys.path so tests can import the package,
points the event log at a temporary directory, and gives every test an
isolated project directory with all bypass flags cleared.
"""
import itertools
import json
import os
import shlex
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Must be set before parallel_hooks.config is imported
os.environ.setdefault("CLAUDE_DATA_DIR", tempfile.mkdtemp(prefix="parallel-hooks-log-"))

WRITE_EVENT = {
    "tool_name": "Write",
    "tool_input": {"file_path": "src/app.js", "content": "console.log(1);"},
}


@pytest.fixture(autouse=True)
def project_dir(tmp_path, monkeypatch):
    """Isolated project directory; no HOOK_* flags leak in from the shell."""
    for name in list(os.environ):
        if name.startswith("HOOK_") or name == "HOOKS_TESTING_MODE":
            monkeypatch.delenv(name, raising=False)
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.setenv("CLAUDE_PROJECT_DIR", str(project))
    # Child hook processes import parallel_hooks too
    pythonpath = os.pathsep.join(p for p in (str(REPO_ROOT), os.environ.get("PYTHONPATH")) if p)
    monkeypatch.setenv("PYTHONPATH", pythonpath)
    return project


class HookFactory:
    """Writes small Python hook scripts and returns their commands."""

    def __init__(self, directory: Path):
        self.directory = directory
        self._ids = itertools.count()

    def script(self, body: str, name: str | None = None) -> str:
        path = self.directory / f"{name or 'hook_%d' % next(self._ids)}.py"
        path.write_text(textwrap.dedent(body))
        return f"{shlex.quote(sys.executable)} {shlex.quote(str(path))}"

    def allow(self, name: str | None = None) -> str:
        return self.script("""
            import sys
            sys.stdin.read()
            sys.exit(0)
        """, name)

    def block(self, message: str = "", stdout: str = "", delay: float = 0, name: str | None = None) -> str:
        return self.script(f"""
            import sys, time
            sys.stdin.read()
            time.sleep({delay!r})
            sys.stdout.write({stdout!r})
            sys.stderr.write({message!r})
            sys.exit(2)
        """, name)

    def exit(self, code: int, name: str | None = None) -> str:
        return self.script(f"""
            import sys
            sys.stdin.read()
            sys.exit({code})
        """, name)

    def sleep(self, seconds: float, pid_file: Path | None = None, code: int = 0, name: str | None = None) -> str:
        pid_path = str(pid_file) if pid_file else ""
        return self.script(f"""
            import os, sys, time
            if {pid_path!r}:
                with open({pid_path!r}, "w") as f:
                    f.write(str(os.getpid()))
            time.sleep({seconds!r})
            sys.stderr.write("finished late")
            sys.exit({code})
        """, name)

    def touch(self, marker: Path, delay: float = 0, code: int = 0, name: str | None = None) -> str:
        """Hook that creates `marker` (after `delay` seconds) then exits."""
        return self.script(f"""
            import sys, time
            sys.stdin.read()
            time.sleep({delay!r})
            open({str(marker)!r}, "w").close()
            sys.exit({code})
        """, name)

    def capture(self, out_file: Path, name: str | None = None) -> str:
        """Hook that saves its stdin to `out_file`."""
        return self.script(f"""
            import sys
            data = sys.stdin.buffer.read()
            with open({str(out_file)!r}, "wb") as f:
                f.write(data)
        """, name)


@pytest.fixture
def hooks(tmp_path):
    scripts = tmp_path / "scripts"
    scripts.mkdir()
    return HookFactory(scripts)


@pytest.fixture
def write_registry(project_dir):
    """Write a settings.json style registry; returns its path."""
    def _write(entries, path: Path | None = None, event: str = "PreToolUse",
               matcher: str = "Write|Edit|MultiEdit", groups=None) -> Path:
        path = path or project_dir / ".claude" / "settings.json"
        hooks = [{"type": "command", **e} for e in entries]
        doc = {"hooks": {event: [{"matcher": matcher, "hooks": hooks}]}}
        if groups is not None:
            doc["groups"] = groups
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(doc))
        return path
    return _write


@pytest.fixture
def write_event():
    return json.loads(json.dumps(WRITE_EVENT))


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


@pytest.fixture
def pid_alive():
    return _pid_alive
