"""Tests for hook_utils (logging, I/O, cache)."""
import sys
from types import SimpleNamespace

import pytest

from parallel_hooks.hook_utils import (
    LogOnce,
    atomic_write_text,
    cached_call,
    create_lru_cache,
    expand_path,
    graceful_main,
    is_executable,
    log_event,
    safe_stat,
    verbose,
)
from parallel_hooks.hook_utils import logging as logging_module


class TestLogOnce:
    def test_suppresses_duplicates(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging_module, "log_event", lambda *a, **kw: calls.append(a))
        once = LogOnce(period_sec=300)
        once.warning("registry", "duplicate", "same message")
        once.warning("registry", "duplicate", "same message")
        once.warning("registry", "duplicate", "other message")
        assert len(calls) == 2

    def test_zero_window_logs_every_time(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging_module, "log_event", lambda *a, **kw: calls.append(a))
        once = LogOnce(period_sec=0)
        once.error("c", "e", "m")
        once.error("c", "e", "m")
        assert len(calls) == 2

    def test_suppressed_count_reported(self, monkeypatch):
        calls = []
        clock = [100.0]
        monkeypatch.setattr(logging_module, "log_event", lambda *a, **kw: calls.append(a))
        monkeypatch.setattr(logging_module, "time", SimpleNamespace(monotonic=lambda: clock[0]))
        once = LogOnce(period_sec=60)
        for _ in range(3):
            once.warning("registry", "duplicate_command", "cmd")
        clock[0] += 61
        once.warning("registry", "duplicate_command", "cmd")
        assert len(calls) == 2
        assert "suppressed" not in calls[0][2]
        assert calls[1][2]["suppressed"] == 2


class TestLogEvent:
    def test_never_raises(self):
        log_event("test", "event", {"a": object()})
        log_event("test", "event", None, "not-a-level")


class TestVerbose:
    def test_silent_by_default(self, capsys):
        verbose("hello")
        assert capsys.readouterr().err == ""

    def test_prints_when_enabled(self, monkeypatch, capsys):
        monkeypatch.setenv("HOOK_VERBOSE", "true")
        verbose("hello\n")
        assert capsys.readouterr().err == "hello\n"


class TestGracefulMain:
    def test_exception_exits_0(self):
        @graceful_main("test")
        def crash():
            raise RuntimeError("boom")

        with pytest.raises(SystemExit) as exc:
            crash()
        assert exc.value.code == 0

    def test_system_exit_passes_through(self):
        @graceful_main("test")
        def block():
            sys.exit(2)

        with pytest.raises(SystemExit) as exc:
            block()
        assert exc.value.code == 2

    def test_return_value(self):
        @graceful_main("test")
        def ok():
            return 5

        assert ok() == 5


class TestIO:
    def test_atomic_write(self, tmp_path):
        target = tmp_path / "nested" / "report.txt"
        assert atomic_write_text(target, "report") is True
        assert target.read_text() == "report"
        assert list(target.parent.glob("*.tmp")) == []

    def test_atomic_write_overwrites(self, tmp_path):
        target = tmp_path / "report.txt"
        target.write_text("old")
        atomic_write_text(target, "new")
        assert target.read_text() == "new"

    def test_safe_stat_missing(self, tmp_path):
        assert safe_stat(tmp_path / "missing") is None

    def test_is_executable(self, tmp_path):
        script = tmp_path / "x.sh"
        script.write_text("")
        script.chmod(0o755)
        assert is_executable(safe_stat(script))
        script.chmod(0o644)
        assert not is_executable(safe_stat(script))
        assert not is_executable(safe_stat(tmp_path))
        assert not is_executable(None)

    def test_expand_path(self, monkeypatch):
        monkeypatch.setenv("HOOK_TEST_DIR", "/opt/hooks")
        assert expand_path("$HOOK_TEST_DIR/a/../b.sh") == "/opt/hooks/b.sh"


class TestCache:
    def test_cached_call(self):
        cache = create_lru_cache(maxsize=2)
        calls = []

        def loader():
            calls.append(1)
            return "value"

        assert cached_call(cache, "k", loader) == "value"
        assert cached_call(cache, "k", loader) == "value"
        assert len(calls) == 1

    def test_caches_none(self):
        cache = create_lru_cache()
        calls = []
        cached_call(cache, "k", lambda: calls.append(1))
        cached_call(cache, "k", lambda: calls.append(1))
        assert len(calls) == 1

    def test_evicts(self):
        cache = create_lru_cache(maxsize=1)
        cached_call(cache, "a", lambda: 1)
        cached_call(cache, "b", lambda: 2)
        assert "a" not in cache

    def test_loader_error_not_cached(self):
        cache = create_lru_cache()

        def broken():
            raise ValueError("bad command")

        with pytest.raises(ValueError):
            cached_call(cache, "k", broken)
        assert "k" not in cache
