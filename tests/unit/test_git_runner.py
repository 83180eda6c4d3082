"""Tests for the git CLI fallback runner.

These tests use a FakeBackend that records calls instead of starting
processes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import pytest

from gtc.config import Config
from gtc.errors import GitCommandFailed
from gtc.process import GitRunner, LocalBackend


class FakeBackend:
    """Backend returning a canned result and recording every call."""

    def __init__(self, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.calls: list[dict[str, object]] = []
        self.result = {
            "exit_code": exit_code,
            "stdout": stdout,
            "stderr": stderr,
            "duration_ms": 1,
            "timed_out": False,
        }

    def run(
        self,
        argv: Sequence[str],
        cwd: str,
        timeout_s: int,
        env: Mapping[str, str] | None = None,
    ) -> dict[str, object]:
        self.calls.append({"argv": list(argv), "cwd": cwd, "timeout_s": timeout_s, "env": dict(env or {})})
        return dict(self.result)


def test_run_prepends_binary_and_passes_env() -> None:
    """The configured binary, directory, timeout and env reach the backend."""
    backend = FakeBackend(stdout="ok\n")
    runner = GitRunner("/repo", Config(git_binary="/usr/bin/git", command_timeout_s=7), env={"A": "1"}, backend=backend)
    result = runner.run(["status"])
    assert result["exit_code"] == 0
    assert backend.calls == [{"argv": ["/usr/bin/git", "status"], "cwd": "/repo", "timeout_s": 7, "env": {"A": "1"}}]


def test_output_is_redacted() -> None:
    """Secrets are removed from argv, stdout and stderr."""
    backend = FakeBackend(exit_code=128, stdout="pw", stderr="fatal: https://u:pw@host/r.git")
    runner = GitRunner("/repo", Config(), secrets=["pw"], backend=backend)
    result = runner.run(["push", "https://u:pw@host/r.git"])
    assert "pw" not in " ".join(result["argv"])
    assert result["stdout"] == "<REDACTED>"
    assert "pw" not in str(result["stderr"])


def test_check_raises_with_stderr() -> None:
    """A non-zero exit raises GitCommandFailed carrying stderr."""
    runner = GitRunner("/repo", Config(), backend=FakeBackend(exit_code=1, stderr="boom\n"))
    with pytest.raises(GitCommandFailed, match="failed with code 1: boom") as excinfo:
        runner.check(["submodule", "add", "x"])
    assert excinfo.value.exit_code == 1
    assert excinfo.value.command == ["git", "submodule", "add", "x"]


def test_check_returns_stdout() -> None:
    """A successful check hands back stdout unchanged."""
    runner = GitRunner("/repo", Config(), backend=FakeBackend(stdout="a\nb\n"))
    assert runner.check(["branch"]) == "a\nb\n"


def test_empty_args_rejected() -> None:
    """At least one git argument is required."""
    with pytest.raises(ValueError):
        GitRunner("/repo", Config(), backend=FakeBackend()).run([])


def test_debug_logs_at_info(caplog) -> None:
    """With debug enabled every command is logged at INFO."""
    runner = GitRunner("/repo", Config(debug=True), backend=FakeBackend())
    with caplog.at_level("INFO", logger="gtc.process.git_runner"):
        runner.run(["config", "--list"])
    assert "execute command in /repo: git config --list" in caplog.text


def test_local_backend_missing_binary(tmp_path) -> None:
    """A missing executable is reported with exit code 127."""
    result = LocalBackend().run(["gtc-no-such-binary"], str(tmp_path), 5)
    assert result["exit_code"] == 127
    assert result["timed_out"] is False
