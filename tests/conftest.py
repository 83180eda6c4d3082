"""Pytest configuration and fixtures for gtc tests.

Integration tests build real repositories on disk with the mock builder and
need a ``git`` binary on ``PATH``.  No network access is required: every
remote is a local repository.

IMPORTANT: Environment variables must be set BEFORE importing gtc modules,
as ``Config.load_from_env`` reads them whenever a client is created.
"""

from __future__ import annotations

import os
import tempfile

# Keep git away from the developer's own configuration
_GIT_HOME = tempfile.mkdtemp(prefix="gtc-test-home-")
_GLOBAL_CONFIG = os.path.join(_GIT_HOME, ".gitconfig")
open(_GLOBAL_CONFIG, "a", encoding="utf-8").close()

_TEST_ENV = {
    "HOME": _GIT_HOME,
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_CONFIG_GLOBAL": _GLOBAL_CONFIG,
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@test.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@test.com",
    "GTC_SUBMODULE_PROTOCOL_FILE_ALLOW": "true",
    "GTC_DEBUG": "false",
}
os.environ.update(_TEST_ENV)

import subprocess
from collections.abc import Iterator

import pytest

from gtc.git.client import Client
from gtc.mock import Mock, MockCommit, MockOpt, new_mock


def _git(dir_path: str, *args: str) -> str:
    """Run git in ``dir_path`` and return stripped stdout."""
    proc = subprocess.run(
        ["git", *args],
        cwd=dir_path,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=True,
    )
    return proc.stdout.strip()


def _gather_info(dir_path: str) -> dict[str, object]:
    """Read repository state back through the git CLI.

    Returns the current commit, ``branch -> sha`` for local branches, the
    porcelain status lines and the list of submodule paths.
    """
    branches: dict[str, str] = {}
    for line in _git(dir_path, "for-each-ref", "--format=%(refname:short) %(objectname)", "refs/heads").splitlines():
        name, sha = line.split(" ", 1)
        branches[name] = sha
    status = subprocess.run(
        ["git", "status", "--porcelain"],
        cwd=dir_path,
        stdout=subprocess.PIPE,
        text=True,
        check=True,
    ).stdout.splitlines()
    submodules = [line.split()[1] for line in _git(dir_path, "submodule", "status").splitlines() if line.strip()]
    return {
        "current": _git(dir_path, "rev-parse", "HEAD"),
        "branches": branches,
        "status": status,
        "submodules": submodules,
    }


def _init_commit() -> MockCommit:
    return MockCommit(message="init", files={"file": b"\x00\x00", "dir/dir_file": b"\x00\x00"})


@pytest.fixture
def git():
    """Run git in a directory and return stripped stdout."""
    return _git


@pytest.fixture
def gather_info():
    """Read repository state back through the git CLI."""
    return _gather_info


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up basic test environment."""
    for name, value in _TEST_ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.delenv("GTC_SUBMODULE_RETRY_LIMIT", raising=False)
    monkeypatch.delenv("GTC_GIT_BINARY", raising=False)


@pytest.fixture
def build_mock(tmp_path) -> Iterator:
    """Factory building mocks under ``tmp_path``, cleaned up afterwards."""
    built: list[Mock] = []

    def _build(opt: MockOpt) -> Mock:
        _set_base_dir(opt, str(tmp_path))
        mock = new_mock(opt)
        built.append(mock)
        return mock

    yield _build

    for mock in built:
        mock.clean()


def _set_base_dir(opt: MockOpt, base_dir: str) -> None:
    opt.base_dir = opt.base_dir or base_dir
    if opt.remote is not None:
        _set_base_dir(opt.remote, base_dir)


@pytest.fixture
def mock_init(build_mock) -> Client:
    """A local repository with one commit on master."""
    return build_mock(MockOpt(current_branch="master", commits=[_init_commit()])).c


@pytest.fixture
def mock_with_remote(build_mock) -> Mock:
    """A clone of a repository that has branches master and test."""
    return build_mock(
        MockOpt(
            current_branch="master",
            remote=MockOpt(current_branch="master", branches=["master", "test"], commits=[_init_commit()]),
        )
    )


@pytest.fixture
def mock_with_submodule(build_mock, mock_with_remote) -> Mock:
    """A clone whose repository has ``mock_with_remote`` added as submodule ``test``.

    The submodule is committed and pushed so both sides know about it.
    """
    test2 = MockCommit(message="test2", files={"test2": b"\x00\x01\x02\x03\x04"})
    parent = build_mock(
        MockOpt(
            current_branch="master",
            commits=[test2],
            remote=MockOpt(current_branch="master", commits=[test2]),
        )
    )
    parent.c.add_client_as_submodule("test", mock_with_remote.c)
    parent.c.commit("add submodule")
    parent.c.push()
    return parent
