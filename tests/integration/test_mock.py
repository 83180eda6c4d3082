"""Integration tests for the mock builder."""

from __future__ import annotations

import os
import re

import pytest

from gtc.mock import Mock, MockCommit, MockOpt, mk_test_name


@pytest.mark.parametrize(
    "opt,status",
    [
        (
            MockOpt(
                current_branch="master",
                commits=[MockCommit(message="initial commit")],
                staged_file={"file1": b"\x00\x00", "dir/file2": b"\x00\x00"},
            ),
            ["A  dir/file2", "A  file1"],
        ),
        (
            MockOpt(
                current_branch="master",
                commits=[MockCommit(message="initial commit")],
                unstaged_file={"file1": b"\x00\x00", "dir/file2": b"\x00\x00"},
            ),
            ["?? dir/", "?? file1"],
        ),
    ],
)
def test_new_mock_files(build_mock, gather_info, opt, status) -> None:
    """Staged files are added, unstaged files are only written."""
    m = build_mock(opt)
    assert sorted(gather_info(m.dir_path())["status"]) == status


def test_new_mock_branches(build_mock, git) -> None:
    """Listed branches exist and the current branch is restored."""
    m = build_mock(
        MockOpt(
            current_branch="master",
            branches=["master", "master2", "master3"],
            commits=[MockCommit(message="initial commit")],
        )
    )
    assert sorted(m.info().branch_hashes) == ["master", "master2", "master3"]
    assert git(m.dir_path(), "rev-parse", "--abbrev-ref", "HEAD") == "master"


def test_new_mock_with_remote(mock_with_remote, git) -> None:
    """The local repository is a clone of the remote mock."""
    assert mock_with_remote.rc is not None
    assert mock_with_remote.client_opt().origin_url == mock_with_remote.remote_client_opt().dir_path
    assert git(mock_with_remote.dir_path(), "rev-parse", "HEAD") == git(
        mock_with_remote.rc.opt.dir_path, "rev-parse", "master"
    )
    assert mock_with_remote.client_opt().author_name == "bob"


def test_mock_dir_path(mock_init) -> None:
    """dir_path is the local client's directory."""
    m = Mock(c=mock_init)
    assert m.dir_path() == mock_init.opt.dir_path
    assert os.path.basename(m.dir_path()).startswith("gtc-")
    with pytest.raises(ValueError):
        m.remote_client_opt()


def test_random_commit_creates_branch(mock_with_remote, git) -> None:
    """Random commits land on the requested branch, creating it when missing."""
    sha = mock_with_remote.random_commit_remote("fresh")
    assert git(mock_with_remote.rc.opt.dir_path, "rev-parse", "fresh") == sha
    local = mock_with_remote.random_commit_local("master")
    assert git(mock_with_remote.dir_path(), "rev-parse", "master") == local


def test_mock_clean(build_mock) -> None:
    """clean removes both sides."""
    m = build_mock(MockOpt(current_branch="master", remote=MockOpt(commits=[MockCommit(message="init")])))
    m.clean()
    assert not os.path.exists(m.dir_path())
    assert not os.path.exists(m.remote_client_opt().dir_path)


def test_mock_clean_keeps_supplied_remote(build_mock, mock_init) -> None:
    """A remote passed in as rc belongs to the caller and survives clean."""
    m = build_mock(MockOpt(current_branch="master", rc=mock_init))
    assert not m.owns_remote
    m.clean()
    assert not os.path.exists(m.dir_path())
    assert os.path.isdir(mock_init.opt.dir_path)
    assert mock_init.initialized()


def test_mock_accepts_pushes(mock_with_remote, git) -> None:
    """Mock repositories let clones push to their checked out branch."""
    assert git(mock_with_remote.rc.opt.dir_path, "config", "receive.denyCurrentBranch") == "updateInstead"
    assert git(mock_with_remote.dir_path(), "config", "receive.denyCurrentBranch") == "updateInstead"


def test_mk_test_name() -> None:
    """Names are unittest- plus ten lowercase alphanumerics."""
    name = mk_test_name()
    assert re.fullmatch(r"unittest-[a-z0-9]{10}", name)
    assert name != mk_test_name()
