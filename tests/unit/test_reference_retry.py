"""Tests for restarting submodule passes when references change."""

from __future__ import annotations

import pytest
from git import GitCommandError

from gtc.config import Config
from gtc.errors import GitCommandFailed, GtcError, ReferenceChangedError
from gtc.git.client import Client, ClientOpt
from gtc.git.submodules import is_reference_changed


def _lock_error() -> GitCommandFailed:
    return GitCommandFailed(
        ["git", "fetch"], 1, "error: cannot lock ref 'refs/remotes/origin/master': is at abc but expected def"
    )


class TestIsReferenceChanged:
    """Tests for is_reference_changed."""

    def test_lock_messages(self) -> None:
        """Known lock and ref messages are recognised."""
        assert is_reference_changed(_lock_error())
        assert is_reference_changed(GtcError("Unable to create '/r/.git/index.lock': File exists."))
        assert is_reference_changed(GitCommandError(["git", "fetch"], 1, b"reference has changed"))

    def test_other_errors(self) -> None:
        """Unrelated failures are not retried."""
        assert not is_reference_changed(GtcError("failed to pull submodule test: non-fast-forward update"))


def _client(limit: int) -> Client:
    return Client(ClientOpt(dir_path="/nowhere"), config=Config(submodule_retry_limit=limit))


def test_retry_until_success(mocker) -> None:
    """The pass is restarted after a reference change and then succeeds."""
    client = _client(3)
    update_pass = mocker.patch.object(
        client, "_submodule_update_pass", side_effect=[_lock_error(), _lock_error(), None]
    )
    client.submodule_update()
    assert update_pass.call_count == 3


def test_retry_limit_exhausted(mocker) -> None:
    """After the limit is used up ReferenceChangedError is raised."""
    client = _client(2)
    use_remote = mocker.patch.object(client, "_submodule_use_remote", side_effect=_lock_error())
    with pytest.raises(ReferenceChangedError, match="after 3 attempts"):
        client.submodule_update(remote=True)
    assert use_remote.call_count == 3


def test_other_errors_are_not_retried(mocker) -> None:
    """Errors unrelated to references propagate immediately."""
    client = _client(3)
    update_pass = mocker.patch.object(client, "_submodule_update_pass", side_effect=GtcError("boom"))
    with pytest.raises(GtcError, match="boom"):
        client.submodule_update()
    assert update_pass.call_count == 1
