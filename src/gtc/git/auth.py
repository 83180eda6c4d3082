"""Authentication methods for remote operations.

GitPython shells out to git for every transport, so credentials are handed
over through the process environment rather than through an API object:

- basic auth writes a small ``GIT_ASKPASS`` helper that answers git's
  username and password prompts from environment variables
- SSH auth points ``GIT_SSH_COMMAND`` at the private key

Some code paths (submodule add, ``url.<base>.insteadOf`` rewrites) still need
the credentials inside the URL; ``mk_auth_method_injected_url`` builds those.
"""

from __future__ import annotations

import logging
import os
import shlex
import stat
import tempfile
import weakref
from contextlib import suppress
from dataclasses import dataclass, field
from urllib.parse import quote, urlsplit

from ..errors import AuthError

logger = logging.getLogger(__name__)

_ASKPASS_SCRIPT = (
    "#!/bin/sh\n"
    "case \"$1\" in\n"
    "  *Username*|*username*) printf '%s\\n' \"$GTC_GIT_USERNAME\" ;;\n"
    "  *) printf '%s\\n' \"$GTC_GIT_PASSWORD\" ;;\n"
    "esac\n"
)

# URL schemes that never carry credentials
LOCAL_SCHEMES = {"", "file"}


@dataclass
class AuthMethod:
    """Credentials used for fetch, pull, push and clone."""

    username: str = ""
    password: str = field(default="", repr=False)
    ssh_private_key_path: str = ""
    ssh_private_key: bytes = field(default=b"", repr=False)
    _askpass_path: str | None = field(default=None, init=False, repr=False, compare=False)
    _askpass_cleanup: weakref.finalize | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def is_basic(self) -> bool:
        return bool(self.username and self.password)

    @property
    def is_ssh(self) -> bool:
        return bool(self.ssh_private_key_path) and not self.is_basic

    def secrets(self) -> list[str]:
        """Values that must never show up in logs."""
        return [self.password] if self.password else []

    def _askpass(self) -> str:
        if self._askpass_path is None or not os.path.exists(self._askpass_path):
            self.close()
            fd, path = tempfile.mkstemp(prefix="gtc-askpass-", suffix=".sh")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(_ASKPASS_SCRIPT)
            os.chmod(path, stat.S_IRWXU)
            self._askpass_path = path
            # the helper lives as long as this object, or until close()
            self._askpass_cleanup = weakref.finalize(self, _remove_file, path)
        return self._askpass_path

    def close(self) -> None:
        """Delete the askpass helper, if one was written."""
        if self._askpass_cleanup is not None:
            self._askpass_cleanup()
            self._askpass_cleanup = None
        self._askpass_path = None

    def environment(self) -> dict[str, str]:
        """Environment variables that make git use these credentials."""
        # Never block on an interactive prompt
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self.is_basic:
            env["GIT_ASKPASS"] = self._askpass()
            env["GTC_GIT_USERNAME"] = self.username
            env["GTC_GIT_PASSWORD"] = self.password
        elif self.is_ssh:
            env["GIT_SSH_COMMAND"] = " ".join(
                [
                    "ssh",
                    "-i",
                    shlex.quote(self.ssh_private_key_path),
                    "-o",
                    "IdentitiesOnly=yes",
                    "-o",
                    "StrictHostKeyChecking=no",
                    "-o",
                    "UserKnownHostsFile=/dev/null",
                ]
            )
        return env


def _remove_file(path: str) -> None:
    with suppress(FileNotFoundError):
        os.unlink(path)


def get_auth(username: str, password: str = "", ssh_key_path: str = "") -> AuthMethod:
    """Build an ``AuthMethod`` from basic credentials or an SSH key path.

    Basic auth wins when both a username and a password are given.  For SSH
    the key file is read eagerly so a missing key fails here rather than in
    the middle of a fetch.  Raises ``AuthError`` when neither form applies.
    """
    if username and password:
        return AuthMethod(username=username, password=password)
    if username and ssh_key_path:
        with open(ssh_key_path, "rb") as fh:
            key = fh.read()
        # TODO: make host key verification selectable instead of always skipping it
        return AuthMethod(username=username, ssh_private_key_path=ssh_key_path, ssh_private_key=key)
    raise AuthError("no auth method was found")


def is_local_url(url: str) -> bool:
    """Return ``True`` for plain paths and ``file://`` URLs."""
    return urlsplit(url).scheme.lower() in LOCAL_SCHEMES


def strip_credentials(url: str) -> str:
    """Return ``url`` as ``scheme://host/path`` without any user info."""
    parts = urlsplit(url)
    if parts.scheme.lower() in LOCAL_SCHEMES:
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    return f"{parts.scheme}://{host}{parts.path}"


def mk_auth_method_injected_url(url: str, auth: AuthMethod | None) -> str:
    """Return ``url`` with basic credentials embedded.

    URLs are returned unchanged when there are no basic credentials or when
    the URL points at the local filesystem.
    """
    if auth is None or not auth.is_basic:
        return url
    parts = urlsplit(url)
    if parts.scheme.lower() in LOCAL_SCHEMES:
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    user = quote(auth.username, safe="")
    password = quote(auth.password, safe="")
    return f"{parts.scheme}://{user}:{password}@{host}{parts.path}"
