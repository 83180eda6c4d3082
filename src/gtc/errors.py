"""Exception hierarchy for gtc.

GitPython errors are wrapped into these types at the client boundary so that
callers only have to handle one family of exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence


class GtcError(RuntimeError):
    """Base class for all gtc errors."""


class NotInitializedError(GtcError):
    """Raised when an operation needs a repository that is not open."""


class RepositoryNotFoundError(GtcError):
    """Raised when no git repository exists at the requested path."""


class CloneError(GtcError):
    """Raised when a clone cannot be completed."""


class ReferenceNotFoundError(GtcError, LookupError):
    """Raised when a branch, tag or revision cannot be resolved."""


class ReferenceChangedError(GtcError):
    """Raised when a reference keeps changing after all retries were used."""


class AuthError(GtcError, ValueError):
    """Raised when no usable authentication method can be built."""


class GitCommandFailed(GtcError):
    """Raised when a git CLI fallback command exits non-zero."""

    def __init__(self, command: Sequence[str], exit_code: int, stderr: str) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"git command {' '.join(self.command)} failed with code {exit_code}: {stderr}")
