"""Process execution for the git CLI fallback."""

from .backend import CommandBackend, LocalBackend
from .git_runner import GitRunner

__all__ = ["CommandBackend", "GitRunner", "LocalBackend"]
