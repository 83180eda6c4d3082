"""Top-level package for gtc.

gtc is a thin client over git repository operations.  It lets an automation
agent clone, pull, push, commit and keep submodules in sync without shelling
out for every step.  The public surface is re-exported here.
"""

from .config import Config
from .errors import (
    AuthError,
    CloneError,
    GitCommandFailed,
    GtcError,
    NotInitializedError,
    ReferenceChangedError,
    ReferenceNotFoundError,
    RepositoryNotFoundError,
)
from .git.auth import AuthMethod, get_auth
from .git.client import Client, ClientOpt
from .git.info import Info

__all__ = [
    "__version__",
    "AuthError",
    "AuthMethod",
    "Client",
    "ClientOpt",
    "CloneError",
    "Config",
    "GitCommandFailed",
    "GtcError",
    "Info",
    "NotInitializedError",
    "ReferenceChangedError",
    "ReferenceNotFoundError",
    "RepositoryNotFoundError",
    "get_auth",
]
__version__ = "0.1.0"
