"""Git-facing layer: client, submodules, references, files, auth and info."""

from .auth import AuthMethod, get_auth, mk_auth_method_injected_url
from .client import Client, ClientOpt
from .info import Info, collect_info

__all__ = [
    "AuthMethod",
    "Client",
    "ClientOpt",
    "Info",
    "collect_info",
    "get_auth",
    "mk_auth_method_injected_url",
]
