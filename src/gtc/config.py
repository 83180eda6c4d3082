"""Configuration loading for gtc.

This module loads environment variables from a `.env` file using
`python-dotenv` and populates a `Config` object.

All variables are optional:
- GTC_DEBUG (default: 'false') - log every CLI fallback command at INFO
- GTC_SUBMODULE_PROTOCOL_FILE_ALLOW (default: 'false') - allow local
  file transports for submodules (CI and tests only)
- GTC_LOG_LEVEL (default: 'INFO')
- GTC_GIT_BINARY (default: 'git')
- GTC_COMMAND_TIMEOUT_S (default: 300)
- GTC_SUBMODULE_RETRY_LIMIT (default: 3)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .constants import DEFAULT_COMMAND_TIMEOUT_S, DEFAULT_LOG_LEVEL, DEFAULT_SUBMODULE_RETRY_LIMIT

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer, got '{raw}'") from exc


@dataclass
class Config:
    """Configuration values loaded from the environment."""

    debug: bool = False
    submodule_protocol_file_allow: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    git_binary: str = "git"
    command_timeout_s: int = DEFAULT_COMMAND_TIMEOUT_S
    submodule_retry_limit: int = DEFAULT_SUBMODULE_RETRY_LIMIT

    @classmethod
    def load_from_env(cls) -> Config:
        """Load configuration from environment variables.

        The `.env` file is loaded if present.  Raises `RuntimeError` if a
        numeric variable cannot be parsed.
        """
        load_dotenv()

        retry_limit = _env_int("GTC_SUBMODULE_RETRY_LIMIT", DEFAULT_SUBMODULE_RETRY_LIMIT)
        if retry_limit < 0:
            raise RuntimeError("GTC_SUBMODULE_RETRY_LIMIT must not be negative")

        return cls(
            debug=_env_flag("GTC_DEBUG"),
            submodule_protocol_file_allow=_env_flag("GTC_SUBMODULE_PROTOCOL_FILE_ALLOW"),
            log_level=os.getenv("GTC_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
            git_binary=os.getenv("GTC_GIT_BINARY", "git"),
            command_timeout_s=_env_int("GTC_COMMAND_TIMEOUT_S", DEFAULT_COMMAND_TIMEOUT_S),
            submodule_retry_limit=retry_limit,
        )

    def git_environment(self) -> dict[str, str]:
        """Environment entries every git process should receive.

        Git reads ``GIT_CONFIG_COUNT``/``GIT_CONFIG_KEY_n``/``GIT_CONFIG_VALUE_n``
        as if they were ``-c`` options, which also reaches the nested clones
        started by ``git submodule``.
        """
        env: dict[str, str] = {}
        if self.submodule_protocol_file_allow:
            env["GIT_CONFIG_COUNT"] = "1"
            env["GIT_CONFIG_KEY_0"] = "protocol.file.allow"
            env["GIT_CONFIG_VALUE_0"] = "always"
        return env
