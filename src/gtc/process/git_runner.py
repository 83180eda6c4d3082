"""Runner for git CLI fallback commands.

GitPython covers most repository operations, but a few are either missing or
unreliable there (``submodule add``, ``submodule set-url``, ``add -A`` over
submodule trees, mirror pushes with arbitrary refspecs).  Those go through
``GitRunner``, which:

- only ever executes the configured git binary
- runs inside the repository directory
- applies the auth and protocol environment of the owning client
- redacts credentials from everything it logs or returns
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from ..config import Config
from ..errors import GitCommandFailed
from ..policy.redaction import redact_argv, redact_secrets
from .backend import CommandBackend, LocalBackend

logger = logging.getLogger(__name__)


class GitRunner:
    """Execute git subcommands in a fixed working directory."""

    def __init__(
        self,
        dir_path: str,
        config: Config,
        *,
        env: Mapping[str, str] | None = None,
        secrets: Iterable[str] = (),
        backend: CommandBackend | None = None,
    ) -> None:
        self.dir_path = dir_path
        self.config = config
        self.env = dict(env or {})
        self.secrets = [s for s in secrets if s]
        self.backend = backend or LocalBackend()

    def run(self, args: Sequence[str], *, cwd: str | None = None) -> dict[str, object]:
        """Run ``git <args>`` and return the redacted result dict.

        The dict carries exit_code, stdout, stderr, duration_ms and timed_out.
        A non-zero exit code is not raised here; see ``check``.
        """
        if not args:
            raise ValueError("git runner requires at least one argument")

        argv = [self.config.git_binary, *args]
        workdir = cwd or self.dir_path
        printable = " ".join(redact_argv(argv, self.secrets))
        if self.config.debug:
            logger.info("execute command in %s: %s", workdir, printable)
        else:
            logger.debug("execute command in %s: %s", workdir, printable)

        result = self.backend.run(argv, workdir, self.config.command_timeout_s, env=self.env)

        return {
            "argv": redact_argv(argv, self.secrets),
            "exit_code": int(result.get("exit_code", 1)),
            "stdout": redact_secrets(str(result.get("stdout", "")), self.secrets),
            "stderr": redact_secrets(str(result.get("stderr", "")), self.secrets),
            "duration_ms": int(result.get("duration_ms", 0)),
            "timed_out": bool(result.get("timed_out", False)),
        }

    def check(self, args: Sequence[str], *, cwd: str | None = None) -> str:
        """Run ``git <args>`` and return stdout, raising on failure."""
        result = self.run(args, cwd=cwd)
        if result["exit_code"] != 0:
            stderr = str(result["stderr"]).strip() or str(result["stdout"]).strip()
            logger.error("git command failed: %s", stderr)
            raise GitCommandFailed(result["argv"], int(result["exit_code"]), stderr)
        return str(result["stdout"])
