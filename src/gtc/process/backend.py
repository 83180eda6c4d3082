"""Command backends for the git CLI fallback.

This module defines the backend abstraction used by ``GitRunner`` to execute
external commands.  A backend hides how the process is started; results are
plain dicts so they can be logged and inspected without extra types.

In production, only LocalBackend is used.  Tests may pass any object that
implements ``CommandBackend``.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from typing import Protocol


class CommandBackend(Protocol):
    """Interface for a command backend.

    Results of ``run`` must include exit_code, stdout, stderr, duration_ms and
    timed_out fields.
    """

    def run(
        self,
        argv: Sequence[str],
        cwd: str,
        timeout_s: int,
        env: Mapping[str, str] | None = None,
    ) -> dict[str, object]:
        ...


class LocalBackend:
    """Backend that executes commands as local subprocesses.

    Commands are run with ``shell=False`` and the arguments passed as a list.
    ``env`` entries are layered over the current process environment.
    """

    def run(
        self,
        argv: Sequence[str],
        cwd: str,
        timeout_s: int,
        env: Mapping[str, str] | None = None,
    ) -> dict[str, object]:
        """Run a command in ``cwd``."""
        timed_out = False
        start_ns = time.time_ns()

        try:
            proc = subprocess.run(
                list(argv),
                cwd=cwd or None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=False,
                timeout=timeout_s,
                text=True,
                env={**os.environ, **(env or {})},
            )
            stdout = proc.stdout or ""
            stderr = proc.stderr or ""
            exit_code = proc.returncode
        except subprocess.TimeoutExpired:
            timed_out = True
            stdout = ""
            stderr = "Command timed out"
            exit_code = 124
        except OSError as exc:
            # Missing binary or unusable cwd
            stdout = ""
            stderr = str(exc)
            exit_code = 127

        duration_ms = int((time.time_ns() - start_ns) / 1_000_000)

        return {
            "exit_code": exit_code,
            "stdout": stdout,
            "stderr": stderr,
            "duration_ms": duration_ms,
            "timed_out": timed_out,
        }
