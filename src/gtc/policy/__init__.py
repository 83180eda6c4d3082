"""Policy utilities for gtc."""

from .redaction import redact_argv, redact_secrets

__all__ = [
    "redact_argv",
    "redact_secrets",
]
