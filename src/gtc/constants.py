"""Global constants for gtc.

These values are the defaults used by the client, the submodule manager and
the mock builder.  Environment-driven settings live in ``gtc.config``.
"""

# Remote every client talks to
DEFAULT_REMOTE = "origin"

# Initial branch for freshly initialised repositories
DEFAULT_BRANCH = "master"

# Limits
DEFAULT_COMMAND_TIMEOUT_S = 300
DEFAULT_SUBMODULE_RETRY_LIMIT = 3

# Mock builder identity
MOCK_AUTHOR_NAME = "bob"
MOCK_AUTHOR_EMAIL = "bob@mail.com"
MOCK_DIR_PREFIX = "gtc-"

# Logging
DEFAULT_LOG_LEVEL = "INFO"
