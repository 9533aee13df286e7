"""Global configuration: paths, constants, settings."""

from __future__ import annotations

import os
from pathlib import Path

# Environment variable overriding the configuration document location
CONFIG_ENV_VAR = "GITUTIL_CONFIG"

# Environment variable overriding the log level when no -v is given
LOG_LEVEL_ENV_VAR = "GITUTIL_LOG_LEVEL"

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "gitutil" / "GitUtilConfig.json"

# Top-level key of the configuration document holding the default pointer
APPLICATION_SECTION = "application"

# Remote names
ORIGIN_REMOTE = "origin"
UPSTREAM_REMOTE = "upstream"

# Branch fetched from the upstream remote in a fork workflow
UPSTREAM_BRANCH = "main"

# Length of abbreviated commit ids shown to the user
SHORT_SHA_LENGTH = 9

# Messages of commits ignored by the author audit
AUDIT_SKIP_MESSAGE = "Initial commit"


def default_config_path() -> Path:
    """Return the configuration path from the environment or the default."""
    env_val = os.environ.get(CONFIG_ENV_VAR)
    if env_val:
        return Path(env_val).expanduser()
    return DEFAULT_CONFIG_PATH
