"""
Logging helpers for gitutil.

The CLI configures the root logger once from the -v count; library
modules only ever call ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import os

from .config import LOG_LEVEL_ENV_VAR


def configure_logging(verbosity: int) -> None:
    """
    Configure the root logger based on a verbosity count.

    verbosity == 0 -> WARNING (or GITUTIL_LOG_LEVEL when set)
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """

    if verbosity <= 0:
        level_name = os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
    )
