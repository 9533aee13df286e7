"""
Exception types shared across gitutil.

Fatal conditions (bad configuration, identity mismatch, missing commit
log, bad repository path) are raised as subclasses of GitUtilError so
the CLI can report them uniformly. Recoverable remote conditions never
escape the remote synchronizer; they become outcome values instead.
"""

from __future__ import annotations


class GitUtilError(Exception):
    """Base class for all gitutil specific errors."""


class ConfigInvalidError(GitUtilError):
    """Raised when the configuration document is missing or malformed."""


class IdentityMismatchError(GitUtilError):
    """Raised when the repository identity disagrees with the resolved account."""


class CommitLogMissingError(GitUtilError):
    """Raised when the commit-log file is unset, absent, or empty."""


class InvalidRepoPathError(GitUtilError):
    """Raised when the requested repository directory does not exist."""


class RepositoryNotFoundError(GitUtilError):
    """Raised when the directory exists but is not a git work tree."""
