"""Version-control backend: the git command-line program behind a small API."""

from gitutil.vcs.backend import (
    AuthenticationError,
    CheckoutConflictError,
    Credentials,
    EmptyCommitError,
    GitBackend,
    GitError,
    NonFastForwardError,
    NotARepositoryError,
    RemoteNotFoundError,
    RemoteRefNotFoundError,
    Signature,
)
from gitutil.vcs.status import StatusEntry

__all__ = [
    "AuthenticationError",
    "CheckoutConflictError",
    "Credentials",
    "EmptyCommitError",
    "GitBackend",
    "GitError",
    "NonFastForwardError",
    "NotARepositoryError",
    "RemoteNotFoundError",
    "RemoteRefNotFoundError",
    "Signature",
    "StatusEntry",
]
