"""gitutil — stage, commit and push/pull a repository as the account configured for its directory."""

__version__ = "1.0.0"

from gitutil.commits import CommitOrchestrator, CommitOutcome, CommitResult
from gitutil.credentials import (
    ConfigurationRoot,
    CredentialAccount,
    CredentialStore,
    load_configuration,
    resolve_account,
    verify_identity,
)
from gitutil.errors import (
    CommitLogMissingError,
    ConfigInvalidError,
    GitUtilError,
    IdentityMismatchError,
    InvalidRepoPathError,
    RepositoryNotFoundError,
)
from gitutil.models import RepositoryContext, RepositoryInfo, StatusReport
from gitutil.remote import PullOutcome, PushOutcome, PushPlan, RemoteSynchronizer
from gitutil.session import Action, PushReport, RepositorySession
from gitutil.staging import ChangeStager, StageAll, StageSingle, StageUpdate
from gitutil.vcs.backend import GitBackend, GitError

__all__ = [
    "__version__",
    # Session
    "Action",
    "PushReport",
    "RepositorySession",
    # Credentials
    "ConfigurationRoot",
    "CredentialAccount",
    "CredentialStore",
    "load_configuration",
    "resolve_account",
    "verify_identity",
    # Stage / commit / push
    "ChangeStager",
    "CommitOrchestrator",
    "CommitOutcome",
    "CommitResult",
    "PullOutcome",
    "PushOutcome",
    "PushPlan",
    "RemoteSynchronizer",
    "StageAll",
    "StageSingle",
    "StageUpdate",
    # Models
    "RepositoryContext",
    "RepositoryInfo",
    "StatusReport",
    # Backend
    "GitBackend",
    "GitError",
    # Errors
    "CommitLogMissingError",
    "ConfigInvalidError",
    "GitUtilError",
    "IdentityMismatchError",
    "InvalidRepoPathError",
    "RepositoryNotFoundError",
]
