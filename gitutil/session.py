"""RepositorySession — the single entry point sequencing stage, commit, push and pull.

Usage::

    from gitutil import RepositorySession, StageUpdate

    with RepositorySession("/home/esther/src/site") as session:
        print(session.show_info().lines())
        report = session.push(StageUpdate(), amend=False)
        print(report.push.message)

The account for the repository is resolved lazily and its identity is
checked against the repository's ``user.name``/``user.email`` before the
first action that needs it, so a mismatch aborts before anything is
staged, committed, or pushed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from gitutil import branching
from gitutil.commits import (
    CommitOrchestrator,
    CommitOutcome,
    CommitResult,
    message_summary,
    read_commit_message,
)
from gitutil.config import SHORT_SHA_LENGTH
from gitutil.credentials import CredentialAccount, CredentialStore
from gitutil.errors import (
    CommitLogMissingError,
    GitUtilError,
    InvalidRepoPathError,
    RepositoryNotFoundError,
)
from gitutil.history import LogEntry, find_misattributed, get_history
from gitutil.models import RepositoryContext, RepositoryInfo, StatusReport
from gitutil.remote import PullResult, PushOutcome, PushResult, RemoteSynchronizer
from gitutil.staging import ChangeStager, StageRequest, StageUpdate
from gitutil.vcs.backend import GitBackend, GitError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    SHOW_INFO = "info"
    SHOW_STATUS = "status"
    PULL = "pull"
    PUSH = "push"
    UPDATE_REMOTE = "set-url"
    LIST_BRANCHES = "branch"
    DELETE_BRANCH = "branch-delete"
    RENAME_BRANCH = "branch-rename"
    AUDIT_AUTHORS = "authors"


class SessionState(str, Enum):
    OPENED = "opened"
    STAGED = "staged"
    COMMITTED = "committed"
    PUSHED = "pushed"
    PULL_COMPLETED = "pull_completed"
    CLOSED = "closed"


@dataclass
class PushReport:
    """Everything a push action did: staging, commit, and the push itself."""

    staged: bool
    commit: CommitResult
    push: PushResult

    @property
    def outcome(self) -> PushOutcome:
        return self.push.outcome


def normalise_repo_path(repo_path: str | Path | None) -> str:
    """Return the repository path as given, minus trailing separators.

    Defaults to the current directory.  The result is matched verbatim
    against accounts' watched directories, so no other normalisation is
    applied.
    """
    path = str(repo_path) if repo_path is not None and str(repo_path) else os.getcwd()
    stripped = path.rstrip("/\\")
    return stripped or path


class RepositorySession:
    """Own one repository for the duration of one action.

    Parameters
    ----------
    repo_path:
        Repository directory.  Defaults to the current directory.
    credential_store:
        Source of accounts.  Defaults to a store reading the default
        configuration path.
    confirm_init:
        Called with the path when it is not a repository; returning
        True initialises one there.  Without it, a missing repository is
        an error.
    """

    def __init__(
        self,
        repo_path: str | Path | None = None,
        credential_store: CredentialStore | None = None,
        *,
        confirm_init: Callable[[str], bool] | None = None,
    ) -> None:
        self.repo_path = normalise_repo_path(repo_path)
        self.credential_store = credential_store or CredentialStore()
        self.confirm_init = confirm_init
        self.backend = GitBackend(self.repo_path)
        self.context: RepositoryContext | None = None
        self.state: SessionState | None = None
        self._account: CredentialAccount | None = None

    # -- Lifecycle ------------------------------------------------------------

    def open(self) -> RepositoryContext:
        """Open the repository and capture its :class:`RepositoryContext`."""
        if not Path(self.repo_path).is_dir():
            raise InvalidRepoPathError(
                f"Provided repository path {self.repo_path} does not exist!"
            )

        if not self.backend.is_repo():
            if self.confirm_init is None or not self.confirm_init(self.repo_path):
                raise RepositoryNotFoundError(
                    f"Repo dir: {self.repo_path} is not a git repository"
                )
            account = self.credential_store.resolve(self.repo_path)
            self.backend.init_repo(identity=account.signature)

        self.backend.open()
        try:
            branch = self.backend.current_branch()
        except GitError:
            branch = "HEAD"

        self.context = RepositoryContext(
            path=self.repo_path,
            current_branch=branch,
            local_user_name=self.backend.config_get("user.name"),
            local_user_email=self.backend.config_get("user.email"),
            head_sha=self.backend.head_sha(),
        )
        self.state = SessionState.OPENED
        logger.debug("Opened %s on %s", self.backend.path, branch)
        return self.context

    def close(self) -> None:
        self.state = SessionState.CLOSED

    def __enter__(self) -> RepositorySession:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _require_open(self) -> RepositoryContext:
        if self.context is None or self.state == SessionState.CLOSED:
            raise GitUtilError("session is not open")
        return self.context

    @property
    def account(self) -> CredentialAccount:
        """The account for this repository, identity-checked on first access."""
        if self._account is None:
            context = self._require_open()
            self._account = self.credential_store.resolve_for(context)
        return self._account

    def _synchronizer(self) -> RemoteSynchronizer:
        account = self.account
        return RemoteSynchronizer(
            self.backend,
            credentials=account.credentials,
            signature=account.signature,
        )

    # -- Dispatch -------------------------------------------------------------

    def run(self, action: Action, **options: Any) -> Any:
        """Run *action* with its keyword *options* and return its report."""
        handlers: dict[Action, Callable[..., Any]] = {
            Action.SHOW_INFO: self.show_info,
            Action.SHOW_STATUS: self.show_status,
            Action.PULL: self.pull,
            Action.PUSH: self.push,
            Action.UPDATE_REMOTE: self.update_remote,
            Action.LIST_BRANCHES: self.list_branches,
            Action.DELETE_BRANCH: self.delete_branch,
            Action.RENAME_BRANCH: self.rename_branch,
            Action.AUDIT_AUTHORS: self.audit_authors,
        }
        return handlers[action](**options)

    # -- Read-only actions ----------------------------------------------------

    def show_info(self) -> RepositoryInfo:
        """Identity, branch and tip; needs no account."""
        context = self._require_open()
        return RepositoryInfo(
            path=context.path,
            author=context.local_user_name,
            email=context.local_user_email,
            branch=context.current_branch,
            sha=context.short_sha,
        )

    def show_status(self) -> StatusReport:
        """Info plus working-tree status and the pending commit message's first line.

        Read-only, so the repository identity is not checked here.
        """
        context = self._require_open()
        account = self.credential_store.resolve(context.path)
        report = StatusReport(info=self.show_info(), entries=self.backend.status())
        try:
            report.message_preview = message_summary(
                read_commit_message(account.commit_log_path)
            )
        except CommitLogMissingError as exc:
            logger.warning("%s", exc)
        return report

    def list_branches(self) -> list[branching.BranchListing]:
        self._require_open()
        return branching.list_branches(self.backend)

    def audit_authors(self, max_count: int = 50) -> list[LogEntry]:
        """Commits not authored and committed as the account's identity."""
        account = self.account
        return find_misattributed(get_history(self.backend, max_count), account.signature)

    # -- Mutating actions -----------------------------------------------------

    def push(self, request: StageRequest | None = None, amend: bool = False) -> PushReport:
        """Stage, commit if warranted, then push (forced when amending)."""
        account = self.account
        orchestrator = CommitOrchestrator(self.backend, account)
        # Read the message up front so a missing log aborts before staging
        summary = message_summary(orchestrator.message)
        logger.info("Commit message: %s", summary)

        stager = ChangeStager(
            self.backend,
            self.credential_store.configuration.application.path_rewrites,
        )
        staged = stager.stage(request if request is not None else StageUpdate())
        if staged:
            self.state = SessionState.STAGED

        commit = orchestrator.maybe_commit(staged, amend)
        if commit.outcome == CommitOutcome.COMMITTED:
            self.state = SessionState.COMMITTED

        if commit.nothing_to_push:
            push = PushResult(
                outcome=PushOutcome.NOTHING_TO_PUSH,
                message="Nothing to push; local tip already on the remote",
            )
        else:
            push = self._synchronizer().push(forced=amend)

        if push.outcome in (PushOutcome.PUSHED, PushOutcome.NOTHING_TO_PUSH):
            self.state = SessionState.PUSHED
        return PushReport(staged=staged, commit=commit, push=push)

    def pull(self, use_upstream: bool = False) -> PullResult:
        result = self._synchronizer().pull(use_upstream=use_upstream)
        self.state = SessionState.PULL_COMPLETED
        if result.head_sha:
            logger.info("HEAD at %s", result.head_sha[:SHORT_SHA_LENGTH])
        return result

    def update_remote(self, url: str, use_upstream: bool = False) -> bool:
        """Set the origin (or upstream) URL; False when it was already set."""
        return self._synchronizer().set_remote_url(url, use_upstream=use_upstream)

    def delete_branch(self, name: str) -> branching.BranchResult:
        return branching.delete_branch(self.backend, self._synchronizer(), name)

    def rename_branch(self, new_name: str) -> branching.BranchResult:
        return branching.rename_branch(self.backend, self._synchronizer(), new_name)
