"""Commit orchestrator — decide whether to commit, then commit as the resolved account.

A commit is attempted when something was staged, or when amending and
the commit-log message differs from the tip's message (a message-only
amend).  The message is the full content of the account's commit-log
file and is recorded verbatim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from gitutil.config import ORIGIN_REMOTE
from gitutil.credentials import CredentialAccount
from gitutil.errors import CommitLogMissingError
from gitutil.vcs.backend import EmptyCommitError, GitBackend

logger = logging.getLogger(__name__)


class CommitOutcome(str, Enum):
    """What :meth:`CommitOrchestrator.maybe_commit` did."""

    COMMITTED = "committed"
    SKIPPED = "skipped"
    EMPTY_COMMIT_AVOIDED = "empty_commit_avoided"


@dataclass
class CommitResult:
    outcome: CommitOutcome
    sha: str | None = None
    nothing_to_push: bool = False
    """The local tip already equals the remote-tracking tip."""


def read_commit_message(path: str | Path | None) -> str:
    """Return the full content of the commit-log file.

    Raises :class:`CommitLogMissingError` when the path is unset, the
    file does not exist, or it holds only whitespace.
    """
    if path is None:
        raise CommitLogMissingError("No commit log file configured for this account")
    log_path = Path(path)
    if not log_path.is_file():
        raise CommitLogMissingError(f"Commit log file {log_path} not found")
    # newline="" keeps CRLF line endings intact
    with log_path.open(encoding="utf-8", newline="") as fh:
        message = fh.read()
    if not message.strip():
        raise CommitLogMissingError(f"Commit log file {log_path} is empty")
    return message


def message_summary(message: str) -> str:
    """First line of *message*, shown in status and progress output."""
    lines = message.strip().splitlines()
    return lines[0] if lines else ""


class CommitOrchestrator:
    """Commit staged work for one repository as one account.

    Parameters
    ----------
    backend:
        The opened repository.
    account:
        Supplies the author/committer identity and the commit-log path.
    remote:
        Remote whose tracking branch decides ``nothing_to_push``.
    """

    def __init__(
        self,
        backend: GitBackend,
        account: CredentialAccount,
        remote: str = ORIGIN_REMOTE,
    ) -> None:
        self.backend = backend
        self.account = account
        self.remote = remote
        self._message: str | None = None

    @property
    def message(self) -> str:
        """The commit message, read once from the account's commit-log file."""
        if self._message is None:
            self._message = read_commit_message(self.account.commit_log_path)
        return self._message

    def should_commit(self, did_stage: bool, amend: bool) -> bool:
        if did_stage:
            return True
        if not amend:
            return False
        tip_message = self.backend.head_message()
        if tip_message is None:
            return False
        return self.message.strip() != tip_message.strip()

    def maybe_commit(self, did_stage: bool, amend: bool = False) -> CommitResult:
        """Commit when warranted and report what happened."""
        if amend and self.backend.head_sha() is None:
            logger.warning("Nothing to amend on an unborn branch; creating a new commit")
            amend = False

        if not self.should_commit(did_stage, amend):
            logger.info("No staged changes; not committing")
            return CommitResult(
                outcome=CommitOutcome.SKIPPED,
                sha=self.backend.head_sha(),
                nothing_to_push=self._tip_matches_remote(),
            )

        logger.info("Committing as %s <%s>: %s",
                    self.account.full_name, self.account.email, message_summary(self.message))
        try:
            sha = self.backend.commit(
                self.message,
                author=self.account.signature,
                committer=self.account.signature,
                amend=amend,
            )
        except EmptyCommitError:
            logger.info("Not creating new commit; staged tree equals the tip")
            return CommitResult(
                outcome=CommitOutcome.EMPTY_COMMIT_AVOIDED,
                sha=self.backend.head_sha(),
                nothing_to_push=self._tip_matches_remote(),
            )

        return CommitResult(outcome=CommitOutcome.COMMITTED, sha=sha)

    def _tip_matches_remote(self) -> bool:
        head = self.backend.head_sha()
        if head is None:
            return False
        branch = self.backend.current_branch()
        tracking = self.backend.ref_sha(f"refs/remotes/{self.remote}/{branch}")
        return tracking == head
