"""History queries — commit log entries and author audit.

The audit lists commits whose author or committer differs from the
account's identity, so commits recorded under the wrong identity on a
shared machine can be spotted before they are pushed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gitutil.config import AUDIT_SKIP_MESSAGE, SHORT_SHA_LENGTH
from gitutil.vcs.backend import GitBackend, Signature, _run_git

logger = logging.getLogger(__name__)

# Use a delimiter unlikely to appear in commit messages
_SEP = "---GITUTIL_SEP---"
_FORMAT = _SEP.join(["%H", "%an", "%ae", "%cn", "%ce", "%ai", "%s"])


@dataclass
class LogEntry:
    """A single entry from ``git log``."""

    sha: str
    author_name: str
    author_email: str
    committer_name: str
    committer_email: str
    date: str
    message: str

    @property
    def short_sha(self) -> str:
        return self.sha[:SHORT_SHA_LENGTH]

    def matches(self, identity: Signature) -> bool:
        """True if both author and committer are *identity*."""
        return (
            self.author_name == identity.name
            and self.committer_name == identity.name
            and self.author_email == identity.email
            and self.committer_email == identity.email
        )


def get_history(backend: GitBackend, max_count: int = 50) -> list[LogEntry]:
    """Return up to *max_count* commits reachable from HEAD, newest first."""
    result = _run_git(
        "log",
        f"--max-count={max_count}",
        f"--format={_FORMAT}",
        cwd=backend.path,
        check=False,
    )

    if result.returncode != 0 or not result.stdout.strip():
        return []

    entries: list[LogEntry] = []
    for line in result.stdout.strip().splitlines():
        parts = line.split(_SEP)
        if len(parts) >= 7:
            entries.append(LogEntry(*parts[:7]))
    return entries


def find_misattributed(entries: list[LogEntry], identity: Signature) -> list[LogEntry]:
    """Return entries not authored and committed as *identity*.

    Commits whose subject contains ``Initial commit`` are skipped; hosting
    services create those under their own identity.
    """
    mismatched = [
        entry for entry in entries
        if not entry.matches(identity) and AUDIT_SKIP_MESSAGE not in entry.message
    ]
    logger.debug("%d of %d commits misattributed", len(mismatched), len(entries))
    return mismatched
