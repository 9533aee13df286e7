"""Snapshots and reports exchanged between the session and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from gitutil.config import SHORT_SHA_LENGTH
from gitutil.vcs.status import StatusEntry


class RepositoryContext(BaseModel):
    """What the repository says about itself at session start.

    ``path`` is the directory exactly as requested (trailing separators
    removed); it is the key matched against accounts' watched
    directories.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    current_branch: str
    local_user_name: str | None = None
    local_user_email: str | None = None
    head_sha: str | None = None

    @property
    def short_sha(self) -> str | None:
        return self.head_sha[:SHORT_SHA_LENGTH] if self.head_sha else None


@dataclass
class RepositoryInfo:
    """Identity, branch, and tip of a repository."""

    path: str
    author: str | None
    email: str | None
    branch: str
    sha: str | None

    def lines(self) -> list[str]:
        return [
            f"Local Repo: {self.path}",
            f"Author: {self.author or '(unset)'}",
            f"Email: {self.email or '(unset)'}",
            f"Branch: {self.branch}",
            f"SHA: {self.sha or '(no commits)'}",
        ]


@dataclass
class StatusReport:
    """Repository info, working-tree status, and the pending commit message preview."""

    info: RepositoryInfo
    entries: list[StatusEntry] = field(default_factory=list)
    message_preview: str | None = None
