"""Branch management — list, delete, and rename branches locally and on the remote.

Remote changes go through push refspecs: ``:refs/heads/<name>`` deletes
a remote branch, and a rename pushes the new name before deleting the
old one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gitutil.config import SHORT_SHA_LENGTH
from gitutil.remote import PushOutcome, PushResult, RemoteSynchronizer
from gitutil.vcs.backend import GitBackend, GitError

logger = logging.getLogger(__name__)


@dataclass
class BranchListing:
    """One local or remote-tracking branch."""

    name: str
    is_remote: bool
    is_current: bool
    tip: str | None

    def line(self) -> str:
        marker = "*" if self.is_current else " "
        tip = self.tip[:SHORT_SHA_LENGTH] if self.tip else "?"
        return f"{marker}{self.name}: {tip}"


@dataclass
class BranchResult:
    """Outcome of a branch mutation: local part plus the remote push, if any."""

    changed: bool
    message: str
    push: PushResult | None = None


def list_branches(backend: GitBackend) -> list[BranchListing]:
    """Return local branches followed by remote-tracking branches."""
    try:
        current = backend.current_branch()
    except GitError:
        # detached HEAD
        current = None

    listing: list[BranchListing] = []
    for name in backend.list_branches():
        listing.append(BranchListing(
            name=name,
            is_remote=False,
            is_current=name == current,
            tip=backend.ref_sha(f"refs/heads/{name}"),
        ))
    for name in backend.list_branches(remote=True):
        listing.append(BranchListing(
            name=name,
            is_remote=True,
            is_current=False,
            tip=backend.ref_sha(f"refs/remotes/{name}"),
        ))
    return listing


def delete_branch(
    backend: GitBackend,
    synchronizer: RemoteSynchronizer,
    name: str,
) -> BranchResult:
    """Delete branch *name* locally and on the remote, wherever it exists."""
    if name == backend.current_branch():
        return BranchResult(
            changed=False,
            message=f"Cannot delete the checked-out branch '{name}'",
        )

    remote = synchronizer.remote
    local_exists = backend.ref_exists(f"refs/heads/{name}")
    remote_exists = backend.ref_exists(f"refs/remotes/{remote}/{name}")
    if not local_exists and not remote_exists:
        return BranchResult(changed=False, message=f"Branch '{name}' not found")

    if local_exists:
        backend.delete_branch(name)

    push = None
    if remote_exists:
        push = synchronizer.push_refs([f":refs/heads/{name}"])
        if push.outcome != PushOutcome.PUSHED:
            return BranchResult(
                changed=local_exists,
                message=f"Remote branch '{remote}/{name}' not deleted: {push.message}",
                push=push,
            )

    where = " and ".join(
        part for part, present in (("locally", local_exists), (f"on {remote}", remote_exists))
        if present
    )
    return BranchResult(changed=True, message=f"Deleted '{name}' {where}", push=push)


def rename_branch(
    backend: GitBackend,
    synchronizer: RemoteSynchronizer,
    new_name: str,
) -> BranchResult:
    """Rename the current branch to *new_name*, mirroring the rename on the remote.

    The remote is only touched when the old name had a remote-tracking
    branch.
    """
    old_name = backend.current_branch()
    if old_name == new_name:
        return BranchResult(changed=False, message=f"Branch is already named '{new_name}'")

    remote = synchronizer.remote
    remote_exists = backend.ref_exists(f"refs/remotes/{remote}/{old_name}")
    backend.rename_branch(old_name, new_name)

    if not remote_exists:
        return BranchResult(changed=True, message=f"Renamed '{old_name}' -> '{new_name}'")

    ref = f"refs/heads/{new_name}"
    push = synchronizer.push_refs([f"{ref}:{ref}"], set_upstream=True)
    if push.outcome != PushOutcome.PUSHED:
        return BranchResult(
            changed=True,
            message=f"Renamed locally; pushing '{new_name}' failed: {push.message}",
            push=push,
        )

    push = synchronizer.push_refs([f":refs/heads/{old_name}"])
    if push.outcome != PushOutcome.PUSHED:
        return BranchResult(
            changed=True,
            message=f"Renamed '{old_name}' -> '{new_name}'; old remote branch kept: {push.message}",
            push=push,
        )

    logger.info("Renamed remote branch %s/%s -> %s", remote, old_name, new_name)
    return BranchResult(
        changed=True,
        message=f"Renamed '{old_name}' -> '{new_name}' locally and on {remote}",
        push=push,
    )
