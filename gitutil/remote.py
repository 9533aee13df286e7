"""Remote synchronizer — push and pull against ``origin`` (or ``upstream``).

Backend failures never escape this module: rejected pushes, bad
credentials, missing refs and merge conflicts are converted into
:class:`PushOutcome` / :class:`PullOutcome` values carrying a one-line
message for the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from gitutil.config import ORIGIN_REMOTE, SHORT_SHA_LENGTH, UPSTREAM_BRANCH, UPSTREAM_REMOTE
from gitutil.vcs.backend import (
    AuthenticationError,
    CheckoutConflictError,
    Credentials,
    GitBackend,
    GitError,
    NonFastForwardError,
    RemoteNotFoundError,
    RemoteRefNotFoundError,
    Signature,
)

logger = logging.getLogger(__name__)


class PushOutcome(str, Enum):
    PUSHED = "pushed"
    NOTHING_TO_PUSH = "nothing_to_push"
    REMOTE_MISSING = "remote_missing"
    NON_FAST_FORWARD = "non_fast_forward"
    AUTH_FAILED = "auth_failed"
    UNKNOWN = "unknown"


class PullOutcome(str, Enum):
    FAST_FORWARDED = "fast_forwarded"
    MERGED = "merged"
    UP_TO_DATE = "up_to_date"
    CONFLICT = "conflict"
    REMOTE_MISSING = "remote_missing"
    REMOTE_REF_MISSING = "remote_ref_missing"
    AUTH_FAILED = "auth_failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PushPlan:
    """Branch and refspec of one push; ``forced`` is the effective force flag."""

    target_branch: str
    refspec: str
    forced: bool


@dataclass
class PushResult:
    outcome: PushOutcome
    message: str
    plan: PushPlan | None = None
    remote_url: str | None = None


@dataclass
class PullResult:
    outcome: PullOutcome
    message: str
    head_sha: str | None = None
    remote_url: str | None = None


def parse_push_porcelain(output: str) -> list[tuple[str, str, str]]:
    """Return ``(flag, from:to, summary)`` for each ref line of ``git push --porcelain``."""
    refs: list[tuple[str, str, str]] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3 or len(parts[0]) != 1:
            continue
        refs.append((parts[0], parts[1], parts[2]))
    return refs


class RemoteSynchronizer:
    """Push/pull orchestration for one repository.

    Parameters
    ----------
    backend:
        The opened repository.
    credentials:
        Login and token answered to the remote.
    signature:
        Identity recorded on merge commits created by a pull.
    remote:
        Remote used for push and default pull.
    upstream_remote, upstream_branch:
        Remote and branch fetched by ``pull(use_upstream=True)``.
    """

    def __init__(
        self,
        backend: GitBackend,
        credentials: Credentials | None = None,
        signature: Signature | None = None,
        *,
        remote: str = ORIGIN_REMOTE,
        upstream_remote: str = UPSTREAM_REMOTE,
        upstream_branch: str = UPSTREAM_BRANCH,
    ) -> None:
        self.backend = backend
        self.credentials = credentials
        self.signature = signature
        self.remote = remote
        self.upstream_remote = upstream_remote
        self.upstream_branch = upstream_branch

    # -- Push -----------------------------------------------------------------

    def plan_push(self, forced: bool = False) -> PushPlan:
        """Build the refspec for the current branch.

        The force form ``+ref:ref`` is used when *forced* or when the
        remote-tracking branch does not exist yet.
        """
        branch = self.backend.current_branch()
        ref = f"refs/heads/{branch}"
        tracking_exists = self.backend.ref_exists(f"refs/remotes/{self.remote}/{branch}")
        force = forced or not tracking_exists
        refspec = f"+{ref}:{ref}" if force else f"{ref}:{ref}"
        return PushPlan(target_branch=branch, refspec=refspec, forced=force)

    def push(self, forced: bool = False) -> PushResult:
        """Push the current branch to the remote and report the outcome."""
        url = self.backend.remote_url(self.remote)
        if url is None:
            return self._remote_missing()

        plan = self.plan_push(forced)
        logger.info("Pushing %s to %s (%s)", plan.target_branch, self.remote, plan.refspec)
        result = self.push_refs([plan.refspec], set_upstream=True)
        result.plan = plan
        if result.outcome == PushOutcome.PUSHED:
            mode = "forced" if plan.forced else "fast-forward"
            result.message = f"{plan.target_branch} -> {self.remote}/{plan.target_branch} ({mode})"
        return result

    def push_refs(self, refspecs: list[str], *, set_upstream: bool = False) -> PushResult:
        """Push arbitrary *refspecs* (updates, deletions) and classify the result."""
        url = self.backend.remote_url(self.remote)
        if url is None:
            return self._remote_missing()

        try:
            output = self.backend.push(
                self.remote,
                refspecs,
                credentials=self.credentials,
                set_upstream=set_upstream,
            )
        except NonFastForwardError as exc:
            logger.debug("Push rejected: %s", exc)
            return PushResult(
                outcome=PushOutcome.NON_FAST_FORWARD,
                message=(
                    "Remote branch has diverged; not attempting fast forward. "
                    "Re-run with --amend to force the push."
                ),
                remote_url=url,
            )
        except AuthenticationError as exc:
            login = self.credentials.username if self.credentials else "(anonymous)"
            logger.debug("Authentication failed: %s", exc)
            return PushResult(
                outcome=PushOutcome.AUTH_FAILED,
                message=f"Authentication failed for {url} as '{login}': {exc.stderr.strip()}",
                remote_url=url,
            )
        except GitError as exc:
            logger.error("Push to %s failed: %s", url, exc)
            return PushResult(outcome=PushOutcome.UNKNOWN, message=str(exc), remote_url=url)

        flags = [flag for flag, _refs, _summary in parse_push_porcelain(output)]
        if flags and all(flag == "=" for flag in flags):
            return PushResult(
                outcome=PushOutcome.NOTHING_TO_PUSH,
                message="Everything up-to-date",
                remote_url=url,
            )
        return PushResult(outcome=PushOutcome.PUSHED, message="done", remote_url=url)

    def _remote_missing(self) -> PushResult:
        return PushResult(
            outcome=PushOutcome.REMOTE_MISSING,
            message=f"No '{self.remote}' remote configured; add one with set-url",
        )

    # -- Pull -----------------------------------------------------------------

    def pull(self, use_upstream: bool = False) -> PullResult:
        """Fetch and merge, preferring a fast-forward.

        With *use_upstream* the fixed upstream branch is fetched from the
        upstream remote and merged instead of the origin tracking branch.
        """
        remote = self.upstream_remote if use_upstream else self.remote
        url = self.backend.remote_url(remote)
        if url is None:
            return PullResult(
                outcome=PullOutcome.REMOTE_MISSING,
                message=f"No '{remote}' remote configured; add one with set-url",
            )

        try:
            if use_upstream:
                target = f"refs/remotes/{remote}/{self.upstream_branch}"
                self.backend.fetch(
                    remote,
                    [f"+refs/heads/{self.upstream_branch}:{target}"],
                    credentials=self.credentials,
                )
            else:
                self.backend.fetch(remote, credentials=self.credentials)
                target = self._tracking_ref()
        except RemoteRefNotFoundError:
            branch = self.upstream_branch if use_upstream else self.backend.current_branch()
            return PullResult(
                outcome=PullOutcome.REMOTE_REF_MISSING,
                message=f"Branch '{branch}' not found on {remote} ({url})",
                remote_url=url,
            )
        except AuthenticationError as exc:
            return PullResult(
                outcome=PullOutcome.AUTH_FAILED,
                message=f"Authentication failed for {url}: {exc.stderr.strip()}",
                remote_url=url,
            )
        except RemoteNotFoundError as exc:
            return PullResult(outcome=PullOutcome.REMOTE_MISSING, message=str(exc), remote_url=url)
        except GitError as exc:
            logger.error("Fetch from %s failed: %s", url, exc)
            return PullResult(outcome=PullOutcome.UNKNOWN, message=str(exc), remote_url=url)

        return self._merge(target)

    def _tracking_ref(self) -> str:
        upstream = self.backend.upstream_ref()
        if upstream is not None and upstream.startswith(f"refs/remotes/{self.remote}/"):
            return upstream
        return f"refs/remotes/{self.remote}/{self.backend.current_branch()}"

    def _merge(self, target: str) -> PullResult:
        target_sha = self.backend.ref_sha(target)
        if target_sha is None:
            return PullResult(
                outcome=PullOutcome.REMOTE_REF_MISSING,
                message=f"{target} does not exist; nothing to merge",
                head_sha=self.backend.head_sha(),
            )

        before = self.backend.head_sha()
        if before is not None and self.backend.is_ancestor(target_sha, before):
            return PullResult(
                outcome=PullOutcome.UP_TO_DATE,
                message="Already up to date",
                head_sha=before,
            )

        try:
            self.backend.merge(target, self.signature)
        except CheckoutConflictError as exc:
            logger.debug("Merge stopped: %s", exc)
            return PullResult(
                outcome=PullOutcome.CONFLICT,
                message=f"Merge of {target} conflicts with local changes; resolve them manually",
                head_sha=self.backend.head_sha(),
            )
        except GitError as exc:
            logger.error("Merge of %s failed: %s", target, exc)
            return PullResult(outcome=PullOutcome.UNKNOWN, message=str(exc), head_sha=before)

        after = self.backend.head_sha()
        outcome = PullOutcome.FAST_FORWARDED if after == target_sha else PullOutcome.MERGED
        short = after[:SHORT_SHA_LENGTH] if after else "?"
        return PullResult(
            outcome=outcome,
            message=f"{self.backend.current_branch()} -> {short}",
            head_sha=after,
        )

    # -- Remote URLs ----------------------------------------------------------

    def set_remote_url(self, url: str, use_upstream: bool = False) -> bool:
        """Point origin (or upstream) at *url*; returns False when already set."""
        remote = self.upstream_remote if use_upstream else self.remote
        if self.backend.remote_url(remote) == url:
            logger.info("Remote '%s' already points at %s", remote, url)
            return False
        self.backend.set_remote_url(remote, url)
        return True
