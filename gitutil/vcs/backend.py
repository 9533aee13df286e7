"""GitBackend — open, query, and mutate a git repository.

All git operations use :func:`subprocess.run`; no GitPython dependency.
Failures are classified from git's own output into :class:`GitError`
subclasses so callers can tell a rejected push from a bad token.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from gitutil.errors import GitUtilError
from gitutil.vcs.status import StatusEntry, parse_porcelain

logger = logging.getLogger(__name__)

# Inline credential helper answering ``get`` from the environment, so the
# token never shows up in argv or in the debug log.
_CREDENTIAL_HELPER = (
    '!f() { test "$1" = get && '
    'echo "username=${GITUTIL_USERNAME}" && '
    'echo "password=${GITUTIL_TOKEN}"; }; f'
)


class GitError(GitUtilError):
    """Raised when a git subprocess returns a non-zero exit code."""

    def __init__(self, message: str, *, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class NotARepositoryError(GitError):
    """The working directory is not inside a git work tree."""


class NonFastForwardError(GitError):
    """A push was rejected because the remote branch has diverged."""


class AuthenticationError(GitError):
    """The remote refused the supplied credentials."""


class CheckoutConflictError(GitError):
    """A merge stopped on conflicts or would overwrite local changes."""


class RemoteRefNotFoundError(GitError):
    """The requested ref does not exist on the remote."""


class RemoteNotFoundError(GitError):
    """The named remote is not configured or not reachable as a repository."""


class EmptyCommitError(GitError):
    """A non-amend commit was requested with nothing staged."""


# Checked in order against git's lower-cased stdout + stderr.
_ERROR_MARKERS: tuple[tuple[str, type[GitError]], ...] = (
    ("not a git repository", NotARepositoryError),
    ("[rejected]", NonFastForwardError),
    ("non-fast-forward", NonFastForwardError),
    ("updates were rejected", NonFastForwardError),
    ("authentication failed", AuthenticationError),
    ("could not read username", AuthenticationError),
    ("could not read password", AuthenticationError),
    ("invalid username or password", AuthenticationError),
    ("the requested url returned error: 401", AuthenticationError),
    ("the requested url returned error: 403", AuthenticationError),
    ("permission denied", AuthenticationError),
    ("couldn't find remote ref", RemoteRefNotFoundError),
    ("would be overwritten by", CheckoutConflictError),
    ("conflict (", CheckoutConflictError),
    ("automatic merge failed", CheckoutConflictError),
    ("no such remote", RemoteNotFoundError),
    ("does not appear to be a git repository", RemoteNotFoundError),
)


@dataclass(frozen=True)
class Signature:
    """Name and email recorded as author/committer."""

    name: str
    email: str

    def as_env(self) -> dict[str, str]:
        """Environment making this identity both author and committer."""
        return {
            "GIT_AUTHOR_NAME": self.name,
            "GIT_AUTHOR_EMAIL": self.email,
            "GIT_COMMITTER_NAME": self.name,
            "GIT_COMMITTER_EMAIL": self.email,
        }


@dataclass(frozen=True)
class Credentials:
    """Username and token answered to git's credential prompt."""

    username: str
    token: str = field(repr=False)

    def as_env(self) -> dict[str, str]:
        return {
            "GITUTIL_USERNAME": self.username,
            "GITUTIL_TOKEN": self.token,
            "GIT_TERMINAL_PROMPT": "0",
        }


def classify_failure(
    args: tuple[str, ...] | list[str],
    result: subprocess.CompletedProcess[str],
) -> GitError:
    """Build the most specific :class:`GitError` for a failed git command."""
    output = f"{result.stdout or ''}\n{result.stderr or ''}"
    lowered = output.lower()
    error_cls: type[GitError] = GitError
    for marker, cls in _ERROR_MARKERS:
        if marker in lowered:
            error_cls = cls
            break
    detail = (result.stderr or "").strip() or (result.stdout or "").strip()
    return error_cls(
        f"git {' '.join(args)} failed (rc={result.returncode}): {detail}",
        stderr=result.stderr or "",
    )


def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    check: bool = True,
    input_text: str | None = None,
    env: dict[str, str] | None = None,
    credentials: Credentials | None = None,
    raw: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Execute a git command via subprocess and return the result.

    Parameters
    ----------
    *args:
        Arguments passed after ``git``.
    cwd:
        Working directory for the command.
    check:
        If *True*, raise a classified :class:`GitError` on non-zero exit.
    input_text:
        Text fed to the command's stdin.
    env:
        Extra environment variables layered over ``os.environ``.
    credentials:
        When given, git answers authentication prompts with these.
    raw:
        Exchange stdin and stdout as UTF-8 bytes, without newline
        translation, so CRLF messages survive unchanged.
    """
    cmd = ["git"]
    run_env: dict[str, str] | None = None
    if env or credentials is not None:
        run_env = os.environ.copy()
        run_env.update(env or {})
    if credentials is not None:
        cmd += ["-c", "credential.helper=", "-c", f"credential.helper={_CREDENTIAL_HELPER}"]
        run_env.update(credentials.as_env())
    cmd += args

    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=not raw,
            input=input_text.encode("utf-8") if raw and input_text is not None else input_text,
            env=run_env,
        )
    except OSError as exc:
        raise GitError(f"failed to execute git: {exc}") from exc

    if raw:
        result.stdout = result.stdout.decode("utf-8", errors="replace")
        result.stderr = result.stderr.decode("utf-8", errors="replace")

    if check and result.returncode != 0:
        raise classify_failure(args, result)
    return result


class GitBackend:
    """Handle on one git repository.

    Parameters
    ----------
    path:
        Directory of the repository.  :meth:`open` re-points it at the
        work tree's top level so status paths and ``git add`` paths agree.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).resolve()

    # -- Initialisation -------------------------------------------------------

    def init_repo(self, identity: Signature | None = None) -> Path:
        """Initialise a git repository at *self.path*.

        When *identity* is given it is written to the local ``user.name``
        and ``user.email`` so later identity checks pass.
        """
        self.path.mkdir(parents=True, exist_ok=True)
        _run_git("init", cwd=self.path)
        if identity is not None:
            self.config_set("user.name", identity.name)
            self.config_set("user.email", identity.email)
        logger.info("Initialised repository at %s", self.path)
        return self.path

    def is_repo(self) -> bool:
        """Return *True* if *self.path* is inside a git work tree."""
        if not self.path.is_dir():
            return False
        result = _run_git(
            "rev-parse", "--is-inside-work-tree",
            cwd=self.path,
            check=False,
        )
        return result.returncode == 0 and result.stdout.strip() == "true"

    def open(self) -> Path:
        """Resolve the work tree root and use it from now on."""
        result = _run_git("rev-parse", "--show-toplevel", cwd=self.path)
        self.path = Path(result.stdout.strip()).resolve()
        return self.path

    # -- Configuration --------------------------------------------------------

    def config_get(self, key: str) -> str | None:
        """Return a config value, or *None* when unset."""
        result = _run_git("config", "--get", key, cwd=self.path, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def config_set(self, key: str, value: str) -> None:
        _run_git("config", key, value, cwd=self.path)

    # -- Refs / info ----------------------------------------------------------

    def current_branch(self) -> str:
        """Return the short name of the checked-out branch (unborn included)."""
        result = _run_git("symbolic-ref", "--short", "HEAD", cwd=self.path)
        return result.stdout.strip()

    def ref_sha(self, ref: str) -> str | None:
        """Return the commit id *ref* points at, or *None* if it does not exist."""
        result = _run_git(
            "rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}",
            cwd=self.path,
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def ref_exists(self, ref: str) -> bool:
        return self.ref_sha(ref) is not None

    def head_sha(self) -> str | None:
        """Return the tip commit id, or *None* on an unborn branch."""
        return self.ref_sha("HEAD")

    def head_message(self) -> str | None:
        """Return the exact message of the tip commit."""
        if self.head_sha() is None:
            return None
        result = _run_git("cat-file", "commit", "HEAD", cwd=self.path, raw=True)
        _headers, _sep, message = result.stdout.partition("\n\n")
        return message

    def upstream_ref(self) -> str | None:
        """Return the full ref the current branch tracks, if any."""
        result = _run_git(
            "rev-parse", "--symbolic-full-name", "@{upstream}",
            cwd=self.path,
            check=False,
        )
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return result.stdout.strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = _run_git(
            "merge-base", "--is-ancestor", ancestor, descendant,
            cwd=self.path,
            check=False,
        )
        return result.returncode == 0

    # -- Status / stage / commit ---------------------------------------------

    def status(self, include_ignored: bool = False) -> list[StatusEntry]:
        """Return the working-tree status, untracked files listed individually."""
        args = ["status", "--porcelain=v1", "-z", "--untracked-files=all"]
        if include_ignored:
            args.append("--ignored")
        result = _run_git(*args, cwd=self.path)
        return parse_porcelain(result.stdout)

    def add(self, *paths: str | Path) -> None:
        """Stage one or more paths for commit."""
        str_paths = [str(p) for p in paths]
        _run_git("add", "--", *str_paths, cwd=self.path)

    def has_staged_changes(self) -> bool:
        """Return *True* if the index differs from the tip tree."""
        result = _run_git("diff", "--cached", "--quiet", cwd=self.path, check=False)
        return result.returncode == 1

    def commit(
        self,
        message: str,
        author: Signature,
        committer: Signature | None = None,
        *,
        amend: bool = False,
    ) -> str:
        """Create a commit with *message* recorded verbatim.

        With *amend* the tip of the current branch is replaced and its
        authorship renewed.  Returns the full id of the new tip.

        Raises :class:`EmptyCommitError` for a non-amend commit with
        nothing staged.
        """
        if not amend and not self.has_staged_changes():
            raise EmptyCommitError("nothing staged; not creating an empty commit")

        env = author.as_env()
        if committer is not None:
            env.update(
                (key, value) for key, value in committer.as_env().items()
                if key.startswith("GIT_COMMITTER_")
            )
        args = ["commit", "--quiet", "--cleanup=verbatim", "--file=-"]
        if amend:
            args += ["--amend", "--reset-author", "--allow-empty"]

        _run_git(*args, cwd=self.path, input_text=message, env=env, raw=True)
        sha = self.head_sha()
        logger.info("Committed %s%s", sha, " (amend)" if amend else "")
        return sha or ""

    # -- Branches -------------------------------------------------------------

    def list_branches(self, remote: bool = False) -> list[str]:
        """Return local (or remote-tracking) branch short names."""
        namespace = "refs/remotes" if remote else "refs/heads"
        result = _run_git(
            "for-each-ref", "--format=%(refname:short)", namespace,
            cwd=self.path,
        )
        return [
            b.strip() for b in result.stdout.splitlines()
            if b.strip() and not b.strip().endswith("/HEAD")
        ]

    def rename_branch(self, old: str, new: str) -> None:
        _run_git("branch", "-m", old, new, cwd=self.path)
        logger.info("Renamed branch '%s' -> '%s'", old, new)

    def delete_branch(self, name: str, force: bool = True) -> None:
        """Delete a local branch (must not be the current branch)."""
        _run_git("branch", "-D" if force else "-d", name, cwd=self.path)
        logger.info("Deleted branch '%s'", name)

    # -- Remotes --------------------------------------------------------------

    def remote_names(self) -> list[str]:
        result = _run_git("remote", cwd=self.path)
        return [r.strip() for r in result.stdout.splitlines() if r.strip()]

    def remote_url(self, name: str) -> str | None:
        """Return the URL of remote *name*, or *None* if it is not configured."""
        if name not in self.remote_names():
            return None
        result = _run_git("remote", "get-url", name, cwd=self.path, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def set_remote_url(self, name: str, url: str) -> None:
        """Point remote *name* at *url*, adding the remote if needed."""
        if name in self.remote_names():
            _run_git("remote", "set-url", name, url, cwd=self.path)
        else:
            _run_git("remote", "add", name, url, cwd=self.path)
        logger.info("Remote '%s' -> %s", name, url)

    def push(
        self,
        remote: str,
        refspecs: list[str],
        *,
        credentials: Credentials | None = None,
        set_upstream: bool = False,
    ) -> str:
        """Push *refspecs* to *remote*; returns git's ``--porcelain`` report."""
        args = ["push", "--porcelain"]
        if set_upstream:
            args.append("--set-upstream")
        result = _run_git(
            *args, remote, *refspecs,
            cwd=self.path,
            credentials=credentials,
        )
        return result.stdout

    def fetch(
        self,
        remote: str,
        refspecs: list[str] | None = None,
        *,
        credentials: Credentials | None = None,
    ) -> None:
        _run_git(
            "fetch", remote, *(refspecs or []),
            cwd=self.path,
            credentials=credentials,
        )

    def merge(self, ref: str, signature: Signature | None = None) -> None:
        """Merge *ref* into the current branch, fast-forwarding when possible."""
        env = signature.as_env() if signature is not None else None
        _run_git("merge", "--ff", "--no-edit", ref, cwd=self.path, env=env)
