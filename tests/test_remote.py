"""Tests for push planning, push/pull outcomes, and remote URL updates.

Every scenario runs against a local bare repository acting as ``origin``;
a second clone plays the collaborator whose pushes make the remote move.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from gitutil.remote import (
    PullOutcome,
    PushOutcome,
    RemoteSynchronizer,
    parse_push_porcelain,
)
from gitutil.vcs.backend import AuthenticationError, Credentials, GitBackend, Signature

AUTHOR = Signature(name="Esther Arkin", email="esther@example.com")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _git(path: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=path, capture_output=True, text=True)
    return result.stdout.strip()


def _configure_git_user(path: Path) -> None:
    """Set git user.name, user.email, and disable GPG signing in a temp repo."""
    _git(path, "config", "user.email", AUTHOR.email)
    _git(path, "config", "user.name", AUTHOR.name)
    _git(path, "config", "commit.gpgsign", "false")


def _commit_file(path: Path, name: str, content: str, message: str) -> str:
    (path / name).write_text(content)
    _git(path, "add", name)
    _git(path, "commit", "-m", message)
    return _git(path, "rev-parse", "HEAD")


def _init_git_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    _git(path, "init", "-b", "main")
    _configure_git_user(path)
    _commit_file(path, "a.txt", "a\n", "init")
    return path


def _make_bare(path: Path) -> Path:
    subprocess.run(["git", "init", "--bare", "-b", "main", str(path)], capture_output=True)
    return path


def _clone(remote: Path, path: Path) -> Path:
    subprocess.run(["git", "clone", str(remote), str(path)], capture_output=True)
    _configure_git_user(path)
    return path


@pytest.fixture()
def remote(tmp_path: Path) -> Path:
    return _make_bare(tmp_path / "remote.git")


@pytest.fixture()
def local(tmp_path: Path, remote: Path) -> GitBackend:
    """Working repository whose ``main`` is already pushed to ``origin``."""
    path = _init_git_repo(tmp_path / "local")
    _git(path, "remote", "add", "origin", str(remote))
    _git(path, "push", "-u", "origin", "main")
    backend = GitBackend(path)
    backend.open()
    return backend


@pytest.fixture()
def other(tmp_path: Path, remote: Path, local: GitBackend) -> Path:
    """A collaborator's clone of the same remote."""
    return _clone(remote, tmp_path / "other")


def _sync(backend: GitBackend) -> RemoteSynchronizer:
    return RemoteSynchronizer(backend, Credentials("a1", "t1"), AUTHOR)


# ---------------------------------------------------------------------------
# Porcelain
# ---------------------------------------------------------------------------


class TestParsePushPorcelain:
    def test_parses_ref_lines_only(self):
        output = (
            "To /tmp/remote.git\n"
            "=\trefs/heads/main:refs/heads/main\t[up to date]\n"
            " \trefs/heads/dev:refs/heads/dev\tabc..def\n"
            "Done\n"
        )
        assert parse_push_porcelain(output) == [
            ("=", "refs/heads/main:refs/heads/main", "[up to date]"),
            (" ", "refs/heads/dev:refs/heads/dev", "abc..def"),
        ]


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


class TestPush:
    def test_plan_without_tracking_branch_forces(self, tmp_path: Path):
        backend = GitBackend(_init_git_repo(tmp_path / "fresh"))
        plan = _sync(backend).plan_push(forced=False)
        assert plan.target_branch == "main"
        assert plan.refspec == "+refs/heads/main:refs/heads/main"
        assert plan.forced

    def test_plan_with_tracking_branch(self, local: GitBackend):
        plan = _sync(local).plan_push(forced=False)
        assert plan.refspec == "refs/heads/main:refs/heads/main"
        assert not plan.forced
        assert _sync(local).plan_push(forced=True).refspec == "+refs/heads/main:refs/heads/main"

    def test_push_new_commit(self, local: GitBackend, remote: Path):
        head = _commit_file(local.path, "b.txt", "b\n", "second")
        result = _sync(local).push()
        assert result.outcome == PushOutcome.PUSHED
        assert result.message == "main -> origin/main (fast-forward)"
        assert _git(remote, "rev-parse", "refs/heads/main") == head

    def test_push_first_time_to_empty_remote(self, tmp_path: Path):
        remote = _make_bare(tmp_path / "empty.git")
        backend = GitBackend(_init_git_repo(tmp_path / "fresh"))
        backend.set_remote_url("origin", str(remote))
        result = _sync(backend).push()
        assert result.outcome == PushOutcome.PUSHED
        assert result.plan.forced
        assert backend.upstream_ref() == "refs/remotes/origin/main"

    def test_second_push_has_nothing_to_push(self, local: GitBackend):
        _commit_file(local.path, "b.txt", "b\n", "second")
        assert _sync(local).push().outcome == PushOutcome.PUSHED
        result = _sync(local).push()
        assert result.outcome == PushOutcome.NOTHING_TO_PUSH

    def test_diverged_remote_is_not_fast_forwarded(self, local: GitBackend, other: Path, remote: Path):
        theirs = _commit_file(other, "theirs.txt", "x\n", "theirs")
        _git(other, "push", "origin", "main")
        _commit_file(local.path, "mine.txt", "y\n", "mine")

        result = _sync(local).push(forced=False)
        assert result.outcome == PushOutcome.NON_FAST_FORWARD
        assert "--amend" in result.message
        assert _git(remote, "rev-parse", "refs/heads/main") == theirs

    def test_forced_push_overwrites_diverged_remote(self, local: GitBackend, other: Path, remote: Path):
        _commit_file(other, "theirs.txt", "x\n", "theirs")
        _git(other, "push", "origin", "main")
        mine = _commit_file(local.path, "mine.txt", "y\n", "mine")

        result = _sync(local).push(forced=True)
        assert result.outcome == PushOutcome.PUSHED
        assert result.message.endswith("(forced)")
        assert _git(remote, "rev-parse", "refs/heads/main") == mine

    def test_missing_origin(self, tmp_path: Path):
        backend = GitBackend(_init_git_repo(tmp_path / "fresh"))
        result = _sync(backend).push()
        assert result.outcome == PushOutcome.REMOTE_MISSING
        assert "set-url" in result.message

    def test_unreachable_origin_is_reported(self, tmp_path: Path):
        backend = GitBackend(_init_git_repo(tmp_path / "fresh"))
        backend.set_remote_url("origin", str(tmp_path / "nowhere"))
        result = _sync(backend).push()
        assert result.outcome == PushOutcome.UNKNOWN

    def test_rejected_credentials(self, local: GitBackend, remote: Path, monkeypatch):
        def _refuse(self, remote_name, refspecs, **kwargs):
            raise AuthenticationError(
                "git push failed (rc=128)",
                stderr="fatal: Authentication failed for 'https://github.com/x/y.git/'\n",
            )

        monkeypatch.setattr(GitBackend, "push", _refuse)
        _commit_file(local.path, "b.txt", "b\n", "second")

        result = _sync(local).push()
        assert result.outcome == PushOutcome.AUTH_FAILED
        assert result.remote_url == str(remote)
        assert str(remote) in result.message
        assert "'a1'" in result.message


# ---------------------------------------------------------------------------
# Pull
# ---------------------------------------------------------------------------


class TestPull:
    def test_fast_forward(self, local: GitBackend, other: Path):
        theirs = _commit_file(other, "theirs.txt", "x\n", "theirs")
        _git(other, "push", "origin", "main")

        result = _sync(local).pull()
        assert result.outcome == PullOutcome.FAST_FORWARDED
        assert result.head_sha == theirs
        assert local.head_sha() == theirs
        assert (local.path / "theirs.txt").is_file()

    def test_up_to_date(self, local: GitBackend):
        before = local.head_sha()
        result = _sync(local).pull()
        assert result.outcome == PullOutcome.UP_TO_DATE
        assert local.head_sha() == before

    def test_local_commits_ahead_are_up_to_date(self, local: GitBackend):
        mine = _commit_file(local.path, "mine.txt", "y\n", "mine")
        assert _sync(local).pull().outcome == PullOutcome.UP_TO_DATE
        assert local.head_sha() == mine

    def test_diverged_histories_merge(self, local: GitBackend, other: Path):
        theirs = _commit_file(other, "theirs.txt", "x\n", "theirs")
        _git(other, "push", "origin", "main")
        mine = _commit_file(local.path, "mine.txt", "y\n", "mine")

        result = _sync(local).pull()
        assert result.outcome == PullOutcome.MERGED
        assert local.is_ancestor(theirs, local.head_sha())
        assert local.is_ancestor(mine, local.head_sha())
        assert _git(local.path, "log", "-1", "--format=%an") == AUTHOR.name

    def test_conflict(self, local: GitBackend, other: Path):
        _commit_file(other, "a.txt", "theirs\n", "theirs")
        _git(other, "push", "origin", "main")
        _commit_file(local.path, "a.txt", "mine\n", "mine")

        result = _sync(local).pull()
        assert result.outcome == PullOutcome.CONFLICT
        assert "resolve" in result.message

    def test_missing_origin(self, tmp_path: Path):
        backend = GitBackend(_init_git_repo(tmp_path / "fresh"))
        assert _sync(backend).pull().outcome == PullOutcome.REMOTE_MISSING

    def test_upstream_fast_forward(self, local: GitBackend, other: Path, remote: Path):
        theirs = _commit_file(other, "theirs.txt", "x\n", "theirs")
        _git(other, "push", "origin", "main")
        local.set_remote_url("upstream", str(remote))

        result = _sync(local).pull(use_upstream=True)
        assert result.outcome == PullOutcome.FAST_FORWARDED
        assert local.ref_sha("refs/remotes/upstream/main") == theirs
        assert local.head_sha() == theirs

    def test_upstream_without_main_branch(self, local: GitBackend, tmp_path: Path):
        empty = _make_bare(tmp_path / "empty.git")
        local.set_remote_url("upstream", str(empty))

        result = _sync(local).pull(use_upstream=True)
        assert result.outcome == PullOutcome.REMOTE_REF_MISSING
        assert "main" in result.message

    def test_rejected_credentials(self, local: GitBackend, remote: Path, monkeypatch):
        def _refuse(self, remote_name, refspecs=None, **kwargs):
            raise AuthenticationError(
                "git fetch failed (rc=128)",
                stderr="fatal: Authentication failed for 'https://github.com/x/y.git/'\n",
            )

        monkeypatch.setattr(GitBackend, "fetch", _refuse)
        before = local.head_sha()

        result = _sync(local).pull()
        assert result.outcome == PullOutcome.AUTH_FAILED
        assert result.remote_url == str(remote)
        assert str(remote) in result.message
        assert local.head_sha() == before

    def test_upstream_remote_not_configured(self, local: GitBackend):
        assert _sync(local).pull(use_upstream=True).outcome == PullOutcome.REMOTE_MISSING


# ---------------------------------------------------------------------------
# Remote URLs
# ---------------------------------------------------------------------------


class TestSetRemoteUrl:
    def test_idempotent(self, local: GitBackend, remote: Path, tmp_path: Path):
        sync = _sync(local)
        assert not sync.set_remote_url(str(remote))
        assert sync.set_remote_url(str(tmp_path / "elsewhere.git"))
        assert local.remote_url("origin") == str(tmp_path / "elsewhere.git")

    def test_upstream_is_added(self, local: GitBackend, remote: Path):
        assert _sync(local).set_remote_url(str(remote), use_upstream=True)
        assert local.remote_url("upstream") == str(remote)
