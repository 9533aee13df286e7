"""Tests for the git backend and porcelain status parsing.

All repository tests use tmp_path fixtures with real git repos (subprocess git).
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from gitutil.vcs import backend as backend_module
from gitutil.vcs.backend import (
    AuthenticationError,
    CheckoutConflictError,
    EmptyCommitError,
    GitBackend,
    GitError,
    NonFastForwardError,
    NotARepositoryError,
    RemoteNotFoundError,
    RemoteRefNotFoundError,
    Signature,
    classify_failure,
)
from gitutil.vcs.status import StatusEntry, parse_porcelain

AUTHOR = Signature(name="Esther Arkin", email="esther@example.com")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_git_user(path: Path) -> None:
    """Set git user.name, user.email, and disable GPG signing in a temp repo."""
    subprocess.run(["git", "config", "user.email", AUTHOR.email], cwd=path, capture_output=True)
    subprocess.run(["git", "config", "user.name", AUTHOR.name], cwd=path, capture_output=True)
    subprocess.run(["git", "config", "commit.gpgsign", "false"], cwd=path, capture_output=True)


def _init_git_repo(path: Path) -> Path:
    """Create a git repo at *path* with one initial commit on ``main``."""
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-b", "main"], cwd=path, capture_output=True)
    _configure_git_user(path)
    (path / "init.txt").write_text("init")
    subprocess.run(["git", "add", "."], cwd=path, capture_output=True)
    subprocess.run(["git", "commit", "-m", "init"], cwd=path, capture_output=True)
    return path


def _failed(stderr: str, stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["git"], returncode=1, stdout=stdout, stderr=stderr)


# ---------------------------------------------------------------------------
# Porcelain parsing
# ---------------------------------------------------------------------------


class TestParsePorcelain:
    def test_basic_entries(self):
        entries = parse_porcelain(" M a.txt\0?? new.txt\0A  staged.txt\0")
        assert [e.path for e in entries] == ["a.txt", "new.txt", "staged.txt"]
        assert entries[0].is_modified_in_workdir
        assert entries[1].is_untracked
        assert not entries[2].is_modified_in_workdir

    def test_rename_consumes_original_path(self):
        entries = parse_porcelain("R  new.txt\0old.txt\0?? u.txt\0")
        assert len(entries) == 2
        assert entries[0].path == "new.txt"
        assert entries[0].orig_path == "old.txt"
        assert entries[1].path == "u.txt"

    def test_empty_output(self):
        assert parse_porcelain("") == []

    def test_path_with_spaces(self):
        entries = parse_porcelain(" M dir/with space.md\0")
        assert entries[0].path == "dir/with space.md"

    def test_state_labels(self):
        assert StatusEntry("x", "?", "?").state == "NewInWorkdir"
        assert StatusEntry("x", " ", "M").state == "ModifiedInWorkdir"
        assert StatusEntry("x", "M", "M").state == "ModifiedInIndex"
        assert StatusEntry("x", "A", "M").state == "NewInIndex, ModifiedInWorkdir"
        assert StatusEntry("x", " ", "D").is_deleted

    def test_staged_and_modified_is_not_plain_workdir_modification(self):
        assert not StatusEntry("x", "M", "M").is_modified_in_workdir


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------


class TestClassifyFailure:
    @pytest.mark.parametrize(
        ("stderr", "expected"),
        [
            ("fatal: not a git repository (or any of the parent directories): .git",
             NotARepositoryError),
            (" ! [rejected]        main -> main (non-fast-forward)\n"
             "error: failed to push some refs", NonFastForwardError),
            ("remote: Invalid username or password.\n"
             "fatal: Authentication failed for 'https://github.com/x/y.git/'",
             AuthenticationError),
            ("fatal: could not read Username for 'https://github.com': terminal prompts disabled",
             AuthenticationError),
            ("fatal: couldn't find remote ref main", RemoteRefNotFoundError),
            ("CONFLICT (content): Merge conflict in a.txt\n"
             "Automatic merge failed; fix conflicts and then commit the result.",
             CheckoutConflictError),
            ("error: Your local changes to the following files would be overwritten by merge:",
             CheckoutConflictError),
            ("fatal: 'nowhere' does not appear to be a git repository", RemoteNotFoundError),
            ("error: No such remote 'origin'", RemoteNotFoundError),
        ],
    )
    def test_markers(self, stderr: str, expected: type):
        error = classify_failure(("push", "origin"), _failed(stderr))
        assert type(error) is expected
        assert error.stderr == stderr

    def test_porcelain_rejection_on_stdout(self):
        stdout = "To /tmp/remote.git\n!\trefs/heads/main:refs/heads/main\t[rejected] (non-fast-forward)\nDone\n"
        error = classify_failure(("push",), _failed("error: failed to push some refs", stdout))
        assert isinstance(error, NonFastForwardError)

    def test_unknown_failure_is_plain_git_error(self):
        error = classify_failure(("frobnicate",), _failed("git: 'frobnicate' is not a git command."))
        assert type(error) is GitError
        assert "rc=1" in str(error)

    def test_missing_git_executable(self, monkeypatch):
        def _raise(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(backend_module.subprocess, "run", _raise)
        with pytest.raises(GitError, match="failed to execute git"):
            backend_module._run_git("status")


# ---------------------------------------------------------------------------
# GitBackend against real repositories
# ---------------------------------------------------------------------------


class TestGitBackend:
    @pytest.fixture()
    def repo(self, tmp_path: Path) -> GitBackend:
        backend = GitBackend(_init_git_repo(tmp_path / "repo"))
        backend.open()
        return backend

    def test_is_repo(self, tmp_path: Path):
        plain = tmp_path / "plain"
        plain.mkdir()
        assert not GitBackend(plain).is_repo()
        assert not GitBackend(tmp_path / "missing").is_repo()
        assert GitBackend(_init_git_repo(tmp_path / "repo")).is_repo()

    def test_init_repo_writes_identity(self, tmp_path: Path):
        backend = GitBackend(tmp_path / "fresh")
        backend.init_repo(identity=AUTHOR)
        assert backend.is_repo()
        assert backend.config_get("user.name") == AUTHOR.name
        assert backend.config_get("user.email") == AUTHOR.email
        assert backend.head_sha() is None

    def test_open_resolves_toplevel(self, repo: GitBackend):
        sub = repo.path / "sub"
        sub.mkdir()
        nested = GitBackend(sub)
        assert nested.open() == repo.path

    def test_config_get_unset(self, repo: GitBackend):
        assert repo.config_get("gitutil.nothing") is None

    def test_current_branch_and_head(self, repo: GitBackend):
        assert repo.current_branch() == "main"
        assert len(repo.head_sha()) == 40
        assert repo.ref_sha("refs/heads/missing") is None

    def test_status_lists_untracked_files_individually(self, repo: GitBackend):
        (repo.path / "dir").mkdir()
        (repo.path / "dir" / "a.txt").write_text("a")
        (repo.path / "init.txt").write_text("changed")
        entries = {e.path: e for e in repo.status()}
        assert entries["dir/a.txt"].is_untracked
        assert entries["init.txt"].is_modified_in_workdir

    def test_commit_records_message_verbatim(self, repo: GitBackend):
        (repo.path / "init.txt").write_text("changed")
        repo.add("init.txt")
        message = "Fix bug\n\ndetails\n# not a comment\n"
        sha = repo.commit(message, author=AUTHOR)
        assert sha == repo.head_sha()
        assert repo.head_message() == message

    def test_commit_uses_signature(self, repo: GitBackend):
        (repo.path / "init.txt").write_text("changed")
        repo.add("init.txt")
        other = Signature(name="Other Person", email="other@example.com")
        repo.commit("by other\n", author=other)
        result = subprocess.run(
            ["git", "log", "-1", "--format=%an|%ae|%cn|%ce"],
            cwd=repo.path, capture_output=True, text=True,
        )
        assert result.stdout.strip() == "Other Person|other@example.com|Other Person|other@example.com"

    def test_commit_with_separate_committer(self, repo: GitBackend):
        (repo.path / "init.txt").write_text("changed")
        repo.add("init.txt")
        committer = Signature(name="Build Bot", email="bot@example.com")
        repo.commit("split identity\n", author=AUTHOR, committer=committer)
        result = subprocess.run(
            ["git", "log", "-1", "--format=%an|%ae|%cn|%ce"],
            cwd=repo.path, capture_output=True, text=True,
        )
        assert result.stdout.strip() == "Esther Arkin|esther@example.com|Build Bot|bot@example.com"

    def test_head_message_keeps_crlf(self, repo: GitBackend):
        (repo.path / "init.txt").write_text("changed")
        repo.add("init.txt")
        repo.commit("Subject\r\n\r\nbody\r\n", author=AUTHOR)
        assert repo.head_message() == "Subject\r\n\r\nbody\r\n"

    def test_commit_with_nothing_staged_raises(self, repo: GitBackend):
        before = repo.head_sha()
        with pytest.raises(EmptyCommitError):
            repo.commit("empty\n", author=AUTHOR)
        assert repo.head_sha() == before

    def test_amend_replaces_tip(self, repo: GitBackend):
        parent = subprocess.run(
            ["git", "rev-parse", "HEAD"], cwd=repo.path, capture_output=True, text=True,
        ).stdout.strip()
        (repo.path / "init.txt").write_text("one")
        repo.add("init.txt")
        first = repo.commit("first\n", author=AUTHOR)
        second = repo.commit("second\n", author=AUTHOR, amend=True)
        assert first != second
        assert repo.head_message() == "second\n"
        assert repo.is_ancestor(parent, second)
        assert not repo.is_ancestor(first, second)

    def test_branches(self, repo: GitBackend):
        subprocess.run(["git", "branch", "feature"], cwd=repo.path, capture_output=True)
        assert repo.list_branches() == ["feature", "main"]
        repo.rename_branch("feature", "topic")
        assert repo.list_branches() == ["main", "topic"]
        repo.delete_branch("topic")
        assert repo.list_branches() == ["main"]

    def test_remote_urls(self, repo: GitBackend, tmp_path: Path):
        assert repo.remote_url("origin") is None
        repo.set_remote_url("origin", str(tmp_path / "a.git"))
        assert repo.remote_url("origin") == str(tmp_path / "a.git")
        repo.set_remote_url("origin", str(tmp_path / "b.git"))
        assert repo.remote_names() == ["origin"]
        assert repo.remote_url("origin") == str(tmp_path / "b.git")

    def test_fetch_missing_remote_is_classified(self, repo: GitBackend, tmp_path: Path):
        repo.set_remote_url("origin", str(tmp_path / "nowhere"))
        with pytest.raises(RemoteNotFoundError):
            repo.fetch("origin")
