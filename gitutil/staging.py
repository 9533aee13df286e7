"""Change stager — decide which working-tree paths go into the next commit.

Three request kinds:

* :class:`StageSingle`: one caller-supplied path, staged only if it exists.
* :class:`StageUpdate`: every tracked file modified in the work tree;
  untracked files are left alone.
* :class:`StageAll`: every status entry still present on disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from gitutil.credentials import PathRewriteRule
from gitutil.vcs.backend import GitBackend, GitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageSingle:
    path: str


@dataclass(frozen=True)
class StageUpdate:
    pass


@dataclass(frozen=True)
class StageAll:
    pass


StageRequest = Union[StageSingle, StageUpdate, StageAll]


class ChangeStager:
    """Stage paths of one repository according to a :data:`StageRequest`.

    Parameters
    ----------
    backend:
        The opened repository.
    rewrite_rules:
        Path rewrites applied to :class:`StageSingle` paths.
    """

    def __init__(
        self,
        backend: GitBackend,
        rewrite_rules: tuple[PathRewriteRule, ...] | list[PathRewriteRule] = (),
    ) -> None:
        self.backend = backend
        self.rewrite_rules = tuple(rewrite_rules)

    @property
    def root(self) -> Path:
        return self.backend.path

    def stage(self, request: StageRequest) -> bool:
        """Stage according to *request*; True iff at least one path was added."""
        if isinstance(request, StageSingle):
            return self._stage_single(request.path)
        if isinstance(request, StageUpdate):
            return self._stage_entries(lambda entry: entry.is_modified_in_workdir)
        if isinstance(request, StageAll):
            return self._stage_entries(lambda entry: True)
        raise TypeError(f"unknown stage request: {request!r}")

    # -- Single path ----------------------------------------------------------

    def normalize_path(self, path: str | Path) -> str | None:
        """Return *path* relative to the repository root with rewrites applied.

        Returns *None* for an absolute path outside the repository.
        """
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                candidate = candidate.resolve().relative_to(self.root)
            except ValueError:
                return None

        rel_path = candidate.as_posix()
        for rule in self.rewrite_rules:
            rewritten = self._apply_rule(rule, rel_path)
            if rewritten != rel_path:
                logger.debug("Rewrote %s -> %s", rel_path, rewritten)
                return rewritten
        return rel_path

    def _apply_rule(self, rule: PathRewriteRule, rel_path: str) -> str:
        root = self.root.as_posix().rstrip("/")
        prefix = rule.prefix.strip("/")
        if not root.endswith(rule.repo_suffix.replace("\\", "/").rstrip("/")):
            return rel_path
        if not rel_path.endswith(rule.file_suffix) or rel_path.startswith(prefix + "/"):
            return rel_path
        if not (self.root / prefix).is_dir():
            return rel_path
        rewritten = f"{prefix}/{rel_path}"
        if not (self.root / rewritten).exists():
            return rel_path
        return rewritten

    def _stage_single(self, path: str) -> bool:
        rel_path = self.normalize_path(path)
        if rel_path is None:
            logger.warning("%s is outside %s; not staged", path, self.root)
            return False
        if not (self.root / rel_path).exists():
            logger.warning("%s does not exist; not staged", rel_path)
            return False

        try:
            self.backend.add(rel_path)
        except GitError as exc:
            # e.g. the path is ignored
            logger.warning("%s not staged: %s", rel_path, exc.stderr.strip() or exc)
            return False
        logger.info("add %s", rel_path)
        return True

    # -- Status driven --------------------------------------------------------

    def _stage_entries(self, wanted) -> bool:
        staged: list[str] = []
        for entry in self.backend.status(include_ignored=False):
            if not wanted(entry):
                continue
            # Deletions are no longer on disk and are left to git
            if not (self.root / entry.path).exists():
                continue
            staged.append(entry.path)

        if not staged:
            logger.info("Nothing to stage")
            return False

        self.backend.add(*staged)
        for path in staged:
            logger.info("adding %s", path)
        return True
