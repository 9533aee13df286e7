"""Working-tree status entries parsed from ``git status --porcelain -z``."""

from __future__ import annotations

from dataclasses import dataclass

# Porcelain XY codes -> readable state names
_INDEX_STATES = {
    "M": "ModifiedInIndex",
    "T": "TypeChangeInIndex",
    "A": "NewInIndex",
    "D": "DeletedFromIndex",
    "R": "RenamedInIndex",
    "C": "CopiedInIndex",
    "U": "Conflicted",
}

_WORKTREE_STATES = {
    "M": "ModifiedInWorkdir",
    "T": "TypeChangeInWorkdir",
    "D": "DeletedFromWorkdir",
    "U": "Conflicted",
}


@dataclass(frozen=True)
class StatusEntry:
    """A single path reported by ``git status``.

    ``index_state`` and ``worktree_state`` are the raw porcelain ``X``
    and ``Y`` characters.
    """

    path: str
    index_state: str
    worktree_state: str
    orig_path: str | None = None

    @property
    def is_untracked(self) -> bool:
        return self.index_state == "?" and self.worktree_state == "?"

    @property
    def is_ignored(self) -> bool:
        return self.index_state == "!" and self.worktree_state == "!"

    @property
    def is_modified_in_workdir(self) -> bool:
        """True only for a tracked file modified in the work tree and nothing else."""
        return self.index_state == " " and self.worktree_state == "M"

    @property
    def is_deleted(self) -> bool:
        return "D" in (self.index_state, self.worktree_state)

    @property
    def state(self) -> str:
        """Readable state label, e.g. ``NewInWorkdir`` or ``ModifiedInIndex, ModifiedInWorkdir``."""
        if self.is_untracked:
            return "NewInWorkdir"
        if self.is_ignored:
            return "Ignored"
        labels = []
        if self.index_state in _INDEX_STATES:
            labels.append(_INDEX_STATES[self.index_state])
        if self.worktree_state in _WORKTREE_STATES and self.worktree_state != self.index_state:
            labels.append(_WORKTREE_STATES[self.worktree_state])
        return ", ".join(labels) or "Unaltered"


def parse_porcelain(output: str) -> list[StatusEntry]:
    """Parse NUL-separated ``git status --porcelain=v1 -z`` output.

    Renames and copies carry their original path in the following
    record, which is consumed here.
    """
    entries: list[StatusEntry] = []
    records = output.split("\0")
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if len(record) < 4:
            continue
        x, y, path = record[0], record[1], record[3:]
        orig_path = None
        if x in "RC" and i < len(records):
            orig_path = records[i]
            i += 1
        entries.append(
            StatusEntry(path=path, index_state=x, worktree_state=y, orig_path=orig_path)
        )
    return entries
