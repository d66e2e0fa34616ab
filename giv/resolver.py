"""Resolve the selected history row into commit detail and diff."""

import logging
from collections.abc import Callable

from giv.git_ops import BackendError, GitBackend, is_blob_mode
from giv.models import (
    CommitRecord,
    CommitRef,
    ERROR_PATH,
    DetailError,
    Diff,
    FileChange,
    FileChangeKind,
    FullCommit,
    IndexDiff,
    IndexRef,
    ParentSummary,
    RevisionDetail,
    RevisionRef,
    TreeChange,
    WorktreeDiff,
    WorktreeRef,
)
from giv.walker import CommitWalker

logger = logging.getLogger(__name__)

_KINDS = {
    "A": FileChangeKind.ADDITION,
    "C": FileChangeKind.ADDITION,
    "D": FileChangeKind.DELETION,
    "M": FileChangeKind.MODIFICATION,
    "T": FileChangeKind.MODIFICATION,
    "R": FileChangeKind.RENAME,
}


def error_diff(message: str) -> Diff:
    """A diff holding a single synthetic entry that reports a failure."""
    change = FileChange(FileChangeKind.DELETION, ERROR_PATH, f"error: {message}\n")
    return Diff.from_changes([change])


class RevisionResolver:
    """Single-slot cache of the selected row's detail.

    The slot is keyed by selection index and the walker's generation, so any
    window recomputation or invalidation makes the cached detail stale.
    """

    def __init__(self, backend: GitBackend, walker: CommitWalker, context_lines: int = 3) -> None:
        self.backend = backend
        self.walker = walker
        self.context_lines = context_lines
        self._cached: tuple[tuple[int, int], RevisionDetail | None] | None = None

    def resolve(self, selection_index: int, window_size: int) -> RevisionDetail | None:
        """Return the detail of the selected row, or None outside the window.

        Raises BackendError only when the window itself cannot be listed.
        """
        window = self.walker.get_window(window_size)
        key = (selection_index, self.walker.generation)
        if self._cached is not None and self._cached[0] == key:
            return self._cached[1]

        detail = None
        if 0 <= selection_index < len(window):
            logger.debug("resolving row %d", selection_index)
            detail = self.compute(window[selection_index].ref)
        self._cached = (key, detail)
        return detail

    def invalidate(self) -> None:
        self._cached = None

    def compute(self, ref: RevisionRef) -> RevisionDetail:
        if isinstance(ref, WorktreeRef):
            return WorktreeDiff(self._contained(self._worktree_diff))
        if isinstance(ref, IndexRef):
            return IndexDiff(self._contained(self._index_diff))
        if isinstance(ref, CommitRef):
            return self._full_commit(ref.id)
        raise TypeError(f"unknown revision {ref!r}")

    def _full_commit(self, commit_id: str) -> RevisionDetail:
        try:
            record = self.backend.read_commit(commit_id)
            parents = []
            for parent_id in record.parent_ids:
                parent = self.backend.read_commit(parent_id)
                parents.append(ParentSummary(short_id=parent.short_id, title=parent.title))
        except BackendError as exc:
            logger.warning("cannot read commit %s: %s", commit_id, exc)
            return DetailError(str(exc))

        return FullCommit(
            id=record.id,
            author=record.author,
            committer=record.committer,
            title=record.title,
            body=record.body,
            parents=tuple(parents),
            diff=self._contained(lambda: self._commit_diff(record)),
        )

    def _contained(self, compute: Callable[[], Diff]) -> Diff:
        try:
            return compute()
        except BackendError as exc:
            logger.warning("diff failed: %s", exc)
            return error_diff(str(exc))

    def _commit_diff(self, record: CommitRecord) -> Diff:
        if not record.parent_ids:
            return Diff()
        changes = self.backend.diff_trees(record.parent_ids[0], record.id)
        return self._build_diff(changes, self._read_new_blob)

    def _index_diff(self) -> Diff:
        return self._build_diff(self.backend.index_changes(), self._read_new_blob)

    def _worktree_diff(self) -> Diff:
        return self._build_diff(self.backend.worktree_changes(), self._read_worktree_file)

    def _read_new_blob(self, change: TreeChange) -> bytes:
        if change.new_id is None:
            raise BackendError(f"no object recorded for {change.path}")
        return self.backend.read_blob(change.new_id)

    def _read_worktree_file(self, change: TreeChange) -> bytes:
        return self.backend.read_worktree_file(change.path)

    def _build_diff(
        self, changes: list[TreeChange], read_new: Callable[[TreeChange], bytes]
    ) -> Diff:
        return Diff.from_changes([self._file_change(change, read_new) for change in changes])

    def _file_change(
        self, change: TreeChange, read_new: Callable[[TreeChange], bytes]
    ) -> FileChange:
        kind = _KINDS.get(change.status, FileChangeKind.MODIFICATION)
        old_path = change.old_path if kind is FileChangeKind.RENAME else None
        text = ""
        if kind is not FileChangeKind.DELETION and is_blob_mode(change.new_mode):
            if kind is FileChangeKind.ADDITION:
                text = self.backend.blob_diff(b"", read_new(change), self.context_lines)
            elif change.old_id is not None and change.old_id != change.new_id:
                old = self.backend.read_blob(change.old_id)
                text = self.backend.blob_diff(old, read_new(change), self.context_lines)
        return FileChange(kind=kind, path=change.path, diff_text=text, old_path=old_path)
