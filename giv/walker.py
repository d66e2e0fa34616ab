"""Windowed walk over the commit graph, newest first."""

import heapq
import itertools
import logging

from giv.git_ops import GitBackend
from giv.models import INDEX, WORKTREE, CommitRecord, CommitRef, CommitSummary

logger = logging.getLogger(__name__)

WORKTREE_TITLE = "Working tree changes"
INDEX_TITLE = "Staged changes"


class CommitWalker:
    """Produce a bounded, cached list of history rows.

    Pending worktree and index changes come first (worktree before index),
    followed by up to ``size`` commits reachable from HEAD. Parents of every
    visited commit, merges included, are explored in order of committer
    time; equal times keep discovery order.
    """

    def __init__(self, backend: GitBackend) -> None:
        self.backend = backend
        self.generation = 0
        self._window: tuple[int, list[CommitSummary]] | None = None
        self._pending: tuple[bool, bool] | None = None

    def get_window(self, size: int) -> list[CommitSummary]:
        """Return the history rows for a window of ``size`` commits."""
        if self._window is not None and size <= self._window[0]:
            return self._window[1]

        entries = self._pending_entries()
        entries.extend(self._walk(size))
        self._window = (size, entries)
        self.generation += 1
        logger.debug("window recomputed: size=%d entries=%d", size, len(entries))
        return entries

    def invalidate(self) -> None:
        """Drop the cached window and the pending-changes flags."""
        self._window = None
        self._pending = None
        self.generation += 1

    def pending_changes(self) -> tuple[bool, bool]:
        """Return (worktree changed, index changed), cached until invalidated."""
        if self._pending is None:
            self._pending = (
                self.backend.has_worktree_changes(),
                self.backend.has_index_changes(),
            )
        return self._pending

    def _pending_entries(self) -> list[CommitSummary]:
        has_worktree, has_index = self.pending_changes()
        if not (has_worktree or has_index):
            return []
        signature = self.backend.current_signature()
        entries: list[CommitSummary] = []
        if has_worktree:
            entries.append(CommitSummary(ref=WORKTREE, title=WORKTREE_TITLE, signature=signature))
        if has_index:
            entries.append(CommitSummary(ref=INDEX, title=INDEX_TITLE, signature=signature))
        return entries

    def _walk(self, size: int) -> list[CommitSummary]:
        if size <= 0:
            return []

        order = itertools.count()
        frontier: list[tuple[int, int, CommitRecord]] = []
        seen: set[str] = set()

        def discover(commit_id: str) -> None:
            if commit_id in seen:
                return
            seen.add(commit_id)
            record = self.backend.read_commit(commit_id)
            heapq.heappush(frontier, (-record.commit_time, next(order), record))

        discover(self.backend.head_id())
        summaries: list[CommitSummary] = []
        while frontier and len(summaries) < size:
            _, _, record = heapq.heappop(frontier)
            summaries.append(
                CommitSummary(
                    ref=CommitRef(id=record.id, short_id=record.short_id),
                    title=record.title,
                    signature=record.author,
                )
            )
            if len(summaries) == size:
                break
            for parent_id in record.parent_ids:
                discover(parent_id)
        return summaries
