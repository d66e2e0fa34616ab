from __future__ import annotations

import subprocess
from collections import Counter
from pathlib import Path

import pytest

from giv.git_ops import BackendError, blob_diff
from giv.models import CommitRecord, Signature, TreeChange

GIT_AVAILABLE = subprocess.run(["git", "--version"], capture_output=True).returncode == 0

ME = Signature("Me", "me@example.com", "2024-01-01 00:00:00 +0000")


def make_commit(
    cid: str, parents: tuple[str, ...] = (), time: int = 0, title: str | None = None
) -> CommitRecord:
    sig = Signature("Ann", "ann@example.com", f"t{time}")
    return CommitRecord(
        id=cid,
        short_id=cid[:7],
        parent_ids=parents,
        author=sig,
        committer=sig,
        commit_time=time,
        title=title or f"commit {cid}",
        body="",
    )


def change(
    status: str,
    path: str,
    old_id: str | None = None,
    new_id: str | None = None,
    old_path: str | None = None,
    new_mode: str = "100644",
) -> TreeChange:
    return TreeChange(
        status=status,
        path=path,
        old_path=old_path,
        old_id=old_id,
        new_id=new_id,
        new_mode=new_mode,
    )


class FakeBackend:
    """In-memory backend that counts every query."""

    def __init__(self, commits: list[CommitRecord], head: str) -> None:
        self.commits = {c.id: c for c in commits}
        self.head = head
        self.worktree = False
        self.index = False
        self.tree_changes: dict[str, list[TreeChange]] = {}
        self.worktree_list: list[TreeChange] = []
        self.index_list: list[TreeChange] = []
        self.blobs: dict[str, bytes] = {}
        self.files: dict[str, bytes] = {}
        self.broken_commits: set[str] = set()
        self.broken_diffs: set[str] = set()
        self.calls: Counter[str] = Counter()

    def head_id(self) -> str:
        self.calls["head_id"] += 1
        return self.head

    def read_commit(self, rev: str) -> CommitRecord:
        self.calls["read_commit"] += 1
        if rev in self.broken_commits or rev not in self.commits:
            raise BackendError(f"object {rev} not found")
        return self.commits[rev]

    def diff_trees(self, old: str, new: str) -> list[TreeChange]:
        self.calls["diff_trees"] += 1
        if new in self.broken_diffs:
            raise BackendError(f"corrupt tree in {new}")
        return self.tree_changes.get(new, [])

    def has_worktree_changes(self) -> bool:
        self.calls["has_worktree_changes"] += 1
        return self.worktree

    def has_index_changes(self) -> bool:
        self.calls["has_index_changes"] += 1
        return self.index

    def worktree_changes(self) -> list[TreeChange]:
        return self.worktree_list

    def index_changes(self) -> list[TreeChange]:
        return self.index_list

    def read_blob(self, oid: str) -> bytes:
        if oid not in self.blobs:
            raise BackendError(f"blob {oid} missing")
        return self.blobs[oid]

    def read_worktree_file(self, path: str) -> bytes:
        return self.files[path]

    def blob_diff(self, old: bytes, new: bytes, context: int = 3) -> str:
        return blob_diff(old, new, context)

    def current_signature(self) -> Signature:
        return ME


@pytest.fixture
def linear_backend() -> FakeBackend:
    """c2 -> c1 -> c0, newest first."""
    commits = [
        make_commit("c0" * 20, (), 100),
        make_commit("c1" * 20, ("c0" * 20,), 200),
        make_commit("c2" * 20, ("c1" * 20,), 300),
    ]
    return FakeBackend(commits, head="c2" * 20)


def run_cmd(cmd: list[str], cwd: Path | None = None, env: dict[str, str] | None = None) -> str:
    result = subprocess.run(
        cmd, cwd=str(cwd) if cwd else None, check=True, capture_output=True, text=True, env=env
    )
    return result.stdout.strip()
