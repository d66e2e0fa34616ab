"""Data models for giv."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CommitRef:
    """A real commit, by full and abbreviated id."""

    id: str
    short_id: str


@dataclass(frozen=True)
class WorktreeRef:
    """Uncommitted changes in the working tree."""


@dataclass(frozen=True)
class IndexRef:
    """Staged changes not yet committed."""


RevisionRef = CommitRef | WorktreeRef | IndexRef

WORKTREE = WorktreeRef()
ERROR_PATH = "ERROR"
INDEX = IndexRef()


@dataclass(frozen=True)
class Signature:
    """Author or committer identity."""

    name: str
    email: str
    time: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    def format_with_time(self) -> str:
        return f"{self.name} <{self.email}> {self.time}"


@dataclass(frozen=True)
class CommitSummary:
    """One row of the history list."""

    ref: RevisionRef
    title: str
    signature: Signature

    @property
    def is_pending(self) -> bool:
        """Check if this row stands for uncommitted state."""
        return not isinstance(self.ref, CommitRef)


@dataclass(frozen=True)
class CommitRecord:
    """Raw commit metadata as read from the backend."""

    id: str
    short_id: str
    parent_ids: tuple[str, ...]
    author: Signature
    committer: Signature
    commit_time: int
    title: str
    body: str


@dataclass(frozen=True)
class TreeChange:
    """Raw changed path between two trees (or tree and index/worktree)."""

    status: str
    path: str
    old_path: str | None
    old_id: str | None
    new_id: str | None
    new_mode: str


class FileChangeKind(Enum):
    ADDITION = "A"
    DELETION = "D"
    MODIFICATION = "M"
    RENAME = "R"

    @property
    def letter(self) -> str:
        return self.value


@dataclass(frozen=True)
class FileChange:
    """A changed path with its unified diff text."""

    kind: FileChangeKind
    path: str
    diff_text: str
    old_path: str | None = None


def _path_key(change: FileChange) -> bytes:
    return change.path.encode("utf-8", errors="surrogateescape")


@dataclass(frozen=True)
class Diff:
    """Changed files, always ordered by destination path bytes."""

    files: tuple[FileChange, ...] = ()

    @classmethod
    def from_changes(cls, changes: list[FileChange]) -> "Diff":
        return cls(files=tuple(sorted(changes, key=_path_key)))

    @property
    def paths(self) -> list[str]:
        return [change.path for change in self.files]


@dataclass(frozen=True)
class ParentSummary:
    short_id: str
    title: str


@dataclass(frozen=True)
class FullCommit:
    """Resolved detail of a real commit."""

    id: str
    author: Signature
    committer: Signature
    title: str
    body: str
    parents: tuple[ParentSummary, ...]
    diff: Diff


@dataclass(frozen=True)
class WorktreeDiff:
    diff: Diff


@dataclass(frozen=True)
class IndexDiff:
    diff: Diff


@dataclass(frozen=True)
class DetailError:
    message: str


RevisionDetail = FullCommit | WorktreeDiff | IndexDiff | DetailError


class LineStyle(Enum):
    """Presentation role of a rendered line; colours are chosen by the surface."""

    PLAIN = "plain"
    FIELD = "field"
    BANNER = "banner"
    ADDED = "added"
    REMOVED = "removed"
    HUNK = "hunk"


@dataclass(frozen=True)
class RenderedLine:
    text: str
    style: LineStyle = LineStyle.PLAIN
    label: str = ""


@dataclass(frozen=True)
class RenderedBlock:
    """A header line plus body lines: the description or one file."""

    header: str
    lines: tuple[RenderedLine, ...]
    kind: FileChangeKind | None = None

    def __len__(self) -> int:
        return len(self.lines)


@dataclass
class ViewState:
    """Selection and scroll positions owned by the view state machine."""

    selection_index: int = 0
    commits_scroll_offset: int = 0
    diff_scroll_offset: int = 0
    log_height: int = 0
    diff_height: int = 0
    window_size: int = 0
