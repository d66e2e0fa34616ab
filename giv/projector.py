"""Turn a resolved revision into renderable blocks."""

from giv.models import (
    ERROR_PATH,
    DetailError,
    Diff,
    FileChange,
    FileChangeKind,
    FullCommit,
    IndexDiff,
    LineStyle,
    RenderedBlock,
    RenderedLine,
    RevisionDetail,
    WorktreeDiff,
)

BANNER_WIDTH = 80
DESCRIPTION_HEADER = "Description"


def dash_wrap(text: str, width: int = BANNER_WIDTH) -> str:
    """Centre ``text`` between runs of dashes, e.g. ``---- abc ----``."""
    padding = max(0, width - len(text))
    left = padding // 2
    return f"{'-' * left} {text} {'-' * (padding - left)}"


def line_style(line: str) -> LineStyle:
    if line.startswith("@@"):
        return LineStyle.HUNK
    if line.startswith("+"):
        return LineStyle.ADDED
    if line.startswith("-"):
        return LineStyle.REMOVED
    return LineStyle.PLAIN


def is_visible(change: FileChange) -> bool:
    """Check if a file carries something to show."""
    return change.kind is FileChangeKind.RENAME or bool(change.diff_text.strip())


def diff_lines(text: str) -> list[str]:
    """Split diff text on newlines only; form feeds and the like stay in their line."""
    if not text:
        return []
    return text.removesuffix("\n").split("\n")


def file_block(change: FileChange) -> RenderedBlock:
    lines = [RenderedLine(dash_wrap(change.path), LineStyle.BANNER)]
    if change.kind is FileChangeKind.RENAME:
        lines.append(RenderedLine(f"Renamed from: {change.old_path}", LineStyle.BANNER))
    lines.extend(RenderedLine(line, line_style(line)) for line in diff_lines(change.diff_text))
    lines.append(RenderedLine(""))
    return RenderedBlock(
        header=f"{change.kind.letter} {change.path}",
        lines=tuple(lines),
        kind=change.kind,
    )


def diff_blocks(diff: Diff) -> list[RenderedBlock]:
    return [file_block(change) for change in diff.files if is_visible(change)]


def description_block(commit: FullCommit) -> RenderedBlock:
    parents = ", ".join(f"{p.short_id} {p.title}" for p in commit.parents)
    lines = [
        RenderedLine(commit.author.format_with_time(), LineStyle.FIELD, "Author: "),
        RenderedLine(commit.committer.format_with_time(), LineStyle.FIELD, "Committer: "),
        RenderedLine(parents, LineStyle.FIELD, "Parents: "),
        RenderedLine(""),
        RenderedLine(commit.title),
        RenderedLine(""),
    ]
    lines.extend(RenderedLine(line) for line in commit.body.splitlines())
    lines.append(RenderedLine(""))
    return RenderedBlock(header=DESCRIPTION_HEADER, lines=tuple(lines))


def project(detail: RevisionDetail | None) -> list[RenderedBlock]:
    """Build the ordered blocks shown in the diff pane."""
    if detail is None:
        return []
    if isinstance(detail, FullCommit):
        return [description_block(detail), *diff_blocks(detail.diff)]
    if isinstance(detail, (WorktreeDiff, IndexDiff)):
        return diff_blocks(detail.diff)
    if isinstance(detail, DetailError):
        error = FileChange(FileChangeKind.MODIFICATION, ERROR_PATH, f"Error: {detail.message}")
        return [file_block(error)]
    raise TypeError(f"unknown detail {detail!r}")


def block_lengths(blocks: list[RenderedBlock]) -> list[int]:
    return [len(block) for block in blocks]
