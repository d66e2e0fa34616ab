"""Textual TUI for giv."""

import logging

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Static

from giv import navigation
from giv.git_ops import BackendError, StartupError
from giv.models import (
    CommitRef,
    CommitSummary,
    DetailError,
    FileChangeKind,
    FullCommit,
    IndexDiff,
    LineStyle,
    RenderedBlock,
    RenderedLine,
    RevisionDetail,
    WorktreeDiff,
)
from giv.projector import block_lengths, project
from giv.view import Command, HistoryView

logger = logging.getLogger(__name__)

CSS = """
Screen {
    layout: vertical;
}

#log {
    height: 1fr;
}

#detail {
    height: 2fr;
}

.pane {
    height: 100%;
    border: round $secondary;
    overflow: hidden hidden;
}

#log_commits {
    width: 2fr;
}

#log_authors, #log_times {
    width: 1fr;
}

#diff {
    width: 3fr;
}

#files {
    width: 1fr;
}
"""

SELECTED_STYLE = "bold underline"
HIGHLIGHT_STYLE = "bold on grey30"
LINE_STYLES = {
    LineStyle.PLAIN: "",
    LineStyle.FIELD: "",
    LineStyle.BANNER: "white on grey30",
    LineStyle.ADDED: "green",
    LineStyle.REMOVED: "red",
    LineStyle.HUNK: "blue",
}
KIND_STYLES = {
    FileChangeKind.ADDITION: "green",
    FileChangeKind.DELETION: "red",
    FileChangeKind.MODIFICATION: "yellow",
    FileChangeKind.RENAME: "yellow",
}


class RenderError(Exception):
    """Drawing to the terminal failed."""


def _join(lines: list[Text]) -> Text:
    return Text("\n", no_wrap=True, overflow="crop").join(lines)


def _commit_row(entry: CommitSummary) -> Text:
    if isinstance(entry.ref, CommitRef):
        return Text.assemble((entry.ref.short_id, "yellow"), f" {entry.title}")
    return Text(entry.title)


def _render_line(line: RenderedLine) -> Text:
    if line.style is LineStyle.FIELD:
        return Text.assemble((line.label, "bold"), line.text)
    return Text(line.text, style=LINE_STYLES[line.style])


def _header_row(block: RenderedBlock, highlighted: bool) -> Text:
    style = KIND_STYLES[block.kind] if block.kind is not None else ""
    if highlighted:
        style = f"{style} {HIGHLIGHT_STYLE}".strip()
    return Text(block.header, style=style)


def pane_title(detail: RevisionDetail | None) -> str:
    """Title for the diff pane."""
    if detail is None:
        return ""
    if isinstance(detail, FullCommit):
        return f"Commit {detail.id}"
    if isinstance(detail, (WorktreeDiff, IndexDiff)):
        return "Diff"
    if isinstance(detail, DetailError):
        return "Error"
    raise TypeError(f"unknown detail {detail!r}")


class HistoryApp(App[None]):
    """Commit list on top, selected revision below."""

    CSS = CSS
    BINDINGS = [
        Binding("q,escape", "quit_viewer", "Quit"),
        Binding("down,k", "select_next", "Next"),
        Binding("up,i", "select_prev", "Prev"),
        Binding("pagedown,shift+k,K", "select_next_page", "Page down", show=False),
        Binding("pageup,shift+i,I", "select_prev_page", "Page up", show=False),
        Binding("l", "scroll_down", "Scroll down", show=False),
        Binding("o", "scroll_up", "Scroll up", show=False),
        Binding("shift+l,L", "scroll_down_page", "Scroll down more", show=False),
        Binding("shift+o,O", "scroll_up_page", "Scroll up more", show=False),
        Binding("s", "next_file", "Next file"),
        Binding("w", "prev_file", "Prev file"),
    ]

    def __init__(self, view: HistoryView) -> None:
        super().__init__()
        self.view = view
        self.render_error: RenderError | None = None
        self.error_message: str | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="log"):
            yield Static("", id="log_commits", classes="pane")
            yield Static("", id="log_authors", classes="pane")
            yield Static("", id="log_times", classes="pane")
        with Horizontal(id="detail"):
            yield Static("", id="diff", classes="pane")
            yield Static("", id="files", classes="pane")

    def on_mount(self) -> None:
        self.call_after_refresh(self._redraw)

    def on_resize(self, event: events.Resize) -> None:
        self.call_after_refresh(self._redraw)

    def _apply(self, command: Command) -> None:
        try:
            keep_running = self.view.apply(command)
        except BackendError as exc:
            logger.error("cannot apply %s: %s", command.name, exc)
            self._draw_error(str(exc))
            return
        if not keep_running:
            self.exit()
            return
        self._redraw()

    def _redraw(self) -> None:
        try:
            self._draw()
        except OSError as exc:
            logger.exception("draw failed")
            self.render_error = RenderError(str(exc))
            self.exit()

    def _draw(self) -> None:
        commits = self.query_one("#log_commits", Static)
        diff = self.query_one("#diff", Static)
        self.view.set_viewport(commits.content_size.height, diff.content_size.height)

        try:
            window = self.view.window()
            detail = self.view.detail()
        except BackendError as exc:
            logger.error("cannot list history: %s", exc)
            self._draw_error(str(exc))
            return

        self.error_message = None
        self._draw_log(window)
        self._draw_detail(detail, project(detail))

    def _draw_error(self, message: str) -> None:
        self.error_message = message
        self.query_one("#log_commits", Static).update(Text(f"error: {message}", style="red"))
        for pane_id in ("#log_authors", "#log_times", "#diff", "#files"):
            self.query_one(pane_id, Static).update("")
        self.query_one("#diff", Static).border_title = ""

    def _draw_log(self, window: list[CommitSummary]) -> None:
        state = self.view.state
        start = state.commits_scroll_offset
        end = start + state.log_height if state.log_height else len(window)

        lines: list[Text] = []
        authors: list[Text] = []
        times: list[Text] = []
        for idx, entry in enumerate(window[start:end], start=start):
            row = [_commit_row(entry), Text(str(entry.signature)), Text(entry.signature.time)]
            if idx == state.selection_index:
                for cell in row:
                    cell.stylize(SELECTED_STYLE)
            lines.append(row[0])
            authors.append(row[1])
            times.append(row[2])

        self.query_one("#log_commits", Static).update(_join(lines))
        self.query_one("#log_authors", Static).update(_join(authors))
        self.query_one("#log_times", Static).update(_join(times))

    def _draw_detail(self, detail: RevisionDetail | None, blocks: list[RenderedBlock]) -> None:
        state = self.view.state
        diff = self.query_one("#diff", Static)
        files = self.query_one("#files", Static)
        diff.border_title = pane_title(detail)
        if not blocks:
            diff.update("")
            diff.border_subtitle = ""
            files.update("")
            return

        body = [line for block in blocks for line in block.lines]
        offset = state.diff_scroll_offset
        visible = body[offset : offset + state.diff_height] if state.diff_height else body[offset:]
        diff.update(_join([_render_line(line) for line in visible]))
        diff.border_subtitle = f"{min(offset, len(body))}/{len(body)}"

        highlight = navigation.highlight_index(block_lengths(blocks), offset)
        files.update(
            _join([_header_row(block, idx == highlight) for idx, block in enumerate(blocks)])
        )

    def action_quit_viewer(self) -> None:
        self._apply(Command.QUIT)

    def action_select_next(self) -> None:
        self._apply(Command.SELECT_NEXT)

    def action_select_prev(self) -> None:
        self._apply(Command.SELECT_PREV)

    def action_select_next_page(self) -> None:
        self._apply(Command.SELECT_NEXT_PAGE)

    def action_select_prev_page(self) -> None:
        self._apply(Command.SELECT_PREV_PAGE)

    def action_scroll_down(self) -> None:
        self._apply(Command.SCROLL_DOWN)

    def action_scroll_up(self) -> None:
        self._apply(Command.SCROLL_UP)

    def action_scroll_down_page(self) -> None:
        self._apply(Command.SCROLL_DOWN_PAGE)

    def action_scroll_up_page(self) -> None:
        self._apply(Command.SCROLL_UP_PAGE)

    def action_next_file(self) -> None:
        self._apply(Command.NEXT_FILE)

    def action_prev_file(self) -> None:
        self._apply(Command.PREV_FILE)


def run_tui(view: HistoryView) -> None:
    """Run the textual application until the user quits."""
    app = HistoryApp(view)
    try:
        app.run()
    except OSError as exc:
        raise StartupError(f"cannot initialise terminal: {exc}") from exc
    if app.render_error is not None:
        raise app.render_error
