"""Selection and scroll state, and the commands that change it."""

import logging
from enum import Enum, auto

from giv import navigation
from giv.config import Settings
from giv.git_ops import GitBackend
from giv.models import CommitSummary, RenderedBlock, RevisionDetail, ViewState
from giv.projector import block_lengths, project
from giv.resolver import RevisionResolver
from giv.walker import CommitWalker

logger = logging.getLogger(__name__)


class Command(Enum):
    QUIT = auto()
    SELECT_NEXT = auto()
    SELECT_PREV = auto()
    SELECT_NEXT_PAGE = auto()
    SELECT_PREV_PAGE = auto()
    SCROLL_DOWN = auto()
    SCROLL_UP = auto()
    SCROLL_DOWN_PAGE = auto()
    SCROLL_UP_PAGE = auto()
    NEXT_FILE = auto()
    PREV_FILE = auto()


class HistoryView:
    """Owns the view state and the walker/resolver caches behind it."""

    def __init__(self, backend: GitBackend, settings: Settings | None = None) -> None:
        settings = settings or Settings()
        self.state = ViewState(window_size=settings.initial_window_size)
        self.walker = CommitWalker(backend)
        self.resolver = RevisionResolver(backend, self.walker, settings.context_lines)

    def window(self) -> list[CommitSummary]:
        return self.walker.get_window(self.state.window_size)

    def detail(self) -> RevisionDetail | None:
        return self.resolver.resolve(self.state.selection_index, self.state.window_size)

    def blocks(self) -> list[RenderedBlock]:
        return project(self.detail())

    def highlighted_block(self) -> int | None:
        lengths = block_lengths(self.blocks())
        return navigation.highlight_index(lengths, self.state.diff_scroll_offset)

    def invalidate(self) -> None:
        logger.debug("invalidating caches")
        self.walker.invalidate()
        self.resolver.invalidate()

    def set_viewport(self, log_height: int, diff_height: int) -> None:
        """Record visible pane heights; resize the window if needed."""
        self.state.log_height = max(0, log_height)
        self.state.diff_height = max(0, diff_height)
        self._sync_window_size()

    def apply(self, command: Command) -> bool:
        """Apply one command. Returns False when the loop should stop."""
        state = self.state
        if command is Command.QUIT:
            return False
        if command is Command.SELECT_NEXT:
            self.move_selection(1)
        elif command is Command.SELECT_PREV:
            self.move_selection(-1)
        elif command is Command.SELECT_NEXT_PAGE:
            self.move_selection(state.log_height)
        elif command is Command.SELECT_PREV_PAGE:
            self.move_selection(-state.log_height)
        elif command is Command.SCROLL_DOWN:
            self.scroll_diff(1)
        elif command is Command.SCROLL_UP:
            self.scroll_diff(-1)
        elif command is Command.SCROLL_DOWN_PAGE:
            self.scroll_diff(state.diff_height // 2)
        elif command is Command.SCROLL_UP_PAGE:
            self.scroll_diff(-(state.diff_height // 2))
        elif command is Command.NEXT_FILE:
            self.jump_file(forward=True)
        elif command is Command.PREV_FILE:
            self.jump_file(forward=False)
        else:
            raise ValueError(f"unknown command {command!r}")
        return True

    def move_selection(self, delta: int) -> None:
        state = self.state
        state.selection_index = max(0, state.selection_index + delta)
        state.diff_scroll_offset = 0
        self.resolver.invalidate()

        # Keep the selection inside the visible band of the log.
        if state.log_height > 0:
            if state.selection_index < state.commits_scroll_offset:
                state.commits_scroll_offset = state.selection_index
            elif state.selection_index >= state.commits_scroll_offset + state.log_height:
                state.commits_scroll_offset = state.selection_index - state.log_height + 1
        self._sync_window_size()

    def scroll_diff(self, delta: int) -> None:
        self.state.diff_scroll_offset = max(0, self.state.diff_scroll_offset + delta)

    def jump_file(self, forward: bool) -> None:
        lengths = block_lengths(self.blocks())
        offset = self.state.diff_scroll_offset
        if forward:
            self.state.diff_scroll_offset = navigation.next_file_target(lengths, offset)
        else:
            self.state.diff_scroll_offset = navigation.prev_file_target(lengths, offset)

    def _sync_window_size(self) -> None:
        state = self.state
        if state.log_height <= 0:
            return
        wanted = state.log_height + state.commits_scroll_offset
        if wanted != state.window_size:
            logger.debug("window size %d -> %d", state.window_size, wanted)
            state.window_size = wanted
            self.invalidate()
