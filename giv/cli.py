import logging
import sys
from pathlib import Path

import click

from giv import config, git_ops
from giv.git_ops import BackendError, StartupError
from giv.models import CommitRef, CommitSummary
from giv.tui import RenderError, run_tui
from giv.view import HistoryView

logger = logging.getLogger(__name__)


def format_summary(entry: CommitSummary) -> str:
    if isinstance(entry.ref, CommitRef):
        return f"{entry.ref.short_id} {entry.title}"
    return entry.title


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write debug logs to this file (default: $GIV_LOG_FILE).",
)
def main(log_file: Path | None) -> None:
    """giv: browse commit history and diffs of the current repository."""
    try:
        settings = config.load_settings(log_file=log_file)
    except config.ConfigError as exc:
        click.echo(f"giv: {exc}", err=True)
        raise SystemExit(2)
    config.configure_logging(settings)

    try:
        backend = git_ops.open_repository(Path.cwd())
    except StartupError as exc:
        click.echo(f"giv: {exc}", err=True)
        raise SystemExit(1)

    view = HistoryView(backend, settings)
    if not sys.stdin.isatty() or not sys.stdout.isatty():
        try:
            window = view.window()
        except BackendError as exc:
            click.echo(f"giv: {exc}", err=True)
            raise SystemExit(1)
        for entry in window:
            click.echo(format_summary(entry))
        return

    logger.info("starting in %s", backend.repo_root)
    try:
        run_tui(view)
    except (StartupError, RenderError) as exc:
        click.echo(f"giv: {exc}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
