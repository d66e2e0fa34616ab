from __future__ import annotations

import os
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import GIT_AVAILABLE, run_cmd

from giv.cli import main
from giv.config import ConfigError, Settings, load_settings
from giv.git_ops import (
    StartupError,
    blob_diff,
    format_git_time,
    open_repository,
    parse_raw_changes,
    strip_trailers,
)
from giv.models import (
    INDEX,
    WORKTREE,
    CommitRef,
    FileChangeKind,
    FullCommit,
    IndexDiff,
    WorktreeDiff,
)
from giv.projector import project
from giv.view import Command, HistoryView

BASE_TIME = 1_700_000_000
needs_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")


def _git(repo: Path, *args: str, when: int | None = None) -> str:
    env = dict(os.environ)
    if when is not None:
        stamp = f"{BASE_TIME + when} +0000"
        env["GIT_AUTHOR_DATE"] = stamp
        env["GIT_COMMITTER_DATE"] = stamp
    return run_cmd(["git", "-C", str(repo), *args], env=env)


def _commit(repo: Path, message: str, when: int) -> str:
    _git(repo, "commit", "-q", "-m", message, when=when)
    return _git(repo, "rev-parse", "HEAD")


def _init_repo(root: Path) -> Path:
    root.mkdir(parents=True)
    _git(root, "init", "-q")
    _git(root, "config", "user.email", "test@example.com")
    _git(root, "config", "user.name", "Test")
    _git(root, "config", "commit.gpgsign", "false")
    return root


def _three_commit_repo(root: Path) -> tuple[Path, list[str]]:
    repo = _init_repo(root)
    (repo / "a.txt").write_text("one\n")
    _git(repo, "add", ".")
    c0 = _commit(repo, "c0", 100)
    (repo / "a.txt").write_text("one\ntwo\n")
    _git(repo, "add", ".")
    c1 = _commit(repo, "c1", 200)
    (repo / "b.txt").write_text("bee\n")
    _git(repo, "add", ".")
    c2 = _commit(repo, "c2", 300)
    return repo, [c0, c1, c2]


@needs_git
def test_history_end_to_end(tmp_path: Path) -> None:
    repo, (c0, c1, c2) = _three_commit_repo(tmp_path / "repo")
    view = HistoryView(open_repository(repo), Settings(initial_window_size=2))

    window = view.window()
    assert [e.ref.id for e in window] == [c2, c1]
    assert [e.title for e in window] == ["c2", "c1"]
    assert window[0].signature.name == "Test"

    view.apply(Command.SELECT_NEXT)
    detail = view.detail()
    assert isinstance(detail, FullCommit)
    assert detail.id == c1
    assert detail.committer.time.endswith("+0000")
    assert [p.title for p in detail.parents] == ["c0"]
    (file,) = detail.diff.files
    assert (file.kind, file.path) == (FileChangeKind.MODIFICATION, "a.txt")
    assert file.diff_text == "@@ -1 +1,2 @@\n one\n+two\n"

    view.apply(Command.SELECT_NEXT)
    assert view.detail() is None


@needs_git
def test_root_commit_and_addition(tmp_path: Path) -> None:
    repo, (c0, _c1, c2) = _three_commit_repo(tmp_path / "repo")
    view = HistoryView(open_repository(repo), Settings(initial_window_size=3))

    head = view.detail()
    assert isinstance(head, FullCommit)
    assert [(f.kind, f.path) for f in head.diff.files] == [(FileChangeKind.ADDITION, "b.txt")]
    assert [b.header for b in project(head)] == ["Description", "A b.txt"]

    view.apply(Command.SELECT_NEXT)
    view.apply(Command.SELECT_NEXT)
    root = view.detail()
    assert isinstance(root, FullCommit)
    assert root.id == c0
    assert root.parents == ()
    assert root.diff.files == ()


@needs_git
def test_pending_changes(tmp_path: Path) -> None:
    repo, commits = _three_commit_repo(tmp_path / "repo")
    (repo / "a.txt").write_text("one\ntwo\nthree\n")
    (repo / "s.txt").write_text("staged\n")
    _git(repo, "add", "s.txt")
    (repo / "u.txt").write_text("untracked\n")

    view = HistoryView(open_repository(repo), Settings(initial_window_size=1))
    window = view.window()
    assert [e.ref for e in window[:2]] == [WORKTREE, INDEX]
    assert window[2].ref.id == commits[-1]

    worktree = view.detail()
    assert isinstance(worktree, WorktreeDiff)
    assert worktree.diff.paths == ["a.txt", "u.txt"]
    assert worktree.diff.files[0].diff_text == "@@ -1,2 +1,3 @@\n one\n two\n+three\n"
    assert worktree.diff.files[1].kind is FileChangeKind.ADDITION

    view.apply(Command.SELECT_NEXT)
    index = view.detail()
    assert isinstance(index, IndexDiff)
    assert [(f.kind, f.path) for f in index.diff.files] == [(FileChangeKind.ADDITION, "s.txt")]


@needs_git
def test_rename_is_detected(tmp_path: Path) -> None:
    repo, _ = _three_commit_repo(tmp_path / "repo")
    _git(repo, "mv", "a.txt", "c.txt")
    _commit(repo, "rename", 400)

    detail = HistoryView(open_repository(repo)).detail()
    (file,) = detail.diff.files
    assert (file.kind, file.path, file.old_path) == (FileChangeKind.RENAME, "c.txt", "a.txt")
    assert file.diff_text == ""
    block = project(detail)[1]
    assert block.header == "R c.txt"
    assert block.lines[1].text == "Renamed from: a.txt"


@needs_git
def test_walk_follows_both_merge_parents(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "repo")
    (repo / "base.txt").write_text("base\n")
    _git(repo, "add", ".")
    _commit(repo, "base", 100)
    main_branch = _git(repo, "rev-parse", "--abbrev-ref", "HEAD")
    _git(repo, "checkout", "-q", "-b", "side")
    (repo / "side.txt").write_text("side\n")
    _git(repo, "add", ".")
    _commit(repo, "side work", 200)
    _git(repo, "checkout", "-q", main_branch)
    (repo / "main.txt").write_text("main\n")
    _git(repo, "add", ".")
    _commit(repo, "main work", 300)
    _git(repo, "merge", "-q", "--no-ff", "-m", "merge side", "side", when=400)

    view = HistoryView(open_repository(repo))
    assert [e.title for e in view.window()] == ["merge side", "main work", "side work", "base"]
    merge = view.detail()
    assert [p.title for p in merge.parents] == ["main work", "side work"]
    assert merge.diff.paths == ["side.txt"]


@needs_git
def test_subject_only_and_trailer_messages(tmp_path: Path) -> None:
    repo, (_c0, _c1, c2) = _three_commit_repo(tmp_path / "repo")
    (repo / "d.txt").write_text("dee\n")
    _git(repo, "add", ".")
    _git(
        repo,
        "commit",
        "-q",
        "-m",
        "with trailers",
        "-m",
        "Body text.",
        "-m",
        "Signed-off-by: Test <test@example.com>\nReviewed-by: Other <o@example.com>",
        when=400,
    )
    backend = open_repository(repo)

    plain = backend.read_commit(c2)
    assert (plain.title, plain.body) == ("c2", "")
    signed = backend.read_commit("HEAD")
    assert (signed.title, signed.body) == ("with trailers", "Body text.")


@needs_git
def test_worktree_skips_nested_repo_and_reads_symlink_text(tmp_path: Path) -> None:
    repo, _ = _three_commit_repo(tmp_path / "repo")
    (repo / "a.txt").write_text("one\ntwo\nthree\n")
    nested = _init_repo(repo / "vendor")
    (nested / "lib.txt").write_text("lib\n")
    _git(nested, "add", ".")
    _commit(nested, "lib", 50)
    os.symlink("missing-target", repo / "link")

    view = HistoryView(open_repository(repo))
    worktree = view.detail()
    assert isinstance(worktree, WorktreeDiff)
    files = {f.path: f for f in worktree.diff.files}
    assert sorted(files) == ["a.txt", "link", "vendor"]
    assert "+three" in files["a.txt"].diff_text
    assert files["link"].diff_text == (
        "@@ -0,0 +1 @@\n+missing-target\n\\ No newline at end of file\n"
    )
    assert files["vendor"].diff_text == ""
    assert [b.header for b in view.blocks()] == ["M a.txt", "A link"]


@needs_git
def test_open_repository_outside_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    (tmp_path / "empty").mkdir()
    with pytest.raises(StartupError):
        open_repository(tmp_path / "empty")


def test_parse_raw_changes() -> None:
    zero = "0" * 40
    fields = [
        f":100644 100644 {'a' * 40} {'b' * 40} M",
        "dir/file.txt",
        f":000000 100644 {zero} {'c' * 40} A",
        "new.txt",
        f":100644 100644 {'d' * 40} {'d' * 40} R100",
        "old name.txt",
        "new name.txt",
    ]
    modified, added, renamed = parse_raw_changes(fields)
    assert (modified.status, modified.path, modified.old_id) == ("M", "dir/file.txt", "a" * 40)
    assert (added.status, added.old_id, added.new_id) == ("A", None, "c" * 40)
    assert (renamed.status, renamed.old_path, renamed.path) == ("R", "old name.txt", "new name.txt")


def test_blob_diff() -> None:
    assert blob_diff(b"a\n", b"b\n") == "@@ -1 +1 @@\n-a\n+b\n"
    assert blob_diff(b"-- note\n", b"") == "@@ -1 +0,0 @@\n--- note\n"
    assert blob_diff(b"same\n", b"same\n") == ""
    assert blob_diff(b"\0bin", b"\0other") == "Binary content differs\n"

    old = b"".join(f"{n}\n".encode() for n in range(10))
    new = old.replace(b"5\n", b"five\n")
    assert blob_diff(old, new).splitlines()[0] == "@@ -3,7 +3,7 @@"
    assert blob_diff(old, new, context=0).splitlines()[0] == "@@ -6 +6 @@"


def test_blob_diff_splits_on_newlines_only() -> None:
    assert blob_diff(b"a\x0cb\n", b"a\x0cc\n") == "@@ -1 +1 @@\n-a\x0cb\n+a\x0cc\n"
    assert blob_diff(b"x\r\ny\n", b"x\r\nz\n") == "@@ -1,2 +1,2 @@\n x\r\n-y\n+z\n"


def test_blob_diff_marks_missing_final_newline() -> None:
    assert blob_diff(b"a\n", b"a") == "@@ -1 +1 @@\n-a\n+a\n\\ No newline at end of file\n"
    assert blob_diff(b"x\ny", b"x\nz\n") == (
        "@@ -1,2 +1,2 @@\n x\n-y\n\\ No newline at end of file\n+z\n"
    )


def test_strip_trailers() -> None:
    signed = "Body.\n\nSigned-off-by: A <a@x>\nCo-authored-by: B <b@x>\n"
    assert strip_trailers(signed) == "Body."
    assert strip_trailers("Signed-off-by: A <a@x>") == ""
    prose = "Note: prose here\nthat keeps going"
    assert strip_trailers(prose) == prose
    assert strip_trailers("One.\n\nTwo.\n") == "One.\n\nTwo."


def test_format_git_time() -> None:
    assert format_git_time(0, "+0130") == "1970-01-01 01:30:00 +0130"
    assert format_git_time(0, "-0500") == "1969-12-31 19:00:00 -0500"


def test_load_settings() -> None:
    assert load_settings({}) == Settings()
    settings = load_settings(
        {"GIV_WINDOW_SIZE": "25", "GIV_CONTEXT_LINES": "0", "GIV_LOG_FILE": "/tmp/giv.log"}
    )
    assert settings == Settings(25, 0, Path("/tmp/giv.log"))
    assert load_settings({}, log_file=Path("x.log")).log_file == Path("x.log")


@pytest.mark.parametrize(
    "env",
    [{"GIV_WINDOW_SIZE": "many"}, {"GIV_WINDOW_SIZE": "0"}, {"GIV_CONTEXT_LINES": "-1"}],
)
def test_load_settings_rejects_bad_values(env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        load_settings(env)


@needs_git
def test_cli_prints_window_when_not_a_tty(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo, (_c0, c1, c2) = _three_commit_repo(tmp_path / "repo")
    monkeypatch.chdir(repo)
    monkeypatch.setenv("GIV_WINDOW_SIZE", "2")
    monkeypatch.delenv("GIV_LOG_FILE", raising=False)
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 0, result.output
    short_ids = [line.split()[0] for line in result.output.splitlines()]
    assert result.output.splitlines()[0].endswith(" c2")
    assert c2.startswith(short_ids[0])
    assert c1.startswith(short_ids[1])
    assert len(short_ids) == 2


@needs_git
def test_cli_fails_outside_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    (tmp_path / "empty").mkdir()
    monkeypatch.chdir(tmp_path / "empty")
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 1
    assert "giv:" in result.output


def test_cli_rejects_bad_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIV_WINDOW_SIZE", "lots")
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 2


def test_window_entry_refs_are_immutable() -> None:
    ref = CommitRef("a" * 40, "aaaaaaa")
    with pytest.raises(AttributeError):
        ref.id = "b"  # type: ignore[misc]
