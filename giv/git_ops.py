"""Git subprocess operations."""

import datetime as dt
import difflib
import itertools
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Sequence

from giv.models import CommitRecord, Signature, TreeChange

logger = logging.getLogger(__name__)

NULL_ID = "0" * 40
BLOB_MODES = frozenset({"100644", "100755", "120000"})
GITLINK_MODE = "160000"
SYMLINK_MODE = "120000"
NO_NEWLINE_MARKER = "\\ No newline at end of file"
_FIELD_SEP = "\x1f"
_COMMIT_FORMAT = _FIELD_SEP.join(
    ["%H", "%h", "%P", "%an", "%ae", "%ai", "%cn", "%ce", "%ci", "%ct", "%s", "%b"]
)
_IDENT_RE = re.compile(r"^(?P<name>.*) <(?P<email>[^>]*)> (?P<ts>\d+) (?P<tz>[+-]\d{4})$")
_TRAILER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*: ")


class BackendError(Exception):
    """Repository, object or status access failed."""


class GitError(BackendError):
    """Git command failed."""

    def __init__(self, cmd: Sequence[str], stderr: str) -> None:
        self.cmd = cmd
        self.stderr = stderr
        super().__init__(f"git {' '.join(cmd)}: {stderr}")


class StartupError(Exception):
    """The repository or the terminal could not be opened."""


def _git(
    args: Sequence[str], cwd: Path | None, ok_codes: tuple[int, ...] = (0,)
) -> subprocess.CompletedProcess[bytes]:
    logger.debug("git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise GitError(args, "git executable not found") from exc
    if result.returncode not in ok_codes:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise GitError(args, stderr or f"exit status {result.returncode}")
    return result


def run(args: Sequence[str], cwd: Path | None = None) -> str:
    """Run a git command and return stripped stdout."""
    return _git(args, cwd).stdout.decode("utf-8", errors="replace").strip()


def run_z(args: Sequence[str], cwd: Path | None = None) -> list[str]:
    """Run a NUL-delimited git command and return its fields."""
    out = _git(args, cwd).stdout.decode("utf-8", errors="surrogateescape")
    return [item for item in out.split("\0") if item]


def open_repository(cwd: Path) -> "GitBackend":
    """Open the repository containing ``cwd``."""
    try:
        top = run(["rev-parse", "--show-toplevel"], cwd=cwd)
    except GitError as exc:
        raise StartupError(f"not inside a git repository ({exc.stderr})") from exc
    if not top:
        raise StartupError("not inside a git work tree")
    return GitBackend(Path(top))


def parse_raw_changes(fields: list[str]) -> list[TreeChange]:
    """Parse ``--raw -z`` diff output into tree changes."""
    changes: list[TreeChange] = []
    idx = 0
    while idx < len(fields):
        meta = fields[idx]
        if not meta.startswith(":"):
            idx += 1
            continue
        _old_mode, new_mode, old_id, new_id, status = meta[1:].split(" ", 4)
        status = status[0]
        if status in ("R", "C"):
            old_path, path = fields[idx + 1], fields[idx + 2]
            idx += 3
        else:
            old_path, path = None, fields[idx + 1]
            idx += 2
        changes.append(
            TreeChange(
                status=status,
                path=path,
                old_path=old_path,
                old_id=None if old_id == NULL_ID else old_id,
                new_id=None if new_id == NULL_ID else new_id,
                new_mode=new_mode,
            )
        )
    return changes


def format_git_time(ts: int, tz: str) -> str:
    """Format epoch seconds plus a ``+hhmm`` offset like git's ``%ai``."""
    sign = -1 if tz.startswith("-") else 1
    offset = dt.timedelta(hours=int(tz[1:3]), minutes=int(tz[3:5])) * sign
    stamp = dt.datetime.fromtimestamp(ts, tz=dt.timezone(offset))
    return stamp.strftime("%Y-%m-%d %H:%M:%S %z")


def _decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line ends."""
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def blob_diff(old: bytes, new: bytes, context: int = 3) -> str:
    """Return unified diff hunks between two blob contents, without file headers."""
    if b"\0" in old or b"\0" in new:
        return "" if old == new else "Binary content differs\n"
    hunks = difflib.unified_diff(
        _split_lines(_decode_text(old)),
        _split_lines(_decode_text(new)),
        n=context,
    )
    out: list[str] = []
    # The first two lines are the ---/+++ file header.
    for line in itertools.islice(hunks, 2, None):
        out.append(line)
        if not line.endswith("\n"):
            out.append(f"\n{NO_NEWLINE_MARKER}\n")
    return "".join(out)


def strip_trailers(body: str) -> str:
    """Drop a final paragraph made only of ``Key: value`` trailers."""
    body = body.rstrip()
    head, _, last = body.rpartition("\n\n")
    lines = last.splitlines()
    if not lines or not _TRAILER_RE.match(lines[0]):
        return body
    if all(_TRAILER_RE.match(line) or line[:1] in (" ", "\t") for line in lines):
        return head.rstrip()
    return body


class GitBackend:
    """Read-only queries against one repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    def head_id(self) -> str:
        """Get the commit id HEAD points at."""
        return run(["rev-parse", "--verify", "HEAD^{commit}"], cwd=self.repo_root)

    def read_commit(self, rev: str) -> CommitRecord:
        """Read commit metadata."""
        result = _git(
            ["show", "-s", "--no-color", "--no-show-signature", f"--format={_COMMIT_FORMAT}", rev],
            self.repo_root,
        )
        # Trailing fields may be empty; drop only the record terminator.
        out = result.stdout.decode("utf-8", errors="replace").removesuffix("\n")
        parts = out.split(_FIELD_SEP, 11)
        if len(parts) != 12:
            raise BackendError(f"unexpected commit format for {rev}")
        (cid, short, parents, an, ae, ai, cn, ce, ci, ct, subject, body) = parts
        return CommitRecord(
            id=cid,
            short_id=short,
            parent_ids=tuple(parents.split()),
            author=Signature(an.strip(), ae.strip(), ai),
            committer=Signature(cn.strip(), ce.strip(), ci),
            commit_time=int(ct),
            title=subject.strip(),
            body=strip_trailers(body),
        )

    def diff_trees(self, old: str, new: str) -> list[TreeChange]:
        """List changed paths between two commits' trees."""
        fields = run_z(
            ["diff-tree", "-r", "-z", "-M", "--raw", "--no-abbrev", old, new],
            cwd=self.repo_root,
        )
        return parse_raw_changes(fields)

    def index_changes(self) -> list[TreeChange]:
        """List paths staged relative to HEAD."""
        fields = run_z(
            ["diff-index", "--cached", "-z", "-M", "--raw", "--no-abbrev", "HEAD"],
            cwd=self.repo_root,
        )
        return parse_raw_changes(fields)

    def worktree_changes(self) -> list[TreeChange]:
        """List working tree paths that differ from the index, plus untracked files."""
        fields = run_z(["diff-files", "-z", "--raw", "--no-abbrev"], cwd=self.repo_root)
        changes = parse_raw_changes(fields)
        for path in self._untracked_paths():
            # Nested repositories are listed with a trailing slash.
            if path.endswith("/"):
                path, mode = path.rstrip("/"), GITLINK_MODE
            elif (self.repo_root / path).is_symlink():
                mode = SYMLINK_MODE
            else:
                mode = "100644"
            changes.append(
                TreeChange(
                    status="A",
                    path=path,
                    old_path=None,
                    old_id=None,
                    new_id=None,
                    new_mode=mode,
                )
            )
        return changes

    def has_worktree_changes(self) -> bool:
        """Check if the working tree differs from the index."""
        result = _git(["diff-files", "--quiet"], self.repo_root, ok_codes=(0, 1))
        return result.returncode == 1 or bool(self._untracked_paths())

    def has_index_changes(self) -> bool:
        """Check if the index differs from HEAD."""
        result = _git(
            ["diff-index", "--cached", "--quiet", "HEAD"], self.repo_root, ok_codes=(0, 1)
        )
        return result.returncode == 1

    def read_blob(self, oid: str) -> bytes:
        return _git(["cat-file", "blob", oid], self.repo_root).stdout

    def read_worktree_file(self, path: str) -> bytes:
        """Read a working tree file; symlinks yield their target text, as git stores them."""
        full = self.repo_root / path
        try:
            if full.is_symlink():
                return os.fsencode(os.readlink(full))
            return full.read_bytes()
        except OSError as exc:
            raise BackendError(f"cannot read {path}: {exc.strerror}") from exc

    def blob_diff(self, old: bytes, new: bytes, context: int = 3) -> str:
        return blob_diff(old, new, context)

    def current_signature(self) -> Signature:
        """Get the committer identity git would use right now."""
        ident = run(["var", "GIT_COMMITTER_IDENT"], cwd=self.repo_root)
        match = _IDENT_RE.match(ident)
        if match is None:
            raise BackendError(f"cannot parse identity: {ident!r}")
        return Signature(
            name=match.group("name").strip(),
            email=match.group("email").strip(),
            time=format_git_time(int(match.group("ts")), match.group("tz")),
        )

    def _untracked_paths(self) -> list[str]:
        return run_z(["ls-files", "-z", "--others", "--exclude-standard"], cwd=self.repo_root)


def is_blob_mode(mode: str) -> bool:
    """Check if a tree entry mode refers to a blob (not a submodule)."""
    return mode in BLOB_MODES
