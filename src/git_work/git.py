from __future__ import annotations

import dataclasses
import datetime as dt
import logging
import os
import subprocess
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Optional

from .errors import DirectoryReadWarning, ScanWarning

log = logging.getLogger(__name__)

HEADER_PREFIX = "@@@"
# sha, parents, committer date, author name, author email, subject
LOG_FORMAT = HEADER_PREFIX + "%H\t%P\t%cI\t%an\t%ae\t%s"


class GitCommandError(RuntimeError):
    pass


@dataclasses.dataclass(frozen=True)
class HistoryEntry:
    sha: str
    parents: tuple[str, ...]
    committed_at: dt.datetime
    author_name: str
    author_email: str
    subject: str
    insertions: int = 0
    deletions: int = 0

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


def run_git(
    args: list[str],
    cwd: Path,
    timeout_s: int = 300,
    env: Optional[dict[str, str]] = None,
) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout_s,
        env=env,
    )
    return proc.returncode, proc.stdout, proc.stderr


def iter_repo_roots(
    root: Path,
    max_depth: int,
    *,
    exclude_dirnames: Iterable[str] = (),
    warnings: Optional[list[ScanWarning]] = None,
) -> Iterator[Path]:
    """
    Yield repository roots under `root`, at most `max_depth` levels down.

    A directory holding a `.git` entry (directory, gitlink file or symlink) is
    a root and is never descended into. Symlinked directories are not
    followed. Unreadable directories are reported into `warnings`.
    """
    excluded = set(exclude_dirnames)

    def onerror(err: OSError) -> None:
        path = str(err.filename or root)
        log.debug("cannot read directory %s: %s", path, err)
        if warnings is not None:
            warnings.append(DirectoryReadWarning(path, err.strerror or str(err)))

    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror, followlinks=False):
        here = Path(dirpath)
        if ".git" in dirnames or ".git" in filenames:
            dirnames[:] = []
            yield here
            continue
        depth = len(here.relative_to(root).parts)
        if depth >= max_depth:
            dirnames[:] = []
            continue
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)


def read_config_identity(cwd: Path) -> tuple[str, str]:
    """Effective `user.email` / `user.name` as git resolves them from `cwd`."""
    values: list[str] = []
    for key in ("user.email", "user.name"):
        try:
            code, out, _ = run_git(["config", "--get", key], cwd=cwd, timeout_s=30)
        except (OSError, subprocess.TimeoutExpired):
            code, out = 1, ""
        values.append(out.strip() if code == 0 else "")
    return values[0], values[1]


def list_remotes(repo: Path) -> list[str]:
    code, out, _ = run_git(["remote"], cwd=repo, timeout_s=60)
    if code != 0:
        return []
    return [line.strip() for line in out.splitlines() if line.strip()]


def fetch_prune(repo: Path, timeout_s: int) -> None:
    if not list_remotes(repo):
        raise GitCommandError("no remotes configured")
    env = os.environ.copy()
    # Never wait on a credential prompt.
    env["GIT_TERMINAL_PROMPT"] = "0"
    try:
        code, _, err = run_git(["fetch", "--all", "--prune", "--quiet"], cwd=repo, timeout_s=timeout_s, env=env)
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(f"timed out after {timeout_s}s") from e
    if code != 0:
        raise GitCommandError(err.strip()[:500] or f"git fetch exited {code}")


def open_repository(repo: Path) -> str | None:
    """
    Return the commit sha HEAD points at, or None for a repository without
    any commits yet. Raises GitCommandError if `repo` is not usable.
    """
    code, _, err = run_git(["rev-parse", "--git-dir"], cwd=repo, timeout_s=60)
    if code != 0:
        raise GitCommandError(err.strip()[:500] or "not a git repository")
    code, out, _ = run_git(["rev-parse", "--verify", "--quiet", "HEAD^{commit}"], cwd=repo, timeout_s=60)
    if code == 0 and out.strip():
        return out.strip()
    code, out, err = run_git(["for-each-ref", "--count=1"], cwd=repo, timeout_s=60)
    if code != 0:
        raise GitCommandError(err.strip()[:500] or "cannot read refs")
    if not out.strip():
        return None
    raise GitCommandError("HEAD does not resolve to a commit")


def _parse_iso(value: str) -> dt.datetime:
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    d = dt.datetime.fromisoformat(s)
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d


def _parse_header(line: str) -> dict[str, object]:
    parts = line[len(HEADER_PREFIX) :].split("\t", 5)
    while len(parts) < 6:
        parts.append("")
    sha, parents, committed_iso, name, email, subject = parts
    return {
        "sha": sha,
        "parents": tuple(parents.split()),
        "committed_at": _parse_iso(committed_iso),
        "author_name": name,
        "author_email": email,
        "subject": subject.strip(),
    }


def iter_history(repo: Path, start: str) -> Iterator[HistoryEntry]:
    """
    Stream commits reachable from `start`, newest committer date first, each
    with line counts against its first parent.

    Lazy: `git log` output is parsed as it arrives, and closing the generator
    stops the git process. Raises GitCommandError when git fails.
    """
    cmd = [
        "git",
        "-c",
        "log.showRoot=true",
        "-c",
        "log.showSignature=false",
        "log",
        start,
        "--diff-merges=first-parent",
        "--numstat",
        "--no-renames",
        "--no-color",
        "--no-ext-diff",
        f"--pretty=format:{LOG_FORMAT}",
    ]
    proc = subprocess.Popen(
        cmd,
        cwd=str(repo),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )

    stderr_chunks: list[str] = []
    stderr_chars = 0
    max_stderr_chars = 50_000

    def drain_stderr() -> None:
        nonlocal stderr_chars
        if proc.stderr is None:
            return
        while True:
            chunk = proc.stderr.read(8192)
            if not chunk:
                return
            if stderr_chars >= max_stderr_chars:
                continue
            take = chunk[: max_stderr_chars - stderr_chars]
            stderr_chunks.append(take)
            stderr_chars += len(take)

    stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
    stderr_thread.start()

    finished = False
    try:
        current: dict[str, object] | None = None
        insertions = 0
        deletions = 0
        assert proc.stdout is not None
        for raw_line in proc.stdout:
            line = raw_line.rstrip("\n")
            if not line:
                continue
            if line.startswith(HEADER_PREFIX):
                if current is not None:
                    yield HistoryEntry(insertions=insertions, deletions=deletions, **current)  # type: ignore[arg-type]
                current = _parse_header(line)
                insertions = 0
                deletions = 0
                continue

            parts = line.split("\t", 2)
            if len(parts) < 2:
                continue
            added_s, deleted_s = parts[0], parts[1]
            if added_s == "-" or deleted_s == "-":
                # binary file
                continue
            try:
                insertions += int(added_s)
                deletions += int(deleted_s)
            except ValueError:
                continue

        code = proc.wait()
        stderr_thread.join()
        if code != 0:
            raise GitCommandError(f"git log exited {code}: {''.join(stderr_chunks).strip()[:500]}")
        if current is not None:
            yield HistoryEntry(insertions=insertions, deletions=deletions, **current)  # type: ignore[arg-type]
        finished = True
    finally:
        if not finished and proc.poll() is None:
            proc.kill()
        if proc.stdout is not None:
            proc.stdout.close()
        proc.wait()
        stderr_thread.join(timeout=5)
