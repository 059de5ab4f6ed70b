from __future__ import annotations

import contextlib
import logging
import subprocess
from collections.abc import Iterator
from pathlib import Path

from .activity_window import ScanWindow
from .errors import FetchWarning, RepositoryAccessWarning
from .git import GitCommandError, fetch_prune, iter_history, open_repository
from .identity import AuthorIdentity
from .models import CommitRecord, RepoCommits

log = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_S = 60
NO_SUBJECT = "(no message)"


def repo_display_name(repo: Path, scan_root: Path) -> str:
    try:
        rel = repo.relative_to(scan_root).as_posix()
    except ValueError:
        return str(repo)
    if rel == ".":
        return repo.name or str(repo)
    return rel


def iter_repo_commits(
    repo: Path,
    head: str,
    *,
    name: str,
    window: ScanWindow,
    identity: AuthorIdentity | None,
    include_merges: bool,
) -> Iterator[CommitRecord]:
    """
    Walk history from `head` and yield the commits that qualify for the run.

    The walk stops at the first commit older than the window start. History
    comes in committer-date order, so a newer commit hidden behind an older
    one (clock skew, old branches merged late) is not reached.
    """
    with contextlib.closing(iter_history(repo, head)) as history:
        for entry in history:
            if not window.contains(entry.committed_at):
                break
            if entry.is_merge and not include_merges:
                continue
            if identity is not None and not identity.matches(entry.author_name, entry.author_email):
                continue
            yield CommitRecord(
                when=entry.committed_at,
                repo=name,
                sha=entry.sha,
                insertions=entry.insertions,
                deletions=entry.deletions,
                subject=entry.subject or NO_SUBJECT,
                is_merge=entry.is_merge,
            )


def collect_commits(
    repo: Path,
    *,
    scan_root: Path,
    window: ScanWindow,
    identity: AuthorIdentity | None,
    include_merges: bool,
    fetch_remote: bool = False,
    fetch_timeout_s: int = DEFAULT_FETCH_TIMEOUT_S,
) -> RepoCommits:
    """
    Collect one repository's qualifying commits, newest first.

    Never raises for repository problems: a failed fetch falls back to local
    history with a FetchWarning, and an unreadable repository contributes no
    commits and a RepositoryAccessWarning.
    """
    result = RepoCommits(path=repo, name=repo_display_name(repo, scan_root))

    if fetch_remote:
        try:
            fetch_prune(repo, fetch_timeout_s)
        except (GitCommandError, OSError, ValueError) as e:
            log.debug("fetch failed for %s: %s", repo, e)
            result.warnings.append(FetchWarning(str(repo), str(e) or type(e).__name__))

    try:
        head = open_repository(repo)
        if head is None:
            log.debug("%s has no commits yet", repo)
            return result
        records = list(
            iter_repo_commits(
                repo,
                head,
                name=result.name,
                window=window,
                identity=identity,
                include_merges=include_merges,
            )
        )
    except (GitCommandError, OSError, ValueError, subprocess.TimeoutExpired) as e:
        log.debug("skipping %s: %s", repo, e)
        result.warnings.append(RepositoryAccessWarning(str(repo), str(e) or type(e).__name__))
        return result

    log.debug("%s: %d commits in window", repo, len(records))
    result.records = records
    return result
