from __future__ import annotations

import heapq
import itertools
import logging
import os
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .activity_repo import DEFAULT_FETCH_TIMEOUT_S, collect_commits, repo_display_name
from .activity_window import ScanWindow
from .errors import RepositoryAccessWarning, ScanWarning
from .identity import AuthorIdentity
from .models import AggregateResult, CommitRecord, RepoCommits

log = logging.getLogger(__name__)


def default_jobs() -> int:
    return max(1, min(8, (os.cpu_count() or 4)))


def merge_records(per_repo: Iterable[list[CommitRecord]], limit: int | None) -> list[CommitRecord]:
    """k-way merge of per-repository lists into one newest-first list, capped at `limit`."""
    ordered = [sorted(records, key=CommitRecord.sort_key) for records in per_repo]
    merged = heapq.merge(*ordered, key=CommitRecord.sort_key)
    if limit is None:
        return list(merged)
    return list(itertools.islice(merged, max(0, limit)))


def unique_repos(repos: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    out: list[Path] = []
    for repo in repos:
        key = repo.resolve()
        if key in seen:
            continue
        seen.add(key)
        out.append(repo)
    return out


def aggregate_commits(
    repos: Iterable[Path],
    *,
    scan_root: Path,
    window: ScanWindow,
    identity: AuthorIdentity | None,
    include_merges: bool,
    fetch_remote: bool = False,
    fetch_timeout_s: int = DEFAULT_FETCH_TIMEOUT_S,
    jobs: int | None = None,
    warnings: Iterable[ScanWarning] = (),
) -> AggregateResult:
    """
    Collect every repository on a thread pool, then merge once.

    Totals on the returned result cover only the records kept after the
    limit is applied. `warnings` (e.g. from discovery) are carried through
    ahead of the per-repository ones.
    """
    repo_list = unique_repos(repos)
    results: list[RepoCommits] = []
    with ThreadPoolExecutor(max_workers=jobs or default_jobs()) as ex:
        futs = {
            ex.submit(
                collect_commits,
                repo,
                scan_root=scan_root,
                window=window,
                identity=identity,
                include_merges=include_merges,
                fetch_remote=fetch_remote,
                fetch_timeout_s=fetch_timeout_s,
            ): repo
            for repo in repo_list
        }
        for fut in as_completed(futs):
            repo = futs[fut]
            try:
                results.append(fut.result())
            except Exception as e:
                log.debug("collector for %s failed", repo, exc_info=True)
                results.append(
                    RepoCommits(
                        path=repo,
                        name=repo_display_name(repo, scan_root),
                        warnings=[RepositoryAccessWarning(str(repo), f"unexpected error: {e}")],
                    )
                )

    results.sort(key=lambda r: r.path.as_posix())
    records = merge_records((r.records for r in results), window.limit)
    all_warnings = list(warnings)
    for r in results:
        all_warnings.extend(r.warnings)
    log.debug("merged %d repos into %d records", len(results), len(records))
    return AggregateResult(
        records=tuple(records),
        window=window,
        warnings=tuple(all_warnings),
        repos_scanned=len(results),
    )
