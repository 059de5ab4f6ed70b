from __future__ import annotations

import dataclasses
import datetime as dt
from pathlib import Path

from .activity_window import ScanWindow
from .errors import ScanWarning


@dataclasses.dataclass(frozen=True)
class CommitRecord:
    when: dt.datetime  # committer date, with the offset git recorded
    repo: str  # display name, relative to the scan root
    sha: str
    insertions: int
    deletions: int
    subject: str
    is_merge: bool = False

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    def sort_key(self) -> tuple[float, str, str]:
        # newest first; repo and sha break ties
        return (-self.when.timestamp(), self.repo, self.sha)


@dataclasses.dataclass
class RepoCommits:
    path: Path
    name: str
    records: list[CommitRecord] = dataclasses.field(default_factory=list)
    warnings: list[ScanWarning] = dataclasses.field(default_factory=list)


@dataclasses.dataclass(frozen=True)
class AggregateResult:
    records: tuple[CommitRecord, ...]
    window: ScanWindow
    warnings: tuple[ScanWarning, ...] = ()
    repos_scanned: int = 0

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def insertions(self) -> int:
        return sum(r.insertions for r in self.records)

    @property
    def deletions(self) -> int:
        return sum(r.deletions for r in self.records)
