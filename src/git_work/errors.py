from __future__ import annotations

import dataclasses
from typing import ClassVar


class GitWorkError(Exception):
    """Fatal error: aborts the run before any scanning starts."""


class ConfigurationError(GitWorkError):
    pass


class InvalidRootError(GitWorkError):
    pass


@dataclasses.dataclass(frozen=True)
class ScanWarning:
    path: str
    message: str

    kind: ClassVar[str] = "warning"

    def __str__(self) -> str:
        return f"{self.kind}: {self.path}: {self.message}"


class RepositoryAccessWarning(ScanWarning):
    kind = "repository skipped"


class FetchWarning(ScanWarning):
    kind = "fetch failed"


class DirectoryReadWarning(ScanWarning):
    kind = "directory unreadable"
