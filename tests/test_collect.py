from __future__ import annotations

import datetime as dt
import os
import subprocess
from pathlib import Path

from git_work.activity_repo import collect_commits, repo_display_name
from git_work.activity_window import ScanWindow
from git_work.errors import FetchWarning, RepositoryAccessWarning
from git_work.git import list_remotes
from git_work.identity import AuthorIdentity

NOW = dt.datetime(2025, 3, 10, 12, 0, tzinfo=dt.timezone.utc)


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout


def _git_date(when: dt.datetime) -> str:
    return when.strftime("%Y-%m-%dT%H:%M:%S%z")


def _env(when: dt.datetime, *, name: str = "", email: str = "") -> dict[str, str]:
    env = os.environ.copy()
    env["GIT_AUTHOR_DATE"] = _git_date(when)
    env["GIT_COMMITTER_DATE"] = _git_date(when)
    if name:
        env["GIT_AUTHOR_NAME"] = name
    if email:
        env["GIT_AUTHOR_EMAIL"] = email
    return env


def _init_repo(repo: Path) -> Path:
    repo.mkdir(parents=True, exist_ok=True)
    _run(["git", "init"], cwd=repo)
    _run(["git", "config", "user.name", "Test User"], cwd=repo)
    _run(["git", "config", "user.email", "test@example.com"], cwd=repo)
    return repo


def _commit(repo: Path, *, filename: str, lines: int, when: dt.datetime, msg: str = "", name: str = "", email: str = "") -> str:
    p = repo / filename
    p.write_text("".join(f"line {i}\n" for i in range(lines)), encoding="utf-8")
    _run(["git", "add", filename], cwd=repo)
    _run(["git", "commit", "-m", msg or f"update {filename}"], cwd=repo, env=_env(when, name=name, email=email))
    return _run(["git", "rev-parse", "HEAD"], cwd=repo).strip()


def _collect(repo: Path, *, days: int = 7, identity: AuthorIdentity | None = None, include_merges: bool = False, **kwargs):
    return collect_commits(
        repo,
        scan_root=repo.parent,
        window=ScanWindow.rolling_days(days, now=NOW),
        identity=identity,
        include_merges=include_merges,
        **kwargs,
    )


def test_window_edge_excludes_older_commit_and_keeps_newer(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=8), msg="old")
    sha = _commit(repo, filename="b.txt", lines=2, when=NOW - dt.timedelta(days=6), msg="recent")

    got = _collect(repo)

    assert got.warnings == []
    assert [c.subject for c in got.records] == ["recent"]
    rec = got.records[0]
    assert rec.sha == sha
    assert rec.short_sha == sha[:7]
    assert rec.repo == "r"
    assert rec.insertions == 2
    assert rec.deletions == 0
    assert rec.when == NOW - dt.timedelta(days=6)


def test_records_are_newest_first_with_line_counts(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=3, when=NOW - dt.timedelta(days=3), msg="first")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=2), msg="shrink")
    _commit(repo, filename="b.txt", lines=4, when=NOW - dt.timedelta(days=1), msg="third")

    got = _collect(repo)

    assert [c.subject for c in got.records] == ["third", "shrink", "first"]
    assert [(c.insertions, c.deletions) for c in got.records] == [(4, 0), (0, 2), (3, 0)]


def test_walk_stops_at_first_commit_older_than_window(tmp_path: Path) -> None:
    # A commit inside the window that sits behind an older one is not reached.
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="skewed")
    _commit(repo, filename="b.txt", lines=1, when=NOW - dt.timedelta(days=9), msg="old clock")
    _commit(repo, filename="c.txt", lines=1, when=NOW - dt.timedelta(days=2), msg="tip")

    got = _collect(repo)

    assert [c.subject for c in got.records] == ["tip"]


def test_identity_filter_and_all_authors(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=3), msg="mine", name="A", email="a@x.com")
    _commit(repo, filename="b.txt", lines=1, when=NOW - dt.timedelta(days=2), msg="theirs", name="B", email="b@x.com")
    _commit(repo, filename="c.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="mine by name", name="A", email="other@x.com")

    me = AuthorIdentity(email="a@x.com", name="A")
    mine = _collect(repo, identity=me)
    everyone = _collect(repo, identity=None)

    assert [c.subject for c in mine.records] == ["mine by name", "mine"]
    assert [c.subject for c in everyone.records] == ["mine by name", "theirs", "mine"]


def test_identity_email_match_ignores_case(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), name="Someone", email="Me@Example.COM")

    got = _collect(repo, identity=AuthorIdentity(email="me@example.com", name="Not Them"))

    assert len(got.records) == 1


def _repo_with_merge(tmp_path: Path) -> Path:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="base.txt", lines=1, when=NOW - dt.timedelta(days=5), msg="base")
    _run(["git", "checkout", "-b", "feature"], cwd=repo)
    _commit(repo, filename="feature.txt", lines=3, when=NOW - dt.timedelta(days=4), msg="feature work")
    _run(["git", "checkout", "main"], cwd=repo)
    _commit(repo, filename="main.txt", lines=1, when=NOW - dt.timedelta(days=3), msg="main work")
    _run(
        ["git", "merge", "--no-ff", "-m", "merge feature", "feature"],
        cwd=repo,
        env=_env(NOW - dt.timedelta(days=2)),
    )
    return repo


def test_merge_commits_excluded_by_default(tmp_path: Path) -> None:
    repo = _repo_with_merge(tmp_path)

    got = _collect(repo)

    assert "merge feature" not in [c.subject for c in got.records]
    assert sorted(c.subject for c in got.records) == ["base", "feature work", "main work"]
    assert not any(c.is_merge for c in got.records)


def test_merge_commits_included_with_first_parent_stats(tmp_path: Path) -> None:
    repo = _repo_with_merge(tmp_path)

    got = _collect(repo, include_merges=True)

    merges = [c for c in got.records if c.is_merge]
    assert len(merges) == 1
    assert merges[0].subject == "merge feature"
    # relative to the first parent (main), the merge brings in feature.txt
    assert (merges[0].insertions, merges[0].deletions) == (3, 0)
    assert got.records[0] is merges[0]


def test_broken_repository_yields_warning_and_no_records(tmp_path: Path) -> None:
    repo = tmp_path / "broken"
    repo.mkdir()
    (repo / ".git").write_text(f"gitdir: {tmp_path / 'nowhere'}\n", encoding="utf-8")

    got = _collect(repo)

    assert got.records == []
    assert len(got.warnings) == 1
    assert isinstance(got.warnings[0], RepositoryAccessWarning)
    assert got.warnings[0].path == str(repo)


def test_repository_without_commits_is_empty_without_warning(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "fresh")

    got = _collect(repo)

    assert got.records == []
    assert got.warnings == []


def test_fetch_failure_falls_back_to_local_history(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="local")
    _run(["git", "remote", "add", "origin", str(tmp_path / "missing.git")], cwd=repo)

    got = _collect(repo, fetch_remote=True, fetch_timeout_s=30)

    assert [c.subject for c in got.records] == ["local"]
    assert len(got.warnings) == 1
    assert isinstance(got.warnings[0], FetchWarning)


def test_fetch_without_remotes_warns(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="local")

    got = _collect(repo, fetch_remote=True)

    assert [c.subject for c in got.records] == ["local"]
    assert [type(w) for w in got.warnings] == [FetchWarning]
    assert "no remotes" in got.warnings[0].message


def test_fetch_from_reachable_remote_sees_no_warning(tmp_path: Path) -> None:
    upstream = _init_repo(tmp_path / "upstream")
    _commit(upstream, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="upstream")
    clone = tmp_path / "clone"
    _run(["git", "clone", "-q", str(upstream), str(clone)], cwd=tmp_path)

    got = _collect(clone, fetch_remote=True, fetch_timeout_s=30, identity=None)

    assert got.warnings == []
    assert [c.subject for c in got.records] == ["upstream"]


def test_repo_display_name() -> None:
    root = Path("/scan")
    assert repo_display_name(Path("/scan/a/b"), root) == "a/b"
    assert repo_display_name(Path("/scan"), root) == "scan"
    assert repo_display_name(Path("/elsewhere/x"), root) == "/elsewhere/x"


def test_undecodable_remote_url_keeps_local_history(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    _commit(repo, filename="a.txt", lines=1, when=NOW - dt.timedelta(days=1), msg="local work")
    subprocess.run([b"git", b"remote", b"add", b"origin", b"/nowhere/caf\xe9.git"], cwd=repo, check=True, capture_output=True)

    got = _collect(repo, fetch_remote=True, fetch_timeout_s=30)

    assert [c.subject for c in got.records] == ["local work"]
    assert [type(w) for w in got.warnings] == [FetchWarning]


def test_list_remotes_returns_remote_names(tmp_path: Path) -> None:
    repo = _init_repo(tmp_path / "r")
    assert list_remotes(repo) == []

    _run(["git", "remote", "add", "upstream", str(tmp_path / "u.git")], cwd=repo)
    _run(["git", "remote", "add", "origin", str(tmp_path / "o.git")], cwd=repo)

    assert list_remotes(repo) == ["origin", "upstream"]
