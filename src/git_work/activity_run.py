from __future__ import annotations

import argparse
import datetime as dt
import sys
from pathlib import Path
from typing import TextIO

from .activity_aggregate import aggregate_commits
from .activity_render import empty_message, render_raw, render_table, render_warnings, use_color
from .activity_repo import DEFAULT_FETCH_TIMEOUT_S
from .activity_window import ScanWindow
from .config import config_int, config_str_list, default_config_path, load_config, resolve_identity
from .errors import ConfigurationError, InvalidRootError, ScanWarning
from .git import iter_repo_roots


def resolve_scan_root(path: Path) -> Path:
    root = path.expanduser()
    if not root.exists():
        raise InvalidRootError(f"cannot access '{path}': no such directory")
    if not root.is_dir():
        raise InvalidRootError(f"cannot access '{path}': not a directory")
    return root.resolve()


def run_activity(
    *,
    args: argparse.Namespace,
    out: TextIO | None = None,
    err: TextIO | None = None,
    now: dt.datetime | None = None,
) -> int:
    out = out or sys.stdout
    err = err or sys.stderr

    if args.config and not Path(args.config).expanduser().is_file():
        raise ConfigurationError(f"config file not found: {args.config}")
    config = load_config(Path(args.config).expanduser() if args.config else default_config_path())
    scan_root = resolve_scan_root(args.path)
    identity = resolve_identity(all_authors=bool(args.all), cwd=scan_root, config=config)
    window = ScanWindow.from_flags(
        days=args.days,
        today=bool(args.today),
        month=bool(args.month),
        last_month=bool(args.last_month),
        limit=int(args.limit),
        now=now,
    )

    warnings: list[ScanWarning] = []
    repos = list(
        iter_repo_roots(
            scan_root,
            int(args.depth),
            exclude_dirnames=config_str_list(config, "exclude_dirnames"),
            warnings=warnings,
        )
    )
    if not repos:
        print(f"No git repos found in {scan_root}", file=err)
        if warnings:
            print(render_warnings(warnings), file=err)
        return 1

    fetch_timeout_s = args.fetch_timeout if args.fetch_timeout is not None else config_int(config, "fetch_timeout_s", DEFAULT_FETCH_TIMEOUT_S)
    jobs = args.jobs if args.jobs is not None else config_int(config, "jobs", 0)
    result = aggregate_commits(
        repos,
        scan_root=scan_root,
        window=window,
        identity=identity,
        include_merges=bool(args.merges),
        fetch_remote=bool(args.remote),
        fetch_timeout_s=int(fetch_timeout_s),
        jobs=int(jobs) or None,
        warnings=warnings,
    )

    if not result.records:
        print(empty_message(window, all_authors=bool(args.all)), file=err)
    elif args.raw:
        print(render_raw(result), file=out)
    else:
        print(render_table(result, color=use_color(out)), file=out)

    if result.warnings:
        print("", file=err)
        print(render_warnings(result.warnings), file=err)
    return 0
