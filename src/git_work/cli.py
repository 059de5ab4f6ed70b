from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .activity_run import run_activity
from .errors import GitWorkError


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from e
    if n < 0:
        raise argparse.ArgumentTypeError(f"expected a value >= 0, got {n}")
    return n


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="git-work", description="Show your recent commits across many git repos.")
    parser.add_argument("path", type=Path, help="Directory to scan.")
    parser.add_argument("-L", "--depth", type=_non_negative_int, default=3, help="Max depth to search for repos (default: 3).")
    window = parser.add_argument_group("window", "Pick one; if several are given: --today > --last-month > --month > --days.")
    window.add_argument("--days", type=_non_negative_int, default=None, help="How many days back to look (default: 7).")
    window.add_argument("--today", action="store_true", help="Commits since local midnight.")
    window.add_argument("--month", action="store_true", help="Commits since the first day of this month.")
    window.add_argument("--last-month", action="store_true", help="Commits since the first day of last month.")
    parser.add_argument("-l", "--limit", type=_non_negative_int, default=50, help="Max number of commits to print across all repos (default: 50).")
    parser.add_argument("--remote", action="store_true", help="Fetch from remotes before scanning (slower).")
    parser.add_argument("--fetch-timeout", type=_non_negative_int, default=None, help="Per-repo fetch timeout in seconds (default: 60).")
    parser.add_argument("--all", action="store_true", help="Don't filter to your author identity.")
    parser.add_argument("--merges", action="store_true", help="Include merge commits.")
    parser.add_argument("-r", "--raw", action="store_true", help="Raw tab-separated output for piping.")
    parser.add_argument("-j", "--jobs", type=_non_negative_int, default=None, help="Parallel git jobs (default: CPU count, max 8).")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json (default: $GIT_WORK_CONFIG or ~/.config/git-work/config.json).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr.")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return run_activity(args=args)
    except GitWorkError as e:
        print(f"git-work: {e}", file=sys.stderr)
        return 2
    except BrokenPipeError:
        # Output piped into something like `head` that stopped reading.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
