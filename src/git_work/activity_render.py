from __future__ import annotations

import datetime as dt
import os
from collections.abc import Iterable

from .activity_window import ScanWindow
from .errors import ScanWarning
from .models import AggregateResult, CommitRecord

BOLD = "\x1b[1m"
DIM = "\x1b[2m"
GREEN = "\x1b[32m"
RED = "\x1b[31m"
RESET = "\x1b[0m"

TIME_FORMAT = "%Y-%m-%d %H:%M"


def use_color(stream) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _paint(text: str, code: str, color: bool) -> str:
    return f"{code}{text}{RESET}" if color else text


def format_time(when: dt.datetime) -> str:
    return when.astimezone().strftime(TIME_FORMAT)


def _one_line(s: str) -> str:
    return " ".join(s.split())


def render_raw(result: AggregateResult) -> str:
    lines: list[str] = []
    for c in result.records:
        # time\trepo\thash\t+ins\t-del\tsubject
        lines.append(f"{format_time(c.when)}\t{c.repo}\t{c.short_sha}\t+{c.insertions}\t-{c.deletions}\t{_one_line(c.subject)}")
    return "\n".join(lines)


def render_table(result: AggregateResult, *, color: bool = False) -> str:
    records: tuple[CommitRecord, ...] = result.records
    # widths come from the shown commits only
    repo_width = max((len(c.repo) for c in records), default=0)
    ins_width = max((len(str(c.insertions)) for c in records), default=1)
    del_width = max((len(str(c.deletions)) for c in records), default=1)

    lines: list[str] = []
    for c in records:
        repo = _paint(c.repo.ljust(repo_width), BOLD, color)
        short = _paint(c.short_sha, DIM, color)
        plus = _paint(f"+{c.insertions:>{ins_width}}", GREEN, color)
        minus = _paint(f"-{c.deletions:>{del_width}}", RED, color)
        lines.append(f"{format_time(c.when)}  {repo}  {short}  {plus} {minus}  {_one_line(c.subject)}")

    lines.append("")
    lines.append(f"{result.count} commits shown ({result.window.label})")
    lines.append(f"Total LoC: {_paint(f'+{result.insertions}', GREEN, color)} {_paint(f'-{result.deletions}', RED, color)}")
    return "\n".join(lines)


def render_warnings(warnings: Iterable[ScanWarning]) -> str:
    items = list(warnings)
    if not items:
        return ""
    lines = [f"Warnings ({len(items)}):"]
    lines.extend(f"- {w}" for w in items)
    return "\n".join(lines)


def empty_message(window: ScanWindow, *, all_authors: bool) -> str:
    if all_authors:
        return f"No commits found in {window.label}"
    return f"No commits found for your identity in {window.label} (try --all)"
