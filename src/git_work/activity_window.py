from __future__ import annotations

import dataclasses
import datetime as dt
import logging

log = logging.getLogger(__name__)

DEFAULT_DAYS = 7


def _resolve_now(now: dt.datetime | None) -> tuple[dt.datetime, dt.tzinfo | None]:
    # Without an explicit "now", midnights follow the system zone rules (DST).
    if now is None:
        return dt.datetime.now().astimezone(), None
    if now.tzinfo is None:
        return now.astimezone(), None
    return now, now.tzinfo


def _local_midnight(day: dt.date, tz: dt.tzinfo | None) -> dt.datetime:
    naive = dt.datetime(day.year, day.month, day.day)
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


@dataclasses.dataclass(frozen=True)
class ScanWindow:
    start: dt.datetime  # inclusive, timezone-aware
    limit: int | None = None
    label: str = ""

    def contains(self, when: dt.datetime) -> bool:
        return when >= self.start

    @classmethod
    def rolling_days(cls, days: int, *, now: dt.datetime | None = None, limit: int | None = None) -> ScanWindow:
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        now, _ = _resolve_now(now)
        return cls(start=now - dt.timedelta(days=days), limit=limit, label=f"last {days} days")

    @classmethod
    def since_today(cls, *, now: dt.datetime | None = None, limit: int | None = None) -> ScanWindow:
        now, tz = _resolve_now(now)
        return cls(start=_local_midnight(now.date(), tz), limit=limit, label="today")

    @classmethod
    def since_month_start(cls, *, now: dt.datetime | None = None, limit: int | None = None) -> ScanWindow:
        now, tz = _resolve_now(now)
        first = dt.date(now.year, now.month, 1)
        return cls(start=_local_midnight(first, tz), limit=limit, label="this month")

    @classmethod
    def since_last_month_start(cls, *, now: dt.datetime | None = None, limit: int | None = None) -> ScanWindow:
        now, tz = _resolve_now(now)
        if now.month == 1:
            first = dt.date(now.year - 1, 12, 1)
        else:
            first = dt.date(now.year, now.month - 1, 1)
        return cls(start=_local_midnight(first, tz), limit=limit, label="since last month")

    @classmethod
    def from_flags(
        cls,
        *,
        days: int | None = None,
        today: bool = False,
        month: bool = False,
        last_month: bool = False,
        limit: int | None = None,
        now: dt.datetime | None = None,
    ) -> ScanWindow:
        """
        Pick the window for a set of CLI flags. Flags may be combined; the
        most specific one wins: today, then last month, then month, then days.
        """
        given = [name for name, on in (("--today", today), ("--last-month", last_month), ("--month", month), ("--days", days is not None)) if on]
        if len(given) > 1:
            log.debug("several window flags given (%s); using %s", ", ".join(given), given[0])
        if today:
            return cls.since_today(now=now, limit=limit)
        if last_month:
            return cls.since_last_month_start(now=now, limit=limit)
        if month:
            return cls.since_month_start(now=now, limit=limit)
        return cls.rolling_days(DEFAULT_DAYS if days is None else days, now=now, limit=limit)
