"""Performance window and ISO-date helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

from updown.data.rows import parse_iso_date

PERFORMANCE_START = date(2025, 1, 1)


@dataclass(frozen=True)
class PerformanceWindow:
    start: date
    end: date

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()

    def contains(self, iso_date: str) -> bool:
        return self.start_iso <= iso_date <= self.end_iso

    def iter_days(self) -> Iterator[date]:
        day = self.start
        while day <= self.end:
            yield day
            day += timedelta(days=1)


def performance_window(start: date = PERFORMANCE_START, today: date | None = None) -> PerformanceWindow:
    """Window from the fixed start date through the end of the current UTC day."""
    end = today or datetime.now(timezone.utc).date()
    return PerformanceWindow(start=start, end=end)


def day_diff(start_iso: str, end_iso: str) -> float:
    start = parse_iso_date(start_iso)
    end = parse_iso_date(end_iso)
    if start is None or end is None:
        return math.nan
    return float(max((end - start).days, 0))


def span_days(start_iso: str, end_iso: str) -> float:
    """Calendar days between two dates, floored at 1 (1 when either is invalid)."""
    start = parse_iso_date(start_iso)
    end = parse_iso_date(end_iso)
    if start is None or end is None:
        return 1.0
    return float(max((end - start).days, 1))


def month_key(iso_date: str) -> str:
    return str(iso_date or "")[:7]
