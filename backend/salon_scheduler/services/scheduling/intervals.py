# backend/salon_scheduler/services/scheduling/intervals.py
"""
Interval arithmetic shared by every scheduling check.

`overlaps` is the single overlap predicate of the engine. Slot filtering,
break filtering, conflict detection and staff eligibility all go through
it, with intervals treated as half-open [start, end).
"""

from datetime import date, datetime, timedelta
from typing import Optional


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    """
    True iff [a_start, a_end) and [b_start, b_end) share an instant.

    Touching intervals (a_end == b_start) do not overlap.
    Works for any ordered type: minutes (int) or datetimes.
    """
    return a_start < b_end and b_start < a_end


def contains(outer_start, outer_end, inner_start, inner_end) -> bool:
    """True iff [inner_start, inner_end) lies inside [outer_start, outer_end)."""
    return outer_start <= inner_start and inner_end <= outer_end


def minutes_since_midnight(t: datetime, reference_date: Optional[date] = None) -> int:
    """
    Minutes of `t` within its local day.

    With `reference_date`, minutes are counted from that day's midnight, so
    a timestamp on the following day yields a value >= 1440.
    """
    if reference_date is None:
        return t.hour * 60 + t.minute
    delta = t - datetime.combine(reference_date, datetime.min.time())
    return int(delta.total_seconds() // 60)


def combine_minutes(day: date, minutes: int) -> datetime:
    """Absolute local timestamp for `minutes` after midnight of `day`."""
    return datetime.combine(day, datetime.min.time()) + timedelta(minutes=minutes)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local [midnight, next midnight) of `day`."""
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)
