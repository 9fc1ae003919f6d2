"""Interval arithmetic behind attendance conflict detection.

Intervals are half-open: two windows that only share a boundary instant do not
overlap. All instants are aware datetimes; calendar-day boundaries are taken
in the zone passed by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Iterable, List, Optional, Tuple

from meetup.utils.datetimes import ensure_utc


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class ScheduledItem:
    """An activity as seen by the detector; ``end`` may be None."""

    activity_id: str
    title: str
    meeting_title: str
    start: datetime
    end: Optional[datetime] = None


def local_day(instant: datetime, zone: tzinfo) -> Interval:
    """Return the calendar day containing ``instant`` in ``zone`` as a UTC interval."""
    local = ensure_utc(instant).astimezone(zone)
    day_start = datetime.combine(local.date(), time.min, tzinfo=zone)
    next_day = datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=zone)
    return Interval(ensure_utc(day_start), ensure_utc(next_day))


def candidate_window(
    start: datetime, end: Optional[datetime], default_duration: timedelta
) -> Interval:
    """Window claimed by the activity being joined."""
    start = ensure_utc(start)
    return Interval(start, ensure_utc(end) if end else start + default_duration)


def occupied_window(start: datetime, end: Optional[datetime], zone: tzinfo) -> Interval:
    """Window held by an activity already attended; open-ended ones block their whole day."""
    if end is None:
        return local_day(start, zone)
    return Interval(ensure_utc(start), ensure_utc(end))


def find_conflicts(
    candidate: Interval,
    existing: Iterable[ScheduledItem],
    zone: tzinfo,
) -> List[ScheduledItem]:
    conflicts = [
        item
        for item in existing
        if occupied_window(item.start, item.end, zone).overlaps(candidate)
    ]
    conflicts.sort(key=lambda item: (ensure_utc(item.start), item.activity_id))
    return conflicts


def month_range(now: datetime, zone: tzinfo) -> Tuple[datetime, datetime]:
    """First and last instant of the calendar month containing ``now``."""
    local = ensure_utc(now).astimezone(zone)
    first = datetime.combine(local.date().replace(day=1), time.min, tzinfo=zone)
    if first.month == 12:
        following = first.replace(year=first.year + 1, month=1)
    else:
        following = first.replace(month=first.month + 1)
    return ensure_utc(first), ensure_utc(following) - timedelta(microseconds=1)
