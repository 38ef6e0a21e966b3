from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence, Union

from core.errors import SchedulingConflict

DAY_TO_INDEX = {"Mon": 0, "Tue": 1, "Wed": 2, "Thu": 3, "Fri": 4, "Sat": 5, "Sun": 6}
INDEX_TO_DAY = {v: k for k, v in DAY_TO_INDEX.items()}

WeekdayEntry = Union[str, int]


def _offset_for(entry: WeekdayEntry, start_date: date) -> int:
    """Resolve a weekday name or a 0..6 day offset to an offset from ``start_date``."""
    if isinstance(entry, bool):
        raise SchedulingConflict(f"Invalid weekday entry: {entry!r}")
    if isinstance(entry, int):
        if not 0 <= entry <= 6:
            raise SchedulingConflict(f"Day offset must be within 0..6, got {entry}")
        return entry
    key = str(entry or "").strip()[:3].title()
    idx = DAY_TO_INDEX.get(key)
    if idx is None:
        raise SchedulingConflict(f"Unknown weekday: {entry!r}")
    return (idx - start_date.weekday()) % 7


def normalize_weekday_offsets(entries: Sequence[WeekdayEntry], start_date: date) -> list[int]:
    """Resolve entries to day offsets in chronological order, rejecting duplicates."""
    offsets = [_offset_for(e, start_date) for e in entries]
    if len(set(offsets)) != len(offsets):
        dupes = sorted({INDEX_TO_DAY[(start_date.weekday() + o) % 7] for o in offsets if offsets.count(o) > 1})
        raise SchedulingConflict(f"Weekday offsets contain duplicates: {dupes}")
    return sorted(offsets)


def check_schedule_preconditions(
    offsets: Sequence[int],
    workouts_per_week: int,
    start_date: date,
    today: date,
    grace_days: int,
) -> None:
    if len(offsets) != workouts_per_week:
        raise SchedulingConflict(
            f"Template expects {workouts_per_week} workouts per week, got {len(offsets)} weekday offsets"
        )
    earliest = today - timedelta(days=max(0, grace_days))
    if start_date < earliest:
        raise SchedulingConflict(f"start_date {start_date.isoformat()} is before {earliest.isoformat()}")


def week_dates(start_date: date, week_index: int, offsets: Sequence[int]) -> list[date]:
    """Calendar dates for a 1-based program week, in chronological order."""
    week_start = start_date + timedelta(days=7 * (week_index - 1))
    return [week_start + timedelta(days=o) for o in sorted(offsets)]
