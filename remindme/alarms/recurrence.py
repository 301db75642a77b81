"""Next-occurrence calculation for weekday-recurring alarms.

The platform timer only fires once, so a recurring alarm is kept alive by
computing its next due instant every time it fires and arming a fresh one-shot
timer for it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, timezone

from .errors import InvalidDefinition

# Minimum lead time for "today" to count; keeps the alarm that is currently
# firing from being re-armed for the same minute.
SAFETY_MARGIN = timedelta(seconds=10)

# Offsets 0..7 inclusive so today's weekday is reachable again next week.
SCAN_DAYS = 7

DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]

DAY_NAME_MAP = {
    "mon": 0,
    "monday": 0,
    "tue": 1,
    "tues": 1,
    "tuesday": 1,
    "wed": 2,
    "wednesday": 2,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "thursday": 3,
    "fri": 4,
    "friday": 4,
    "sat": 5,
    "saturday": 5,
    "sun": 6,
    "sunday": 6,
}

WEEKDAY_SET = {0, 1, 2, 3, 4}
WEEKEND_SET = {5, 6}


def weekday_index(dt: datetime) -> int:
    """Monday=0 .. Sunday=6 index of a datetime."""
    iso = dt.isoweekday()
    if iso == 7:
        return 6
    return iso - 1


def calendar_weekday_to_index(value: int) -> int:
    """Map a Sunday-first calendar weekday (Sunday=1 .. Saturday=7) to Monday=0 .. Sunday=6."""
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 7:
        raise InvalidDefinition(f"calendar weekday must be 1..7, got {value!r}")
    if value == 1:
        return 6
    return value - 2


def compute_next_occurrence(
    selected_weekdays: Iterable[int],
    hour: int,
    minute: int,
    now: datetime,
    *,
    safety_margin: timedelta = SAFETY_MARGIN,
) -> datetime | None:
    """Earliest instant after ``now + safety_margin`` on a selected weekday at hour:minute.

    Candidates are built on ``now``'s calendar date for day offsets 0..7.
    Each keeps hour:minute on the local wall clock, including across a
    daylight-saving change. Returns None when the weekday set is empty or
    nothing in the window qualifies.
    """
    days = set(selected_weekdays)
    if not days:
        return None
    earliest = now + safety_margin
    for offset in range(0, SCAN_DAYS + 1):
        day = now.date() + timedelta(days=offset)
        candidate = _wall_time(day, hour, minute, now)
        if weekday_index(candidate) not in days:
            continue
        if candidate > earliest:
            return candidate
    return None


def _wall_time(day: date, hour: int, minute: int, now: datetime) -> datetime:
    naive = datetime.combine(day, time(hour, minute))
    tz = now.tzinfo
    if tz is None:
        return naive
    if isinstance(tz, timezone) and now.utcoffset() == now.astimezone().utcoffset():
        # Fixed offset from local_now(); the offset for another date can differ.
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def parse_day_tokens(value: str | None) -> list[int] | None:
    """Parse textual weekday sets ("weekdays", "weekend", "daily", "mon,wed,fri")."""
    if not value:
        return None
    lowered = value.strip().lower()
    condensed = lowered.replace(" ", "")
    if lowered in {"single", "once", "next"}:
        return None
    if lowered in {"weekdays", "weekday"}:
        return sorted(WEEKDAY_SET)
    if lowered in {"weekend", "weekends"}:
        return sorted(WEEKEND_SET)
    if condensed in {"everyday", "alldays"} or lowered in {"daily", "all"}:
        return list(range(7))
    days: set[int] = set()
    for chunk in re.split(r"[,\s]+", lowered):
        chunk = chunk.strip()
        if not chunk:
            continue
        idx = DAY_NAME_MAP.get(chunk, DAY_NAME_MAP.get(chunk[:3]))
        if idx is None:
            continue
        days.add(idx)
    if not days:
        return None
    return sorted(days)


def day_indexes_to_names(indexes: Iterable[int] | None) -> list[str]:
    if not indexes:
        return []
    return [DAY_NAMES[i % 7] for i in indexes]
