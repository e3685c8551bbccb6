import re
from collections import namedtuple
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

# "6:00 AM", "6 am", "12:30PM"
_CLOCK = r"(\d{1,2})(?::(\d{2}))?\s*([AaPp][Mm])"
_SLOT_RE = re.compile(
    rf"^\s*{_CLOCK}\s*(?:(?:-|–|—|to)\s*{_CLOCK})?\s*$",
    re.IGNORECASE,
)

SlotTimes = namedtuple("SlotTimes", ["start", "end"])  # (hour, minute), end may be None


def _to_24h(hour_s: str, minute_s: Optional[str], meridiem: str) -> Optional[Tuple[int, int]]:
    hour = int(hour_s)
    minute = int(minute_s) if minute_s else 0
    if not 1 <= hour <= 12 or not 0 <= minute <= 59:
        return None

    meridiem = meridiem.upper()
    if meridiem == "AM" and hour == 12:
        hour = 0
    elif meridiem == "PM" and hour != 12:
        hour += 12
    return hour, minute


def parse_time_slot(label) -> Optional[SlotTimes]:
    """
    Parse a slot label like "6:00 AM - 7:00 AM" into 24h (hour, minute) pairs.

    Returns None when the label is not in the 12-hour AM/PM grammar; callers
    treat that as "no time restriction".
    """
    if not isinstance(label, str):
        return None
    m = _SLOT_RE.match(label)
    if not m:
        return None

    start = _to_24h(m.group(1), m.group(2), m.group(3))
    if start is None:
        return None

    end = None
    if m.group(4):
        end = _to_24h(m.group(4), m.group(5), m.group(6))
        if end is None:
            return None
    return SlotTimes(start=start, end=end)


def slot_start(slot_date: date, label) -> Optional[datetime]:
    parsed = parse_time_slot(label)
    if parsed is None:
        return None
    hour, minute = parsed.start
    return datetime.combine(slot_date, time(hour, minute))


def slot_bounds(slot_date: date, label, default_duration_minutes: int = 60):
    """
    (start, end) datetimes of a slot on a given day, or None if unparseable.

    A label without an end time lasts ``default_duration_minutes``; an end at
    or before the start ("11:00 PM - 12:00 AM") ends on the next day.
    """
    parsed = parse_time_slot(label)
    if parsed is None:
        return None

    start = datetime.combine(slot_date, time(*parsed.start))
    if parsed.end is None:
        return start, start + timedelta(minutes=default_duration_minutes)

    end = datetime.combine(slot_date, time(*parsed.end))
    if end <= start:
        end += timedelta(days=1)
    return start, end
