"""
When a slot may be booked or canceled, relative to "now".

Pure functions: no store, no app context. Thresholds default to the
production policy (30 minute lead time, 5 minute cancellation grace) and
are overridable so the engine can feed them from config.
"""
from collections import namedtuple
from datetime import date, datetime, timedelta

from services.timeslots import slot_start

MIN_LEAD_MINUTES = 30
CANCEL_GRACE_MINUTES = 5

ALREADY_PASSED = "ALREADY_PASSED"
TOO_SOON = "TOO_SOON"
ALREADY_STARTED = "ALREADY_STARTED"
GRACE_EXPIRED = "GRACE_EXPIRED"


class WindowDecision(namedtuple("WindowDecision", ["allowed", "reason", "slot_start"])):
    __slots__ = ()

    def __bool__(self):
        return self.allowed


def _allow(start=None) -> WindowDecision:
    return WindowDecision(True, None, start)


def _deny(reason: str, start=None) -> WindowDecision:
    return WindowDecision(False, reason, start)


def can_book(now: datetime, slot_date: date, time_slot: str,
             min_lead_minutes: int = MIN_LEAD_MINUTES) -> WindowDecision:
    # Only same-day bookings are time restricted
    if slot_date != now.date():
        return _allow()

    start = slot_start(slot_date, time_slot)
    if start is None:
        return _allow()

    if now > start:
        return _deny(ALREADY_PASSED, start)
    if start < now + timedelta(minutes=min_lead_minutes):
        return _deny(TOO_SOON, start)
    return _allow(start)


def can_cancel(now: datetime, slot_date: date, time_slot: str,
               grace_minutes: int = CANCEL_GRACE_MINUTES) -> WindowDecision:
    today = now.date()
    if slot_date < today:
        return _deny(ALREADY_STARTED)
    if slot_date > today:
        return _allow()

    start = slot_start(slot_date, time_slot)
    if start is None:
        return _allow()

    if now < start + timedelta(minutes=grace_minutes):
        return _allow(start)
    return _deny(GRACE_EXPIRED, start)
