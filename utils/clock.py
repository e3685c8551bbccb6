from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "Asia/Kolkata"


def utcnow() -> datetime:
    # naive UTC, matching how timestamps are stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def booking_timezone() -> ZoneInfo:
    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BOOKING_TIMEZONE", DEFAULT_TIMEZONE)
    return ZoneInfo(name)


def local_now() -> datetime:
    """
    Wall-clock time at the turfs, as a naive datetime.
    Slot labels and booking dates are expressed in this clock.
    """
    return datetime.now(booking_timezone()).replace(tzinfo=None)
