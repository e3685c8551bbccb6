import logging
from datetime import date, datetime
from typing import Optional

from flask import current_app

from models import db
from models.booking import Booking, BookingStatus
from models.turf import Turf
from services import time_window
from services.errors import AlreadyBooked, AlreadyPassed, InvalidInput, NotFound, TooSoon
from services.store import insert_booking_if_absent
from utils.clock import local_now

logger = logging.getLogger(__name__)


def parse_booking_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            # accept "2026-10-20" as well as full ISO timestamps; time of day is dropped
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise InvalidInput("Invalid booking_date. Use YYYY-MM-DD")


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a positive integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput(f"{field} must be a positive integer")
        value = int(value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a positive integer") from None
    if number <= 0:
        raise InvalidInput(f"{field} must be a positive integer")
    return number


def _lead_minutes() -> int:
    return int(current_app.config.get("BOOKING_MIN_LEAD_MINUTES", time_window.MIN_LEAD_MINUTES))


def _held_slots(turf_id: int, booking_date: date) -> set:
    rows = db.session.execute(
        db.select(Booking.time_slot).where(
            Booking.turf_id == turf_id,
            Booking.booking_date == booking_date,
            Booking.status != BookingStatus.CANCELED,
        )
    ).scalars()
    return set(rows)


def get_active_turf(turf_id: int) -> Turf:
    turf = db.session.get(Turf, turf_id)
    if not turf or not turf.is_active:
        raise NotFound("Turf not found")
    return turf


def next_available_slot(turf: Turf, booking_date: date, now: datetime) -> Optional[str]:
    held = _held_slots(turf.id, booking_date)
    lead = _lead_minutes()
    for label in turf.enabled_slot_labels:
        if label in held:
            continue
        if time_window.can_book(now, booking_date, label, min_lead_minutes=lead):
            return label
    return None


def slot_availability(turf_id: int, booking_date, now: datetime = None) -> list:
    """Every enabled slot of a turf on a day, with held/bookable flags."""
    turf = get_active_turf(_positive_int(turf_id, "turf_id"))
    booking_date = parse_booking_date(booking_date)
    now = now or local_now()

    held = _held_slots(turf.id, booking_date)
    lead = _lead_minutes()
    out = []
    for label in turf.enabled_slot_labels:
        decision = time_window.can_book(now, booking_date, label, min_lead_minutes=lead)
        out.append({
            "time_slot": label,
            "booked": label in held,
            "bookable": label not in held and decision.allowed and booking_date >= now.date(),
            "reason": decision.reason,
        })
    return out


def reserve(turf_id, user_id, booking_date, time_slot, now: datetime = None) -> Booking:
    """
    Create a CONFIRMED booking for (turf, date, slot).

    Raises InvalidInput, NotFound, TooSoon, AlreadyPassed or AlreadyBooked.
    Under concurrent calls for the same tuple exactly one caller gets a
    Booking; the database arbitrates.
    """
    now = now or local_now()

    turf_id = _positive_int(turf_id, "turf_id")
    user_id = _positive_int(user_id, "user_id")
    booking_date = parse_booking_date(booking_date)
    time_slot = (time_slot or "").strip() if isinstance(time_slot, str) else ""
    if not time_slot:
        raise InvalidInput("time_slot required")
    if booking_date < now.date():
        raise InvalidInput("Booking date must be today or in the future")

    turf = get_active_turf(turf_id)
    if time_slot not in turf.enabled_slot_labels:
        raise NotFound("Time slot not offered by this turf")

    decision = time_window.can_book(now, booking_date, time_slot, min_lead_minutes=_lead_minutes())
    if not decision:
        suggestion = next_available_slot(turf, booking_date, now)
        if decision.reason == time_window.ALREADY_PASSED:
            raise AlreadyPassed(
                f"Cannot book slot at {decision.slot_start:%H:%M} as current time is {now:%H:%M}. "
                "Please book a future time slot.",
                next_available=suggestion,
            )
        raise TooSoon(
            f"This time slot starts too soon. Please book a slot that starts at least "
            f"{_lead_minutes()} minutes from now.",
            next_available=suggestion,
        )

    booking_id = insert_booking_if_absent(
        turf_id=turf_id,
        user_id=user_id,
        booking_date=booking_date,
        time_slot=time_slot,
    )
    if booking_id is None:
        logger.debug("Slot already held: turf=%s date=%s slot=%r", turf_id, booking_date, time_slot)
        raise AlreadyBooked("This slot is already booked", next_available=next_available_slot(turf, booking_date, now))

    logger.info("Booking %s created: turf=%s date=%s slot=%r user=%s",
                booking_id, turf_id, booking_date, time_slot, user_id)
    return db.session.get(Booking, booking_id)
