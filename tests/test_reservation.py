import logging
import threading
from datetime import timedelta

import pytest

from app import create_app
from conftest import TestConfig, at
from models import db
from models.booking import Booking, BookingStatus
from models.turf import Turf, TurfTimeSlot
from models.user import User
from services import store
from services.errors import AlreadyBooked, AlreadyPassed, InvalidInput, NotFound, TooSoon
from services.lifecycle import cancel_booking
from services.reservation import parse_booking_date, reserve, slot_availability
from utils.roles import ADMIN, CUSTOMER

SLOT = "9:00 AM - 10:00 AM"


def test_reserve_creates_confirmed_booking(turf, customer, day):
    booking = reserve(turf.id, customer.id, day + timedelta(days=1), SLOT, now=at(day, 12))

    assert booking.id is not None
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.turf_id == turf.id
    assert booking.user_id == customer.id
    assert booking.booking_date == day + timedelta(days=1)
    assert booking.rating is None
    assert booking.created_at is not None and booking.updated_at is not None


def test_second_reservation_for_same_tuple_conflicts(turf, customer, other_customer, day):
    tomorrow = day + timedelta(days=1)
    reserve(turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))

    with pytest.raises(AlreadyBooked) as exc:
        reserve(turf.id, other_customer.id, tomorrow, SLOT, now=at(day, 12))

    assert exc.value.status == 409
    assert exc.value.details["next_available"] == "6:00 AM - 7:00 AM"
    assert Booking.query.count() == 1


def test_same_slot_on_other_day_or_turf_is_independent(make_turf, turf, customer, day):
    other_turf = make_turf(name="Blue Arena")
    tomorrow = day + timedelta(days=1)
    reserve(turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))
    reserve(turf.id, customer.id, tomorrow + timedelta(days=1), SLOT, now=at(day, 12))
    reserve(other_turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))

    assert Booking.query.count() == 3


def test_canceled_booking_frees_the_slot(turf, customer, other_customer, day):
    tomorrow = day + timedelta(days=1)
    first = reserve(turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))
    cancel_booking(first.id, customer.id, CUSTOMER, now=at(day, 12))

    second = reserve(turf.id, other_customer.id, tomorrow, SLOT, now=at(day, 13))

    assert second.id != first.id
    assert second.status == BookingStatus.CONFIRMED
    assert db.session.get(Booking, first.id).status == BookingStatus.CANCELED


def test_savepoint_fallback_enforces_one_active_booking(turf, customer, other_customer, operator, day, monkeypatch):
    # dialects without ON CONFLICT go through the SAVEPOINT path
    monkeypatch.setattr(store, "_UPSERT_DIALECTS", {})
    tomorrow = day + timedelta(days=1)

    first = reserve(turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))
    with pytest.raises(AlreadyBooked):
        reserve(turf.id, other_customer.id, tomorrow, SLOT, now=at(day, 12))

    cancel_booking(first.id, operator.id, ADMIN, now=at(day, 12))
    second = reserve(turf.id, other_customer.id, tomorrow, SLOT, now=at(day, 13))

    assert second.id != first.id
    assert Booking.query.filter_by(turf_id=turf.id, status=BookingStatus.CONFIRMED).count() == 1


def test_conflict_is_logged_below_info(turf, customer, other_customer, day, caplog):
    tomorrow = day + timedelta(days=1)
    reserve(turf.id, customer.id, tomorrow, SLOT, now=at(day, 12))

    with caplog.at_level(logging.DEBUG, logger="services.reservation"):
        with pytest.raises(AlreadyBooked):
            reserve(turf.id, other_customer.id, tomorrow, SLOT, now=at(day, 12))

    held = [r for r in caplog.records if "already held" in r.getMessage()]
    assert held and all(r.levelno == logging.DEBUG for r in held)


def test_unknown_turf_is_not_found(customer, day):
    with pytest.raises(NotFound):
        reserve(999, customer.id, day, SLOT, now=at(day, 6))


def test_inactive_turf_is_not_found(make_turf, customer, day):
    closed = make_turf(is_active=False)
    with pytest.raises(NotFound):
        reserve(closed.id, customer.id, day, SLOT, now=at(day, 6))


def test_slot_not_offered_is_not_found(turf, customer, day):
    with pytest.raises(NotFound):
        reserve(turf.id, customer.id, day, "3:00 AM - 4:00 AM", now=at(day, 1))


def test_disabled_slot_is_not_found(turf, customer, day):
    slot = TurfTimeSlot.query.filter_by(turf_id=turf.id, label=SLOT).one()
    slot.enabled = False
    db.session.commit()

    with pytest.raises(NotFound):
        reserve(turf.id, customer.id, day + timedelta(days=1), SLOT, now=at(day, 6))


@pytest.mark.parametrize("bad_date", ["", "14/05/2030", "tomorrow", None])
def test_malformed_date_is_invalid_input(turf, customer, day, bad_date):
    with pytest.raises(InvalidInput):
        reserve(turf.id, customer.id, bad_date, SLOT, now=at(day, 6))


def test_past_date_is_invalid_input(turf, customer, day):
    with pytest.raises(InvalidInput):
        reserve(turf.id, customer.id, day - timedelta(days=1), SLOT, now=at(day, 6))


def test_missing_ids_are_invalid_input(turf, day):
    with pytest.raises(InvalidInput):
        reserve("abc", 1, day, SLOT, now=at(day, 6))
    with pytest.raises(InvalidInput):
        reserve(turf.id, True, day, SLOT, now=at(day, 6))


def test_fractional_ids_are_invalid_input(turf, customer, day):
    with pytest.raises(InvalidInput):
        reserve(turf.id + 0.9, customer.id, day + timedelta(days=1), SLOT, now=at(day, 6))

    # whole-number floats from JSON clients are accepted
    booking = reserve(float(turf.id), customer.id, day + timedelta(days=1), SLOT, now=at(day, 6))
    assert booking.turf_id == turf.id


def test_same_day_slot_too_soon_suggests_next_slot(turf, customer, day):
    with pytest.raises(TooSoon) as exc:
        reserve(turf.id, customer.id, day, SLOT, now=at(day, 8, 31))

    assert exc.value.details["next_available"] == "10:00 AM - 11:00 AM"
    assert Booking.query.count() == 0


def test_same_day_slot_already_passed(turf, customer, day):
    with pytest.raises(AlreadyPassed) as exc:
        reserve(turf.id, customer.id, day, SLOT, now=at(day, 9, 1))

    assert "09:00" in exc.value.message
    assert exc.value.details["next_available"] == "10:00 AM - 11:00 AM"


def test_same_day_slot_31_minutes_out_is_booked(turf, customer, day):
    booking = reserve(turf.id, customer.id, day, SLOT, now=at(day, 8, 29))
    assert booking.status == BookingStatus.CONFIRMED


def test_booking_date_accepts_iso_strings():
    assert parse_booking_date("2030-05-14").isoformat() == "2030-05-14"
    assert parse_booking_date("2030-05-14T18:30:00Z").isoformat() == "2030-05-14"


def test_slot_availability_flags(turf, customer, day):
    reserve(turf.id, customer.id, day, "6:00 PM - 7:00 PM", now=at(day, 8, 45))

    slots = {s["time_slot"]: s for s in slot_availability(turf.id, day.isoformat(), now=at(day, 8, 45))}

    assert slots["6:00 AM - 7:00 AM"]["bookable"] is False
    assert slots["6:00 AM - 7:00 AM"]["reason"] == "ALREADY_PASSED"
    assert slots[SLOT]["reason"] == "TOO_SOON"
    assert slots["10:00 AM - 11:00 AM"]["bookable"] is True
    assert slots["6:00 PM - 7:00 PM"]["booked"] is True
    assert slots["6:00 PM - 7:00 PM"]["bookable"] is False


class RaceConfig(TestConfig):
    __test__ = False


def test_concurrent_reservations_yield_exactly_one_booking(tmp_path, day):
    RaceConfig.SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"
    app = create_app(RaceConfig)
    workers = 8

    with app.app_context():
        turf = Turf(name="Race Turf", location="Lalitpur", price=1000)
        turf.time_slots = [TurfTimeSlot(label=SLOT, position=0)]
        users = [User(email=f"racer{i}@example.com") for i in range(workers)]
        db.session.add(turf)
        db.session.add_all(users)
        db.session.commit()
        turf_id = turf.id
        user_ids = [u.id for u in users]

    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt(user_id):
        with app.app_context():
            barrier.wait()
            try:
                booking = reserve(turf_id, user_id, day + timedelta(days=1), SLOT, now=at(day, 12))
                result = ("booked", booking.id)
            except AlreadyBooked:
                result = ("conflict", None)
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    try:
        assert len(outcomes) == workers
        assert sum(1 for kind, _ in outcomes if kind == "booked") == 1
        assert sum(1 for kind, _ in outcomes if kind == "conflict") == workers - 1
        with app.app_context():
            assert Booking.query.filter(Booking.status != BookingStatus.CANCELED).count() == 1
    finally:
        with app.app_context():
            db.drop_all()
            db.engine.dispose()
