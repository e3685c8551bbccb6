from datetime import timedelta

from conftest import at
from services.time_window import (
    ALREADY_PASSED,
    ALREADY_STARTED,
    GRACE_EXPIRED,
    TOO_SOON,
    can_book,
    can_cancel,
)

SLOT = "9:00 AM - 10:00 AM"


def test_future_day_is_always_bookable(day):
    decision = can_book(at(day, 23, 59), day + timedelta(days=1), "12:00 AM - 1:00 AM")
    assert decision.allowed
    assert decision.reason is None


def test_slot_starting_in_29_minutes_is_too_soon(day):
    decision = can_book(at(day, 8, 31), day, SLOT)
    assert not decision
    assert decision.reason == TOO_SOON


def test_slot_starting_in_31_minutes_is_allowed(day):
    assert can_book(at(day, 8, 29), day, SLOT).allowed


def test_slot_starting_in_exactly_30_minutes_is_allowed(day):
    assert can_book(at(day, 8, 30), day, SLOT).allowed


def test_slot_started_a_minute_ago_has_passed(day):
    decision = can_book(at(day, 9, 1), day, SLOT)
    assert decision.reason == ALREADY_PASSED
    assert decision.slot_start == at(day, 9, 0)


def test_slot_starting_now_is_too_soon_not_passed(day):
    assert can_book(at(day, 9, 0), day, SLOT).reason == TOO_SOON


def test_lead_time_is_configurable(day):
    assert can_book(at(day, 8, 31), day, SLOT, min_lead_minutes=15).allowed


def test_unparseable_label_never_blocks_booking(day):
    assert can_book(at(day, 23, 0), day, "Morning session").allowed


def test_cancel_inside_grace_period(day):
    assert can_cancel(at(day, 9, 4, 59), day, SLOT).allowed


def test_cancel_after_grace_period(day):
    decision = can_cancel(at(day, 9, 5, 1), day, SLOT)
    assert decision.reason == GRACE_EXPIRED


def test_cancel_exactly_at_grace_end_is_denied(day):
    assert can_cancel(at(day, 9, 5), day, SLOT).reason == GRACE_EXPIRED


def test_cancel_future_day_always_allowed(day):
    assert can_cancel(at(day, 23, 59), day + timedelta(days=1), "12:00 AM - 1:00 AM").allowed


def test_cancel_past_day_already_started(day):
    decision = can_cancel(at(day, 0, 1), day - timedelta(days=1), "11:00 PM - 12:00 AM")
    assert decision.reason == ALREADY_STARTED


def test_cancel_unparseable_label_same_day_allowed(day):
    assert can_cancel(at(day, 23, 0), day, "Evening").allowed
