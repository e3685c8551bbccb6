"""
Booking state machine.

    CONFIRMED --complete--> COMPLETED   (terminal, rateable)
    CONFIRMED --cancel----> CANCELED    (terminal)

Every transition is a conditional update on ``status = CONFIRMED``. When the
completion sweep and a cancellation race, whichever commits first wins and
the other reports the winner's state.
"""
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from services import time_window
from services.errors import (
    AlreadyCanceled,
    AlreadyCompleted,
    AlreadyStarted,
    CannotCompleteCanceled,
    Forbidden,
    GraceExpired,
    InvalidRating,
    NotCompleted,
    NotFound,
)
from services.ratings import recompute_turf_rating
from services.store import current_status, set_rating_if_completed, transition_status
from utils.clock import local_now, utcnow
from utils.roles import is_operator_role

logger = logging.getLogger(__name__)

RATING_MIN = 1
RATING_MAX = 5


def get_booking(booking_id) -> Booking:
    booking = db.session.get(Booking, booking_id) if booking_id else None
    if not booking:
        raise NotFound("Booking not found")
    return booking


def _raise_for_terminal(status: str, completing: bool = False):
    if status == BookingStatus.CANCELED:
        if completing:
            raise CannotCompleteCanceled()
        raise AlreadyCanceled()
    if status == BookingStatus.COMPLETED:
        raise AlreadyCompleted()


def cancel_booking(booking_id, actor_id, actor_role, reason: str = None, now: datetime = None) -> Booking:
    """
    Cancel a CONFIRMED booking.

    Customers may only cancel their own bookings and only inside the
    cancellation window. Operators (ADMIN/SUPER_ADMIN) bypass the window.
    """
    now = now or local_now()
    booking = get_booking(booking_id)
    operator = is_operator_role(actor_role)

    if not operator and booking.user_id != actor_id:
        raise Forbidden("You can only cancel your own bookings")

    _raise_for_terminal(booking.status)

    if not operator:
        grace = int(current_app.config.get("CANCEL_GRACE_MINUTES", time_window.CANCEL_GRACE_MINUTES))
        decision = time_window.can_cancel(now, booking.booking_date, booking.time_slot, grace_minutes=grace)
        if decision.reason == time_window.ALREADY_STARTED:
            raise AlreadyStarted()
        if decision.reason == time_window.GRACE_EXPIRED:
            raise GraceExpired(f"Cannot cancel booking after {grace} minutes from slot start time")

    changed = transition_status(
        booking.id,
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELED,
        cancelled_at=utcnow(),
        cancelled_by=actor_id,
        cancel_reason=reason[:120] if reason else None,
    )
    if not changed:
        _raise_for_terminal(current_status(booking.id))

    logger.info("Booking %s canceled by %s %s", booking.id, "operator" if operator else "customer", actor_id)
    return get_booking(booking.id)


def complete_booking(booking_id) -> Booking:
    booking = get_booking(booking_id)
    _raise_for_terminal(booking.status, completing=True)

    if not transition_status(booking.id, BookingStatus.CONFIRMED, BookingStatus.COMPLETED, completed_at=utcnow()):
        _raise_for_terminal(current_status(booking.id), completing=True)

    logger.info("Booking %s completed", booking.id)
    return get_booking(booking.id)


def _validate_rating(rating, review):
    if isinstance(rating, bool) or not isinstance(rating, int):
        # JSON clients send 4.0 sometimes; accept integral floats only
        if isinstance(rating, float) and rating.is_integer():
            rating = int(rating)
        else:
            raise InvalidRating()
    if not RATING_MIN <= rating <= RATING_MAX:
        raise InvalidRating()

    if review is not None:
        if not isinstance(review, str):
            raise InvalidRating("Review must be text")
        review = review.strip() or None
        max_len = int(current_app.config.get("REVIEW_MAX_LENGTH", 500))
        if review and len(review) > max_len:
            raise InvalidRating(f"Review must be at most {max_len} characters")
    return rating, review


def rate_booking(booking_id, actor_id, rating, review=None) -> Booking:
    """
    Record (or overwrite) the owner's rating of a completed booking, then
    recompute the turf aggregate. A failed recompute does not undo the rating.
    """
    rating, review = _validate_rating(rating, review)
    booking = get_booking(booking_id)

    if booking.user_id != actor_id:
        raise Forbidden("You can only rate your own bookings")
    if booking.status != BookingStatus.COMPLETED:
        raise NotCompleted()

    previous = booking.rating
    if not set_rating_if_completed(booking.id, rating, review):
        raise NotCompleted()

    logger.info("Rating submitted: booking=%s rating=%s previous=%s", booking.id, rating, previous)
    try:
        recompute_turf_rating(booking.turf_id)
    except SQLAlchemyError:
        # already queued for retry by the aggregator
        logger.warning("Rating aggregate for turf %s lagging behind booking %s", booking.turf_id, booking.id)
    return get_booking(booking.id)


def list_bookings_for_user(user_id, status: str = None) -> list:
    q = Booking.query.filter_by(user_id=user_id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Booking.booking_date.desc(), Booking.created_at.desc()).all()


def list_bookings(status: str = None, turf_id=None, booking_date=None, limit: int = 200) -> list:
    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    if turf_id:
        q = q.filter(Booking.turf_id == turf_id)
    if booking_date:
        q = q.filter(Booking.booking_date == booking_date)
    return q.order_by(Booking.created_at.desc()).limit(limit).all()
