"""
Atomic store primitives used by the booking engine.

``insert_booking_if_absent`` and ``transition_status`` are the only places
that write booking status. Both are single statements whose outcome is
decided by the database, so concurrent request threads and the completion
sweep never need an in-process lock.
"""
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import ACTIVE_BOOKING_PREDICATE, Booking, BookingStatus

logger = logging.getLogger(__name__)

_SLOT_KEY = ("turf_id", "booking_date", "time_slot")
_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def insert_booking_if_absent(**values) -> Optional[int]:
    """
    Insert a CONFIRMED booking unless a live booking holds the same
    (turf, date, slot). Returns the new id, or None when the tuple is taken.

    On SQLite/PostgreSQL this is one ``INSERT ... ON CONFLICT DO NOTHING
    RETURNING id`` against the partial unique index. Other dialects use a
    SAVEPOINT so the unique violation only unwinds this insert.
    """
    values.setdefault("status", BookingStatus.CONFIRMED)
    table = Booking.__table__

    dialect = db.session.get_bind().dialect.name
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is not None:
        stmt = (
            insert_fn(table)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=list(_SLOT_KEY),
                index_where=db.text(ACTIVE_BOOKING_PREDICATE),
            )
            .returning(table.c.id)
        )
        new_id = db.session.execute(stmt).scalar_one_or_none()
        db.session.commit()
        return new_id

    booking = Booking(**values)
    try:
        with db.session.begin_nested():
            db.session.add(booking)
    except IntegrityError:
        db.session.commit()
        return None
    db.session.commit()
    return booking.id


def transition_status(booking_id: int, from_status: str, to_status: str, **extra) -> bool:
    """
    Move a booking from ``from_status`` to ``to_status`` iff it is still in
    ``from_status``. Returns False when another writer got there first.
    """
    stmt = (
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == from_status)
        .values(status=to_status, **extra)
        .execution_options(synchronize_session=False)
    )
    changed = db.session.execute(stmt).rowcount == 1
    db.session.commit()
    if not changed:
        logger.debug("Booking %s not in %s; %s transition skipped", booking_id, from_status, to_status)
    return changed


def set_rating_if_completed(booking_id: int, rating: int, review) -> bool:
    stmt = (
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == BookingStatus.COMPLETED)
        .values(rating=rating, review=review)
        .execution_options(synchronize_session=False)
    )
    changed = db.session.execute(stmt).rowcount == 1
    db.session.commit()
    return changed


def current_status(booking_id: int) -> Optional[str]:
    return db.session.execute(
        db.select(Booking.status).where(Booking.id == booking_id)
    ).scalar_one_or_none()
