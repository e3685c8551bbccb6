"""
Turf rating aggregate.

``average_rating``/``total_ratings`` are always recomputed from scratch over
the turf's rated, completed bookings. Never patch them incrementally: the
full scan is what keeps the aggregate correct after concurrent or missed
updates.
"""
import logging
import threading
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from models.turf import Turf
from services.errors import NotFound

logger = logging.getLogger(__name__)

# turfs whose last recompute failed; drained by the completion sweep
_pending = set()
_pending_lock = threading.Lock()


def _mark_pending(turf_id: int):
    with _pending_lock:
        _pending.add(turf_id)


def _clear_pending(turf_id: int):
    with _pending_lock:
        _pending.discard(turf_id)


def pending_turf_ids() -> list:
    with _pending_lock:
        return sorted(_pending)


def average_of(ratings) -> float:
    ratings = list(ratings)
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _rated_completed(turf_id: int):
    return db.select(Booking.rating).where(
        Booking.turf_id == turf_id,
        Booking.status == BookingStatus.COMPLETED,
        Booking.rating.is_not(None),
    )


def _recompute_once(turf_id: int):
    ratings = db.session.execute(_rated_completed(turf_id)).scalars().all()
    average, count = average_of(ratings), len(ratings)

    result = db.session.execute(
        update(Turf)
        .where(Turf.id == turf_id)
        .values(average_rating=average, total_ratings=count)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise NotFound("Turf not found")
    db.session.commit()
    return average, count


def recompute_turf_rating(turf_id: int, attempts: int = None):
    """
    Recompute and store a turf's (average_rating, total_ratings).

    Store errors are retried; if every attempt fails the turf is queued for
    the next completion sweep and the last error is re-raised.
    """
    attempts = attempts or int(current_app.config.get("RATING_RECOMPUTE_ATTEMPTS", 3))
    for attempt in range(1, attempts + 1):
        try:
            average, count = _recompute_once(turf_id)
        except SQLAlchemyError:
            db.session.rollback()
            if attempt < attempts:
                logger.warning("Rating recompute for turf %s failed (attempt %s/%s), retrying",
                               turf_id, attempt, attempts)
                continue
            _mark_pending(turf_id)
            logger.exception("Rating recompute for turf %s failed; queued for next sweep", turf_id)
            raise
        _clear_pending(turf_id)
        logger.info("Updated turf %s with average rating %s from %s ratings", turf_id, average, count)
        return average, count


def recompute_all_turf_ratings():
    """Recompute every turf. Returns (updated_count, error_count)."""
    turf_ids = db.session.execute(db.select(Turf.id).order_by(Turf.id)).scalars().all()
    updated = errors = 0
    for turf_id in turf_ids:
        try:
            recompute_turf_rating(turf_id)
            updated += 1
        except SQLAlchemyError:
            errors += 1
    logger.info("Recalculated ratings for %s turfs (%s errors)", updated, errors)
    return updated, errors


def retry_pending_recomputes() -> int:
    done = 0
    for turf_id in pending_turf_ids():
        try:
            recompute_turf_rating(turf_id)
            done += 1
        except NotFound:
            _clear_pending(turf_id)
        except SQLAlchemyError:
            pass  # stays pending, logged by recompute_turf_rating
    return done


def rating_stats(turf_id: int) -> dict:
    turf = db.session.get(Turf, turf_id)
    if not turf:
        raise NotFound("Turf not found")

    rows = (
        Booking.query
        .filter(
            Booking.turf_id == turf_id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.rating.is_not(None),
        )
        .order_by(Booking.updated_at.desc())
        .all()
    )

    distribution = {str(i): 0 for i in range(1, 6)}
    for b in rows:
        distribution[str(b.rating)] += 1

    return {
        "turf_id": turf_id,
        "total_ratings": len(rows),
        "average_rating": average_of(b.rating for b in rows),
        "rating_distribution": distribution,
        "recent_ratings": [
            {
                "booking_id": b.id,
                "user_id": b.user_id,
                "rating": b.rating,
                "review": b.review,
                "rated_at": b.updated_at.isoformat(),
            }
            for b in rows[:10]
        ],
    }
