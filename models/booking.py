from models.db import db
from utils.clock import utcnow


class BookingStatus:
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"

    ALL = (CONFIRMED, COMPLETED, CANCELED)
    TERMINAL = (COMPLETED, CANCELED)


# Rows matching this predicate hold their (turf, date, slot) tuple.
# Used verbatim by the partial index and by the ON CONFLICT target.
ACTIVE_BOOKING_PREDICATE = "status != 'CANCELED'"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    turf_id = db.Column(db.Integer, db.ForeignKey("turfs.id"), nullable=False, index=True)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    time_slot = db.Column(db.String(40), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.CONFIRMED, index=True)
    # status values: CONFIRMED, COMPLETED, CANCELED

    rating = db.Column(db.Integer, nullable=True)
    review = db.Column(db.String(500), nullable=True)

    completed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # Hard business-rule: one live booking per turf/date/slot. Canceled rows free the tuple.
        db.Index(
            "uq_booking_active_slot",
            "turf_id", "booking_date", "time_slot",
            unique=True,
            sqlite_where=db.text(ACTIVE_BOOKING_PREDICATE),
            postgresql_where=db.text(ACTIVE_BOOKING_PREDICATE),
        ),
        db.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_booking_rating_range"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "turf_id": self.turf_id,
            "booking_date": self.booking_date.isoformat(),
            "time_slot": self.time_slot,
            "status": self.status,
            "rating": self.rating,
            "review": self.review,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancel_reason": self.cancel_reason,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
