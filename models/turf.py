from models.db import db
from utils.clock import utcnow

class Turf(db.Model):
    __tablename__ = "turfs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price = db.Column(db.Integer, nullable=False, default=0)  # store smallest unit
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # derived from rated, completed bookings; written only by services.ratings
    average_rating = db.Column(db.Float, nullable=False, default=0.0)
    total_ratings = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    time_slots = db.relationship(
        "TurfTimeSlot",
        back_populates="turf",
        order_by="TurfTimeSlot.position",
        cascade="all, delete-orphan",
    )

    @property
    def enabled_slot_labels(self) -> list:
        return [s.label for s in self.time_slots if s.enabled]


class TurfTimeSlot(db.Model):
    __tablename__ = "turf_time_slots"

    id = db.Column(db.Integer, primary_key=True)
    turf_id = db.Column(db.Integer, db.ForeignKey("turfs.id"), nullable=False, index=True)
    label = db.Column(db.String(40), nullable=False)  # e.g. "6:00 AM - 7:00 AM"
    enabled = db.Column(db.Boolean, default=True, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    turf = db.relationship("Turf", back_populates="time_slots")

    __table_args__ = (
        db.UniqueConstraint("turf_id", "label", name="uq_turf_slot_label"),
    )
