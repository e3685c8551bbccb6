from flask import Blueprint, request, jsonify, g

from models.booking import BookingStatus
from services.lifecycle import cancel_booking, get_booking, list_bookings_for_user, rate_booking
from services.reservation import reserve
from utils.auth_context import login_required
from utils.audit import log_event
from utils.roles import actor_role, is_operator_role

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


# ---------- CUSTOMERS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    turf_id = data.get("turf_id")
    booking_date = data.get("booking_date")
    time_slot = data.get("time_slot")
    if not turf_id or not booking_date or not time_slot:
        return jsonify(error="turf_id, booking_date and time_slot are required", code="InvalidInput"), 400

    booking = reserve(turf_id, g.user.id, booking_date, time_slot)

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"turf_id": booking.turf_id, "time_slot": booking.time_slot})
    return jsonify(booking.to_dict()), 201


# ---------- CUSTOMERS: view my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    status = (request.args.get("status") or "").strip().upper() or None
    if status and status not in BookingStatus.ALL:
        return jsonify(error="Invalid status", code="InvalidInput"), 400

    rows = list_bookings_for_user(g.user.id, status=status)
    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def booking_detail(booking_id: int):
    booking = get_booking(booking_id)
    if booking.user_id != g.user.id and not is_operator_role(g.user.roles):
        # don't leak other customers' bookings
        return jsonify(error="Booking not found", code="NotFound"), 404
    return jsonify(booking.to_dict()), 200


# ---------- CUSTOMERS: cancel booking (grace window) ----------
@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    booking = cancel_booking(booking_id, g.user.id, actor_role(g.user), reason=reason)

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"reason": reason})
    return jsonify(booking.to_dict()), 200


# ---------- CUSTOMERS: rate a completed booking ----------
@booking_bp.post("/<int:booking_id>/rating")
@login_required
def rate(booking_id: int):
    data = request.get_json(silent=True) or {}

    booking = rate_booking(booking_id, g.user.id, data.get("rating"), data.get("review"))

    log_event("BOOKING_RATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"rating": booking.rating})
    return jsonify(booking.to_dict()), 200
