from flask import Blueprint, jsonify, g, request

from models.booking import BookingStatus
from security.rbac import require_roles
from services.lifecycle import cancel_booking, complete_booking, list_bookings
from services.ratings import recompute_all_turf_ratings, recompute_turf_rating
from services.reservation import parse_booking_date
from services.scheduler import run_completion_sweep
from utils.audit import log_event
from utils.roles import ADMIN, actor_role

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/bookings")
@require_roles(ADMIN)
def all_bookings():
    status = (request.args.get("status") or "").strip().upper() or None
    if status and status not in BookingStatus.ALL:
        return jsonify(error="Invalid status", code="InvalidInput"), 400
    turf_id = request.args.get("turf_id", type=int)
    date_str = request.args.get("date")  # YYYY-MM-DD
    booking_date = parse_booking_date(date_str) if date_str else None

    rows = list_bookings(status=status, turf_id=turf_id, booking_date=booking_date)
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- ADMIN: cancel any booking (no time window) ----------
@admin_bp.post("/bookings/<int:booking_id>/cancel")
@require_roles(ADMIN)
def admin_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"

    booking = cancel_booking(booking_id, g.user.id, actor_role(g.user), reason=reason)

    log_event("ADMIN_BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"reason": reason})
    return jsonify(booking.to_dict()), 200


@admin_bp.post("/bookings/<int:booking_id>/complete")
@require_roles(ADMIN)
def admin_complete_booking(booking_id: int):
    booking = complete_booking(booking_id)

    log_event("ADMIN_BOOKING_COMPLETE", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(booking.to_dict()), 200


@admin_bp.post("/bookings/complete-expired")
@require_roles(ADMIN)
def trigger_completion_sweep():
    result = run_completion_sweep()

    log_event("ADMIN_COMPLETION_SWEEP", user_id=g.user.id,
              metadata={"completed": len(result.completed), "failed": len(result.failed)})
    return jsonify(
        completed=result.completed,
        skipped=result.skipped,
        failed=result.failed,
    ), 200


@admin_bp.post("/turfs/<int:turf_id>/ratings/recompute")
@require_roles(ADMIN)
def recompute_rating(turf_id: int):
    average, count = recompute_turf_rating(turf_id)
    return jsonify(turf_id=turf_id, average_rating=average, total_ratings=count), 200


@admin_bp.post("/turfs/ratings/recompute")
@require_roles(ADMIN)
def recompute_all_ratings():
    updated, errors = recompute_all_turf_ratings()

    log_event("ADMIN_RATINGS_RECOMPUTE", user_id=g.user.id, metadata={"updated": updated, "errors": errors})
    return jsonify(updated_count=updated, error_count=errors), 200
