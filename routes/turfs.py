from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.turf import Turf, TurfTimeSlot
from security.rbac import require_roles
from services.ratings import rating_stats
from services.reservation import get_active_turf, slot_availability
from services.timeslots import parse_time_slot
from utils.audit import log_event
from utils.clock import local_now
from utils.roles import ADMIN

turf_bp = Blueprint("turf", __name__, url_prefix="/turfs")


def _turf_dict(t: Turf, with_slots: bool = False) -> dict:
    out = {
        "id": t.id,
        "name": t.name,
        "location": t.location,
        "description": t.description,
        "price": t.price,
        "is_active": t.is_active,
        "average_rating": t.average_rating,
        "total_ratings": t.total_ratings,
        "created_at": t.created_at.isoformat(),
    }
    if with_slots:
        out["time_slots"] = [
            {"id": s.id, "label": s.label, "enabled": s.enabled}
            for s in t.time_slots
        ]
    return out


@turf_bp.get("")
def list_turfs():
    location_query = (request.args.get("location") or "").strip()
    sort = (request.args.get("sort") or "").strip().lower()

    q = Turf.query.filter(Turf.is_active.is_(True))
    if location_query:
        q = q.filter(Turf.location.ilike(f"%{location_query}%"))

    if sort == "rating":
        q = q.order_by(Turf.average_rating.desc(), Turf.total_ratings.desc())
    elif sort == "price":
        q = q.order_by(Turf.price.asc())
    else:
        q = q.order_by(Turf.created_at.desc())

    rows = q.limit(200).all()
    return jsonify([_turf_dict(t) for t in rows]), 200


@turf_bp.get("/<int:turf_id>")
def turf_detail(turf_id: int):
    return jsonify(_turf_dict(get_active_turf(turf_id), with_slots=True)), 200


@turf_bp.get("/<int:turf_id>/slots")
def turf_slots(turf_id: int):
    date_str = request.args.get("date") or local_now().date().isoformat()
    return jsonify(
        turf_id=turf_id,
        date=date_str,
        slots=slot_availability(turf_id, date_str),
    ), 200


@turf_bp.get("/<int:turf_id>/ratings")
def turf_ratings(turf_id: int):
    return jsonify(rating_stats(turf_id)), 200


# ---------- OPERATORS: manage turfs ----------
@turf_bp.post("")
@require_roles(ADMIN)
def create_turf():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    location = (data.get("location") or "").strip()
    description = (data.get("description") or "").strip() or None
    labels = data.get("time_slots") or []

    if not name or not location:
        return jsonify(error="name and location are required", code="InvalidInput"), 400
    try:
        price = int(data.get("price") or 0)
    except (TypeError, ValueError):
        return jsonify(error="price must be an integer", code="InvalidInput"), 400
    if not isinstance(labels, list) or not all(isinstance(x, str) and x.strip() for x in labels):
        return jsonify(error="time_slots must be a list of labels", code="InvalidInput"), 400

    unparseable = [x for x in labels if parse_time_slot(x) is None]
    if unparseable:
        return jsonify(error="Unrecognised time slot labels. Use e.g. '6:00 AM - 7:00 AM'",
                       code="InvalidInput", labels=unparseable), 400

    turf = Turf(name=name, location=location, description=description, price=price)
    turf.time_slots = [
        TurfTimeSlot(label=label.strip(), position=i, enabled=True)
        for i, label in enumerate(labels)
    ]
    db.session.add(turf)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Duplicate time slot labels", code="InvalidInput"), 400

    log_event("TURF_CREATE", user_id=g.user.id, entity="turf", entity_id=turf.id)
    return jsonify(_turf_dict(turf, with_slots=True)), 201


@turf_bp.post("/<int:turf_id>/slots/<int:slot_id>/status")
@require_roles(ADMIN)
def update_slot_status(turf_id: int, slot_id: int):
    data = request.get_json(silent=True) or {}
    enabled = data.get("enabled")
    if not isinstance(enabled, bool):
        return jsonify(error="enabled must be true or false", code="InvalidInput"), 400

    slot = db.session.get(TurfTimeSlot, slot_id)
    if not slot or slot.turf_id != turf_id:
        return jsonify(error="Slot not found", code="NotFound"), 404

    # existing bookings are untouched; only new reservations see the change
    slot.enabled = enabled
    db.session.commit()

    log_event("TURF_SLOT_STATUS", user_id=g.user.id, entity="turf_time_slot", entity_id=slot.id,
              metadata={"enabled": enabled})
    return jsonify(id=slot.id, label=slot.label, enabled=slot.enabled), 200
