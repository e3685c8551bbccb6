from flask import Blueprint, current_app, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    scheduler = current_app.extensions.get("completion_scheduler")
    return jsonify(
        status="ok",
        service="turfslot",
        completion_scheduler=bool(scheduler and scheduler.running),
    ), 200
