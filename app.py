import atexit
import logging

from flask import Flask, jsonify
from sqlalchemy.exc import OperationalError

from config import Config, engine_options
from routes import health_bp, booking_bp, turf_bp, admin_bp

from models import db
from flask_migrate import Migrate
from services.errors import BookingError, StoreUnavailable
from services.scheduler import CompletionScheduler
from utils.seed import seed_roles
from utils.auth_context import load_current_user

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config.get("STORE_TIMEOUT_SECONDS", 10)),
    )
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(turf_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(BookingError)
    def _booking_error(err: BookingError):
        # policy/conflict/state outcomes are expected traffic, not failures
        if err.kind == "transient":
            logger.warning("%s: %s", err.code, err.message)
        else:
            logger.debug("%s: %s", err.code, err.message)
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(OperationalError)
    def _store_unavailable(err: OperationalError):
        db.session.rollback()
        logger.warning("Store operation failed: %s", err.orig)
        return _booking_error(StoreUnavailable())

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    if app.config.get("COMPLETION_SCHEDULER_ENABLED"):
        scheduler = CompletionScheduler(app)
        app.extensions["completion_scheduler"] = scheduler
        scheduler.start()
        atexit.register(scheduler.stop)

    return app

#-------------------------
import click
from models.user import User, Role
from security.session import create_session
from services.ratings import recompute_all_turf_ratings, recompute_turf_rating
from services.scheduler import run_completion_sweep
from utils.roles import ADMIN

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("issue-session")
    @click.argument("email")
    @click.option("--hours", type=int, default=None, help="Token lifetime in hours.")
    def issue_session(email, hours):
        """Issue a session token for a user and print it once."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return
        token = create_session(user.id, lifetime_seconds=hours * 3600 if hours else None)
        click.echo(token)

    @app.cli.command("complete-expired")
    def complete_expired():
        """Complete every booking whose slot has ended (same as one scheduler tick)."""
        result = run_completion_sweep()
        click.echo(f"completed={len(result.completed)} skipped={len(result.skipped)} failed={len(result.failed)}")

    @app.cli.command("recompute-ratings")
    @click.option("--turf-id", type=int, default=None, help="Only recompute this turf.")
    def recompute_ratings(turf_id):
        """Recompute turf rating aggregates from completed bookings."""
        if turf_id:
            try:
                average, count = recompute_turf_rating(turf_id)
            except BookingError as err:
                click.echo(err.message)
                return
            click.echo(f"turf {turf_id}: average={average} total={count}")
            return
        updated, errors = recompute_all_turf_ratings()
        click.echo(f"updated={updated} errors={errors}")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
