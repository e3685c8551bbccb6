import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to this file as turfslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "turfslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Store operations must fail rather than hang
    STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

    # Session token (issued with `flask issue-session`)
    AUTH_COOKIE_NAME = "turfslot_session"
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Slot labels and booking dates are wall-clock times at the turfs
    BOOKING_TIMEZONE = os.getenv("BOOKING_TIMEZONE", "Asia/Kolkata")

    # Booking policy
    BOOKING_MIN_LEAD_MINUTES = 30       # same-day slots must start at least this far out
    CANCEL_GRACE_MINUTES = 5            # customers may cancel until slot start + grace
    SLOT_DURATION_MINUTES = 60          # used when a label has no end time
    REVIEW_MAX_LENGTH = 500

    # Automatic completion of elapsed bookings
    COMPLETION_SCHEDULER_ENABLED = _env_bool("COMPLETION_SCHEDULER_ENABLED", "true")
    COMPLETION_SWEEP_INTERVAL_SECONDS = int(os.getenv("COMPLETION_SWEEP_INTERVAL_SECONDS", "300"))

    # Rating aggregate
    RATING_RECOMPUTE_ATTEMPTS = int(os.getenv("RATING_RECOMPUTE_ATTEMPTS", "3"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


def engine_options(database_uri: str, timeout_seconds: int) -> dict:
    if database_uri.startswith("sqlite"):
        # busy timeout: writers wait for the lock instead of failing immediately
        return {"connect_args": {"timeout": timeout_seconds}}
    # pool_timeout only bounds the wait for a pooled connection
    options = {"pool_timeout": timeout_seconds, "pool_pre_ping": True}
    if database_uri.startswith(("postgresql", "postgres")):
        # a locked UPDATE or an unreachable host fails instead of hanging
        options["connect_args"] = {
            "connect_timeout": int(timeout_seconds),
            "options": f"-c statement_timeout={int(timeout_seconds) * 1000}",
        }
    return options
