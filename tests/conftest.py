from datetime import date, datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.booking import Booking, BookingStatus
from models.turf import Turf, TurfTimeSlot
from models.user import Role, User
from security.session import create_session
from services import ratings
from utils.roles import ADMIN, CUSTOMER

DEFAULT_SLOTS = [
    "6:00 AM - 7:00 AM",
    "7:00 AM - 8:00 AM",
    "9:00 AM - 10:00 AM",
    "10:00 AM - 11:00 AM",
    "6:00 PM - 7:00 PM",
]


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    CREATE_TABLES = True
    COMPLETION_SCHEDULER_ENABLED = False
    BOOKING_TIMEZONE = "UTC"
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_pending_recomputes():
    ratings._pending.clear()
    yield
    ratings._pending.clear()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(email=None, role=CUSTOMER):
        counter["n"] += 1
        user = User(email=email or f"user{counter['n']}@example.com", full_name="Test User")
        user.roles.append(Role.query.filter_by(name=role).one())
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user(email="customer@example.com")


@pytest.fixture
def other_customer(make_user):
    return make_user(email="other@example.com")


@pytest.fixture
def operator(make_user):
    return make_user(email="admin@example.com", role=ADMIN)


@pytest.fixture
def make_turf(app):
    def _make(name="Green Field", slots=None, price=1500, is_active=True):
        turf = Turf(name=name, location="Kathmandu", price=price, is_active=is_active)
        turf.time_slots = [
            TurfTimeSlot(label=label, position=i, enabled=True)
            for i, label in enumerate(slots or DEFAULT_SLOTS)
        ]
        db.session.add(turf)
        db.session.commit()
        return turf

    return _make


@pytest.fixture
def turf(make_turf):
    return make_turf()


@pytest.fixture
def make_booking(app):
    """Insert a booking row directly, bypassing the reservation rules (e.g. past dates)."""

    def _make(turf, user, booking_date, time_slot="9:00 AM - 10:00 AM",
              status=BookingStatus.CONFIRMED, rating=None, review=None):
        booking = Booking(
            turf_id=turf.id,
            user_id=user.id,
            booking_date=booking_date,
            time_slot=time_slot,
            status=status,
            rating=rating,
            review=review,
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_session(user.id)}"}

    return _headers


@pytest.fixture
def day():
    """A fixed future day used as 'today' by tests that pass an explicit clock."""
    return date(2030, 5, 14)


def at(d: date, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime.combine(d, datetime.min.time()) + timedelta(hours=hour, minutes=minute, seconds=second)
