from datetime import timedelta

from models import db
from models.booking import Booking, BookingStatus
from models.session import Session
from models.turf import Turf
from utils.clock import local_now


def test_complete_expired_command(app, turf, customer, make_booking):
    booking = make_booking(turf, customer, local_now().date() - timedelta(days=1))

    result = app.test_cli_runner().invoke(args=["complete-expired"])

    assert result.exit_code == 0
    assert "completed=1" in result.output
    assert db.session.get(Booking, booking.id).status == BookingStatus.COMPLETED


def test_recompute_ratings_command(app, turf, customer, make_booking):
    make_booking(turf, customer, local_now().date() - timedelta(days=1), status=BookingStatus.COMPLETED, rating=3)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["recompute-ratings", "--turf-id", str(turf.id)])
    assert "average=3.0 total=1" in result.output

    result = runner.invoke(args=["recompute-ratings"])
    assert "updated=1 errors=0" in result.output
    assert db.session.get(Turf, turf.id).total_ratings == 1

    result = runner.invoke(args=["recompute-ratings", "--turf-id", "999"])
    assert "Turf not found" in result.output


def test_make_admin_and_issue_session(app, customer):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["make-admin", customer.email])
    assert "promoted to ADMIN" in result.output

    result = runner.invoke(args=["issue-session", customer.email])
    token = result.output.strip()
    assert token
    assert Session.query.filter_by(user_id=customer.id).count() == 1

    resp = app.test_client().get("/admin/bookings", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200

    assert "User not found" in runner.invoke(args=["issue-session", "nobody@example.com"]).output
