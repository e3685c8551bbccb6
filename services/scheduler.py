"""
Automatic completion of elapsed bookings.

``run_completion_sweep`` collects CONFIRMED bookings whose slot has ended
and completes each one on its own; a failure on one booking is logged and
left CONFIRMED for the next tick. ``CompletionScheduler`` runs the sweep
periodically in a background thread.
"""
import logging
import threading
from collections import namedtuple
from datetime import datetime, time, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from services.errors import InvalidTransition, NotFound
from services.lifecycle import complete_booking
from services.ratings import retry_pending_recomputes
from services.timeslots import slot_bounds
from utils.audit import log_event
from utils.clock import local_now

logger = logging.getLogger(__name__)

SweepResult = namedtuple("SweepResult", ["completed", "skipped", "failed"])


def slot_end(booking: Booking, default_duration_minutes: int = 60) -> datetime:
    bounds = slot_bounds(booking.booking_date, booking.time_slot, default_duration_minutes)
    if bounds is None:
        # unparseable label: the slot is over once its day is over
        return datetime.combine(booking.booking_date + timedelta(days=1), time.min)
    return bounds[1]


def find_elapsed_bookings(now: datetime) -> list:
    duration = int(current_app.config.get("SLOT_DURATION_MINUTES", 60))
    candidates = (
        Booking.query
        .filter(Booking.status == BookingStatus.CONFIRMED, Booking.booking_date <= now.date())
        .order_by(Booking.booking_date.asc(), Booking.id.asc())
        .all()
    )
    return [b.id for b in candidates if slot_end(b, duration) <= now]


def run_completion_sweep(now: datetime = None) -> SweepResult:
    now = now or local_now()
    completed, skipped, failed = [], [], []

    for booking_id in find_elapsed_bookings(now):
        try:
            complete_booking(booking_id)
        except (InvalidTransition, NotFound) as exc:
            # a cancellation or another sweep got there first
            logger.debug("Skipping booking %s: %s", booking_id, exc.message)
            skipped.append(booking_id)
            continue
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Automatic completion failed for booking %s; will retry next sweep", booking_id)
            failed.append(booking_id)
            continue
        completed.append(booking_id)

    if completed:
        logger.info("Automatically completed %s expired bookings", len(completed))
        log_event("BOOKING_AUTO_COMPLETE", entity="booking", metadata={"booking_ids": completed})
    else:
        logger.debug("No expired bookings found")

    retry_pending_recomputes()
    return SweepResult(completed, skipped, failed)


class CompletionScheduler:
    """Runs ``run_completion_sweep`` every ``interval`` seconds until stopped."""

    def __init__(self, app, interval: float = None):
        self.app = app
        self.interval = max(1.0, float(interval or app.config.get("COMPLETION_SWEEP_INTERVAL_SECONDS", 300)))
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="completion-scheduler", daemon=True)
        self._thread.start()
        logger.info("Completion scheduler started, sweeping every %ss", self.interval)

    def stop(self, timeout: float = 10.0):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def tick(self):
        with self.app.app_context():
            try:
                return run_completion_sweep()
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("Completion sweep aborted; will retry next tick")
                return None

    def _run(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception:  # pragma: no cover - keep the thread alive
                logger.exception("Completion scheduler tick error")
