"""
Error taxonomy for the booking engine.

Every error carries a stable ``code`` (what clients branch on), a human
readable ``message`` and the HTTP status the request layer answers with.
``kind`` groups codes the way callers treat them: validation and policy
errors are user-correctable, conflict/state errors are expected outcomes
of races, transient errors are retryable.
"""


class BookingError(Exception):
    kind = "error"
    code = "BookingError"
    status = 400
    default_message = "Booking request failed"

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        out = {"error": self.message, "code": self.code}
        out.update({k: v for k, v in self.details.items() if v is not None})
        return out


# ---------- validation ----------
class InvalidInput(BookingError):
    kind = "validation"
    code = "InvalidInput"
    default_message = "Invalid input"


class InvalidRating(BookingError):
    kind = "validation"
    code = "InvalidRating"
    default_message = "Rating must be between 1 and 5"


# ---------- policy (time window) ----------
class PolicyDenied(BookingError):
    kind = "policy"


class TooSoon(PolicyDenied):
    code = "TooSoon"
    default_message = "This time slot starts too soon"


class AlreadyPassed(PolicyDenied):
    code = "AlreadyPassed"
    default_message = "This time slot has already passed"


class AlreadyStarted(PolicyDenied):
    code = "AlreadyStarted"
    status = 403
    default_message = "Cannot cancel booking after the slot time has started"


class GraceExpired(PolicyDenied):
    code = "GraceExpired"
    status = 403
    default_message = "Cannot cancel booking after the grace period"


# ---------- conflict ----------
class AlreadyBooked(BookingError):
    kind = "conflict"
    code = "AlreadyBooked"
    status = 409
    default_message = "Slot already booked"


# ---------- state machine ----------
class InvalidTransition(BookingError):
    kind = "state"
    status = 409


class AlreadyCanceled(InvalidTransition):
    code = "AlreadyCanceled"
    default_message = "Booking is already canceled"


class AlreadyCompleted(InvalidTransition):
    code = "AlreadyCompleted"
    default_message = "Booking is already completed"


class CannotCompleteCanceled(InvalidTransition):
    code = "CannotCompleteCanceled"
    default_message = "Cannot complete a canceled booking"


class NotCompleted(InvalidTransition):
    code = "NotCompleted"
    status = 400
    default_message = "Can only rate completed bookings"


# ---------- lookup / rights ----------
class NotFound(BookingError):
    kind = "not_found"
    code = "NotFound"
    status = 404
    default_message = "Not found"


class Forbidden(BookingError):
    kind = "forbidden"
    code = "Forbidden"
    status = 403
    default_message = "Forbidden"


# ---------- transient ----------
class StoreUnavailable(BookingError):
    kind = "transient"
    code = "StoreUnavailable"
    status = 503
    default_message = "Booking store temporarily unavailable, please retry"
