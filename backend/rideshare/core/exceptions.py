"""
Domain errors raised by the trip/booking engine.

Services raise these and never HTTPException; the API layer renders them
through a single exception handler using `status_code` and `code`.
"""

from typing import Optional


class RideshareError(Exception):
    """Base class for all errors surfaced to callers of the engine."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(RideshareError):
    """Malformed input or a broken business rule. No mutation was attempted."""

    code = "validation_error"
    status_code = 422


class AuthorizationError(RideshareError):
    """Role or ownership mismatch."""

    code = "forbidden"
    status_code = 403


class NotFoundError(RideshareError):
    """Unknown trip, booking or user id."""

    code = "not_found"
    status_code = 404


class TripExpiredError(RideshareError):
    """The trip has already departed."""

    code = "trip_expired"
    status_code = 409


class InsufficientSeatsError(RideshareError):
    """Not enough seats left on the trip."""

    code = "insufficient_seats"
    status_code = 409

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Not enough seats. Requested: {requested}, Available: {available}"
        )
        self.requested = requested
        self.available = available


class SelfBookingError(RideshareError):
    """A driver tried to book a seat on their own trip."""

    code = "self_booking"
    status_code = 403


class GenderPreferenceMismatchError(RideshareError):
    code = "gender_preference_mismatch"
    status_code = 403


class ConflictError(RideshareError):
    """Invalid state transition, or a delete blocked by active bookings."""

    code = "conflict"
    status_code = 409


class TripBusyError(ConflictError):
    """The trip lock or its versioned write could not be obtained in time."""

    code = "trip_busy"

    def __init__(self, trip_id: int):
        super().__init__(f"Trip {trip_id} is busy. Please try again.")
        self.trip_id = trip_id
