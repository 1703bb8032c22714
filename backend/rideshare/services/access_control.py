"""
Role and ownership checks. Each guard returns None or raises.
"""

from rideshare.core.exceptions import (
    AuthorizationError,
    GenderPreferenceMismatchError,
    SelfBookingError,
)
from rideshare.models.booking import Booking
from rideshare.models.enums import GenderPreference
from rideshare.models.trip import Trip
from rideshare.schemas.user import Actor


def require_driver(actor: Actor) -> None:
    if not actor.is_driver:
        raise AuthorizationError("Only drivers can publish trips")


def require_trip_owner(actor: Actor, trip: Trip) -> None:
    if actor.id != trip.driver_id:
        raise AuthorizationError("Only the trip's driver can do this")


def require_booking_owner_or_trip_owner(actor: Actor, booking: Booking, trip: Trip) -> None:
    if actor.id not in (booking.passenger_id, trip.driver_id):
        raise AuthorizationError("Only the passenger or the trip's driver can do this")


def forbid_self_booking(passenger: Actor, trip: Trip) -> None:
    if passenger.id == trip.driver_id:
        raise SelfBookingError("Drivers cannot book seats on their own trip")


def require_gender_match(passenger: Actor, trip: Trip) -> None:
    preference = GenderPreference(trip.gender_preference)
    if not preference.admits(passenger.gender):
        raise GenderPreferenceMismatchError(
            f"This trip is restricted to {preference.value.replace('_', ' ')} passengers"
        )
